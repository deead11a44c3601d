from fastapi import FastAPI
from roomsplit.core.config import settings
from roomsplit.db.database import check_db_connection, init_db
from roomsplit.api.v1.routes.expenses import router as expenses_router
from roomsplit.api.v1.routes.settlements import router as settlements_router
from roomsplit.api.v1.routes.preferences import router as preferences_router
from roomsplit.rabbitmq.producer import close_rabbitmq_producer

init_db()

app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Shared expense ledger: equal splits, settlement through the payment gateway, reminders",
    version=settings.PROJECT_VERSION
)

app.include_router(expenses_router)
app.include_router(settlements_router)
app.include_router(preferences_router)


@app.on_event("shutdown")
def shutdown():
    close_rabbitmq_producer()


@app.get("/")
def read_root():
    return {"message": "Roomsplit Ledger API", "version": settings.PROJECT_VERSION}

@app.get("/health")
def health_check():
    database_ok = check_db_connection()
    return {"status": "healthy" if database_ok else "degraded", "database": database_ok}
