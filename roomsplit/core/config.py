from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration, read from the environment or a local .env file"""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    PROJECT_NAME: str = "Roomsplit - Shared Expense Ledger"
    PROJECT_VERSION: str = "1.0.0"

    # Remote backend that owns expenses, roommates and payments
    API_BASE_URL: str = "http://localhost:5000/api"
    REQUEST_TIMEOUT: float = 10.0

    # Access tokens issued by the auth service
    SECRET_KEY: str = "your_secret_key"
    JWT_ALGORITHM: str = "HS256"

    # Local store for cached form defaults
    DATABASE_URL: str = "sqlite:///./roomsplit.db"

    # Payment gateway
    CURRENCY: str = "INR"
    RECEIPT_MAX_LENGTH: int = 40

    # Reminders: "http" posts to the backend, "rabbitmq" publishes to the queue
    REMINDER_TRANSPORT: str = "http"
    REMINDER_WORKERS: int = 4

    RABBITMQ_HOST: str = "localhost"
    RABBITMQ_PORT: int = 5672
    RABBITMQ_USER: str = "guest"
    RABBITMQ_PASSWORD: str = "guest"
    RABBITMQ_VHOST: str = "/"
    RABBITMQ_REMINDER_EXCHANGE: str = "notifications"
    RABBITMQ_REMINDER_ROUTING_KEY: str = "expense.reminder"


settings = Settings()
