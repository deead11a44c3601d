import uuid
from sqlalchemy.sql import func
from sqlalchemy import Column, String, DateTime
from roomsplit.db.database import Base


class UserPreference(Base):
    """Per-profile form defaults. Not authoritative: expenses carry their own copy."""
    __tablename__ = "user_preferences"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()), unique=True, nullable=False)
    profile_key = Column(String, nullable=False, unique=True, index=True)  # Reference to user service
    upi_id = Column(String(100), nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
