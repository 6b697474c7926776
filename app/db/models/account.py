import enum
import uuid

from sqlalchemy import Column, DateTime, String
from sqlalchemy.orm import relationship

from app.core.clock import utcnow
from app.db.base import Base


class SubscriptionStatus(str, enum.Enum):
    TRIAL = "trial"
    PRO = "pro"
    LIFETIME = "lifetime"
    EXPIRED = "expired"


class Account(Base):
    """A registered user; created on the first successful OTP verification."""

    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=True)
    wallet_address = Column(String(42), nullable=True)
    subscription_status = Column(String(16), nullable=False, default=SubscriptionStatus.TRIAL.value)
    trial_start_date = Column(DateTime, nullable=True)
    trial_end_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    vesting_schedules = relationship("VestingSchedule", back_populates="owner", cascade="all, delete-orphan")
