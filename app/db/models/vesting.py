import uuid

from sqlalchemy import BigInteger, Boolean, Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from app.core.clock import utcnow
from app.db.base import Base


class VestingSchedule(Base):
    """A token-release plan created from the dashboard.

    Amounts are wei values kept as decimal strings so 18-decimal tokens do not
    overflow integer columns.
    """

    __tablename__ = "vesting_schedules"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), index=True, nullable=False)
    token_address = Column(String(42), nullable=False)
    beneficiary = Column(String(42), nullable=False)
    total_amount = Column(String(78), nullable=False)
    released_amount = Column(String(78), nullable=False, default="0")
    start_time = Column(BigInteger, nullable=False)
    duration = Column(BigInteger, nullable=False)
    revoked = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    owner = relationship("Account", back_populates="vesting_schedules")
