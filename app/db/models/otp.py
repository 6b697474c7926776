from sqlalchemy import Column, DateTime, Integer, String

from app.core.clock import utcnow
from app.db.base import Base


class OTPCode(Base):
    """The single outstanding verification code for an email address."""

    __tablename__ = "otp_codes"

    id = Column(Integer, primary_key=True, index=True)
    # unique: issuing a new code replaces the old row instead of adding one
    email = Column(String(255), unique=True, index=True, nullable=False)
    code = Column(String(12), nullable=False)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
