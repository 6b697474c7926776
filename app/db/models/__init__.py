from app.db.models.account import Account, SubscriptionStatus
from app.db.models.otp import OTPCode
from app.db.models.vesting import VestingSchedule

__all__ = [
    "Account",
    "OTPCode",
    "SubscriptionStatus",
    "VestingSchedule",
]
