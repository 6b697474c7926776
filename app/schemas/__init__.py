from app.schemas.account import AccountProfile, AccountResponse, PasswordUpdate, TrialStatus, WalletUpdate
from app.schemas.auth import Token, TokenIntrospection, UserLogin, VerifyOTPResponse
from app.schemas.common import HealthStatus, Message
from app.schemas.dashboard import DashboardSummary, DashboardTotals
from app.schemas.otp import OTPRequest, OTPVerify
from app.schemas.vesting import VestingScheduleCreate, VestingScheduleResponse

__all__ = [
    "AccountProfile",
    "AccountResponse",
    "DashboardSummary",
    "DashboardTotals",
    "HealthStatus",
    "Message",
    "OTPRequest",
    "OTPVerify",
    "PasswordUpdate",
    "Token",
    "TokenIntrospection",
    "TrialStatus",
    "UserLogin",
    "VerifyOTPResponse",
    "VestingScheduleCreate",
    "VestingScheduleResponse",
    "WalletUpdate",
]
