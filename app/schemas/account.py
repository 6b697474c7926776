"""Schemas describing account profiles, trial state and wallet linking."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

ADDRESS_PATTERN = r"^0x[0-9a-fA-F]{40}$"


class TrialStatus(BaseModel):
    subscription_status: str
    days_remaining: int
    is_expired: bool
    has_access: bool


class AccountResponse(BaseModel):
    """Response body representing an account record."""

    id: str
    email: str
    wallet_address: str | None = None
    subscription_status: str
    trial_start_date: datetime | None = None
    trial_end_date: datetime | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AccountProfile(AccountResponse):
    """Account plus its computed trial state."""

    has_password: bool
    trial: TrialStatus


class WalletUpdate(BaseModel):
    wallet_address: str = Field(pattern=ADDRESS_PATTERN)


class PasswordUpdate(BaseModel):
    password: str = Field(min_length=8, max_length=72)
