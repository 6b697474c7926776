"""Schemas for vesting schedule creation and listing."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.schemas.account import ADDRESS_PATTERN


class VestingScheduleCreate(BaseModel):
    """Dashboard form payload; accepts camelCase or snake_case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    token_address: str = Field(pattern=ADDRESS_PATTERN)
    beneficiary: str = Field(pattern=ADDRESS_PATTERN)
    start_time: int = Field(ge=0)
    duration: int = Field(ge=0)
    total_amount: str

    @field_validator("total_amount", mode="before")
    @classmethod
    def _positive_wei(cls, value):
        if isinstance(value, bool):
            raise ValueError("total amount must be a positive integer amount in wei")
        if isinstance(value, int):
            value = str(value)
        if not isinstance(value, str) or not value.strip().isdigit() or int(value) <= 0:
            raise ValueError("total amount must be a positive integer amount in wei")
        return str(int(value))


class VestingScheduleResponse(BaseModel):
    id: str
    user_id: str
    token_address: str
    beneficiary: str
    total_amount: str
    released_amount: str
    start_time: int
    duration: int
    revoked: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
