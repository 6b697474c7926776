"""Pydantic schemas for OTP request and verification flows."""

from pydantic import AliasChoices, BaseModel, EmailStr, Field, field_validator


class EmailPayload(BaseModel):
    """Base for payloads keyed by email; addresses are compared lowercase."""

    email: EmailStr

    @field_validator("email")
    @classmethod
    def _lowercase_email(cls, value: str) -> str:
        return value.lower()


class OTPRequest(EmailPayload):
    """Payload used to request a verification code for a specific email."""


class OTPVerify(EmailPayload):
    """Payload used when submitting a received OTP code for validation.

    Older clients send the code as `otp`, newer ones as `code`.
    """

    code: str = Field(min_length=1, max_length=12, validation_alias=AliasChoices("code", "otp"))

    @field_validator("code")
    @classmethod
    def _strip_code(cls, value: str) -> str:
        return value.strip()
