"""Pydantic schemas for authentication-related payloads and responses."""

from pydantic import BaseModel

from app.schemas.otp import EmailPayload


class UserLogin(EmailPayload):
    """Payload for password login attempts."""

    password: str


class Token(BaseModel):
    """Bearer token response returned after password login."""

    access_token: str
    token_type: str = "bearer"
    token: str


class VerifyOTPResponse(BaseModel):
    """Returned once a code is accepted; the token is also set as a cookie."""

    token: str
    token_type: str = "bearer"
    message: str


class TokenIntrospection(BaseModel):
    """Result of checking a presented bearer credential."""

    valid: bool
    user_id: str
    email: str
