"""HTTP route handlers for authentication and OTP operations."""

from fastapi import APIRouter, Depends, Response

from app.api import deps
from app.core.config import Settings
from app.core.security import TokenClaims
from app.schemas.auth import Token, TokenIntrospection, UserLogin, VerifyOTPResponse
from app.schemas.common import Message
from app.schemas.otp import OTPRequest, OTPVerify
from app.services.auth import AuthService

router = APIRouter(prefix="/auth", tags=["authentication"])


def _set_auth_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


@router.post("/register", response_model=Message)
@router.post("/send-otp", response_model=Message)
async def request_otp(
    payload: OTPRequest,
    auth_service: AuthService = Depends(deps.get_auth_service),
) -> Message:
    """Email a one-time code to the given address."""

    await auth_service.request_otp(payload.email)
    return Message(message="Verification code sent to your email.")


@router.post("/verify-otp", response_model=VerifyOTPResponse)
async def verify_otp(
    payload: OTPVerify,
    response: Response,
    auth_service: AuthService = Depends(deps.get_auth_service),
    settings: Settings = Depends(deps.get_settings),
) -> VerifyOTPResponse:
    """Exchange a valid code for a bearer token, creating the account on first sign-in."""

    _, token = await auth_service.verify_otp(payload)
    _set_auth_cookie(response, token, settings)
    return VerifyOTPResponse(token=token, message="OTP verified successfully.")


@router.post("/login", response_model=Token)
async def login(
    payload: UserLogin,
    auth_service: AuthService = Depends(deps.get_auth_service),
) -> Token:
    """Authenticate with a password and return a bearer access token."""

    token = await auth_service.login(payload)
    return Token(access_token=token, token_type="bearer", token=token)


@router.get("/verify-token", response_model=TokenIntrospection)
async def verify_token(claims: TokenClaims = Depends(deps.get_token_claims)) -> TokenIntrospection:
    """Tell a browser-side guard whether the presented credential is still good."""

    return TokenIntrospection(valid=True, user_id=claims.account_id, email=claims.email)


@router.post("/logout", response_model=Message)
async def logout(response: Response, settings: Settings = Depends(deps.get_settings)) -> Message:
    response.delete_cookie(settings.AUTH_COOKIE_NAME, path="/")
    return Message(message="Signed out.")
