"""Dependency providers used by FastAPI endpoints.

Every shared collaborator (settings, database, Redis, email sender, identity
provider) is built once in `create_application` and kept on `app.state`;
these helpers hand them to route handlers and compose the services.
"""

from typing import AsyncGenerator

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings
from app.core.exceptions import UnauthorizedException
from app.core.security import TokenClaims, TokenIdentityProvider
from app.db.models.account import Account
from app.services.accounts import AccountService
from app.services.auth import AuthService
from app.services.email import EmailSender
from app.services.otp import OTPAttemptLimiter, OTPService
from app.services.vesting import VestingService

bearer_scheme = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Yield an async SQLAlchemy session tied to the application's engine."""

    async for session in request.app.state.database.get_session():
        yield session


def get_redis(request: Request) -> Redis:
    return request.app.state.redis


def get_email_sender(request: Request) -> EmailSender:
    return request.app.state.email_sender


def get_identity(request: Request) -> TokenIdentityProvider:
    return request.app.state.identity


def get_account_service(
    session: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
) -> AccountService:
    return AccountService(session, trial_days=settings.TRIAL_DAYS)


def get_auth_service(
    session: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
    redis: Redis = Depends(get_redis),
    email_sender: EmailSender = Depends(get_email_sender),
    identity: TokenIdentityProvider = Depends(get_identity),
    accounts: AccountService = Depends(get_account_service),
) -> AuthService:
    """Assemble AuthService with its store, attempt counter, sender and token issuer."""

    otp_service = OTPService(session, expire_seconds=settings.OTP_EXPIRE_SECONDS, length=settings.OTP_LENGTH)
    attempts = OTPAttemptLimiter(
        redis,
        max_attempts=settings.OTP_MAX_ATTEMPTS,
        window_seconds=settings.OTP_EXPIRE_SECONDS,
    )
    return AuthService(
        session=session,
        otp_service=otp_service,
        attempts=attempts,
        email_sender=email_sender,
        identity=identity,
        accounts=accounts,
    )


def get_vesting_service(session: AsyncSession = Depends(get_db_session)) -> VestingService:
    return VestingService(session)


def get_bearer_claims(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    identity: TokenIdentityProvider = Depends(get_identity),
) -> TokenClaims:
    """Claims from an `Authorization: Bearer` header only; 401 otherwise."""

    if credentials is None:
        raise UnauthorizedException(detail="Missing bearer token.")
    claims = identity.verify(credentials.credentials)
    if claims is None:
        raise UnauthorizedException()
    return claims


def get_token_claims(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    identity: TokenIdentityProvider = Depends(get_identity),
    settings: Settings = Depends(get_settings),
) -> TokenClaims:
    """Claims from the bearer header, falling back to the auth cookie."""

    token = credentials.credentials if credentials else request.cookies.get(settings.AUTH_COOKIE_NAME)
    if not token:
        raise UnauthorizedException(detail="Missing bearer token.")
    claims = identity.verify(token)
    if claims is None:
        raise UnauthorizedException()
    return claims


async def get_current_account(
    claims: TokenClaims = Depends(get_token_claims),
    accounts: AccountService = Depends(get_account_service),
) -> Account:
    account = await accounts.get_by_id(claims.account_id)
    if account is None:
        raise UnauthorizedException()
    return account
