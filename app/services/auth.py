"""Authentication domain logic orchestrating OTP codes, accounts and tokens."""

import logging

from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import BadRequestException, InternalServerException
from app.core.security import TokenIdentityProvider, verify_password
from app.db.models.account import Account
from app.schemas.auth import UserLogin
from app.schemas.otp import OTPVerify
from app.services.accounts import AccountService
from app.services.email import EmailSender
from app.services.otp import OTPAttemptLimiter, OTPService

logger = logging.getLogger(__name__)

INVALID_CODE = "Invalid or expired code."
INVALID_LOGIN = "Incorrect email or password."


class AuthService:
    """High-level service used by API routes.

    Holds the DB session plus the OTP store, attempt limiter, email sender and
    identity provider it coordinates.
    """

    def __init__(
        self,
        session: AsyncSession,
        otp_service: OTPService,
        attempts: OTPAttemptLimiter,
        email_sender: EmailSender,
        identity: TokenIdentityProvider,
        accounts: AccountService,
    ):
        self.session = session
        self.otp_service = otp_service
        self.attempts = attempts
        self.email_sender = email_sender
        self.identity = identity
        self.accounts = accounts

    async def request_otp(self, email: str) -> None:
        """Issue a code for `email` and mail it.

        The response never depends on whether an account exists. If delivery
        fails the stored code is retracted so no undelivered code stays valid.
        """

        try:
            await self.attempts.reset(email)
        except RedisError:
            logger.exception("Failed to reset OTP attempts for %s", email)
            raise InternalServerException(detail="Failed to store verification code.")

        try:
            otp_code = await self.otp_service.issue_otp(email)
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception("Failed to store OTP for %s", email)
            raise InternalServerException(detail="Failed to store verification code.")

        logger.info("Issued OTP for %s", email)

        sent, err = await self.email_sender.send_otp_email(email, otp_code, self.otp_service.expire_seconds)
        if not sent:
            logger.error("Failed to send OTP email to %s: %s", email, err)
            try:
                await self.otp_service.invalidate(email, otp_code)
            except SQLAlchemyError:
                await self.session.rollback()
                logger.exception("Failed to retract undelivered OTP for %s", email)
            raise InternalServerException(detail="Failed to send verification code.")

    async def verify_otp(self, payload: OTPVerify) -> tuple[Account, str]:
        """Consume a submitted code, provision the account if needed and mint a token.

        Code deletion and account creation commit together: if provisioning
        fails nothing is written and the same code can be retried. When two
        requests race on one code, only the one whose delete removed the row
        gets a token.
        """

        email = payload.email
        try:
            locked = await self.attempts.is_locked(email)
        except RedisError:
            logger.exception("Failed to read OTP attempts for %s", email)
            raise InternalServerException(detail="Failed to verify code.")
        if locked:
            logger.warning("OTP verification refused for %s: too many attempts", email)
            raise BadRequestException(detail=INVALID_CODE)

        try:
            otp_row = await self.otp_service.find_valid(email, payload.code)
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception("Failed to look up OTP for %s", email)
            raise InternalServerException(detail="Failed to verify code.")

        if otp_row is None:
            await self._register_failure(email)
            raise BadRequestException(detail=INVALID_CODE)

        try:
            consumed = await self.otp_service.consume(otp_row)
            if consumed:
                account, created = await self.accounts.get_or_create(email)
                await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception("Failed to provision account for %s", email)
            raise InternalServerException(detail="Failed to provision account.")

        if not consumed:
            await self.session.rollback()
            logger.warning("OTP for %s was consumed by a concurrent request", email)
            raise BadRequestException(detail=INVALID_CODE)

        await self.session.refresh(account)
        try:
            await self.attempts.reset(email)
        except RedisError:
            logger.exception("Failed to reset OTP attempts for %s", email)
        if created:
            logger.info("Created account %s for %s", account.id, email)

        return account, self.identity.issue(account)

    async def _register_failure(self, email: str) -> None:
        try:
            attempts = await self.attempts.register_failure(email)
        except RedisError:
            # no counter available: treat as locked
            logger.exception("Failed to count OTP attempt for %s", email)
            attempts = self.attempts.max_attempts
        if attempts < self.attempts.max_attempts:
            return
        logger.warning("Too many wrong codes for %s; burning the outstanding OTP", email)
        try:
            await self.otp_service.invalidate(email)
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception("Failed to burn OTP for %s", email)

    async def login(self, payload: UserLogin) -> str:
        """Authenticate with an email and password set earlier and mint a token."""

        account = await self.accounts.get_by_email(payload.email)
        if not account or not account.hashed_password:
            raise BadRequestException(detail=INVALID_LOGIN)
        if not verify_password(payload.password, account.hashed_password):
            raise BadRequestException(detail=INVALID_LOGIN)

        return self.identity.issue(account)
