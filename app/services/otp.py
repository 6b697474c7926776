"""OTP issuance and lookup backed by the `otp_codes` table.

Failed verification attempts are counted in Redis so a code can be burned
after a handful of wrong guesses.
"""

import secrets
from datetime import timedelta

from redis.asyncio import Redis
from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import utcnow
from app.db.models.otp import OTPCode

_UPSERT_DIALECTS = {
    "postgresql": postgresql_insert,
    "sqlite": sqlite_insert,
}


def _attempts_key(email: str) -> str:
    """Generate the Redis key that scopes the failure counter to a user's email."""
    return f"otp_attempts:{email}"


def generate_otp(length: int = 6) -> str:
    """Create a zero-padded numeric OTP with configurable length."""
    upper_bound = 10 ** length
    return f"{secrets.randbelow(upper_bound):0{length}d}"


class OTPService:
    """Issue, look up and retract OTP codes; one live row per email."""

    def __init__(self, session: AsyncSession, expire_seconds: int = 600, length: int = 6):
        self.session = session
        self.expire_seconds = expire_seconds
        self.length = length

    def _insert(self):
        dialect = self.session.bind.dialect.name
        try:
            return _UPSERT_DIALECTS[dialect]
        except KeyError:
            raise RuntimeError(f"OTP upsert is not supported on the {dialect!r} dialect.") from None

    async def issue_otp(self, email: str) -> str:
        """Store a fresh code for `email`, replacing any previous one in a single statement."""
        code = generate_otp(self.length)
        now = utcnow()

        insert = self._insert()
        stmt = insert(OTPCode).values(
            email=email,
            code=code,
            expires_at=now + timedelta(seconds=self.expire_seconds),
            created_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["email"],
            set_={
                "code": stmt.excluded.code,
                "expires_at": stmt.excluded.expires_at,
                "created_at": stmt.excluded.created_at,
            },
        )
        await self.session.execute(stmt)
        await self.session.commit()
        return code

    async def find_valid(self, email: str, code: str) -> OTPCode | None:
        """Return the unexpired row matching both email and code, newest first."""
        return await self.session.scalar(
            select(OTPCode)
            .where(
                OTPCode.email == email,
                OTPCode.code == code,
                OTPCode.expires_at > utcnow(),
            )
            .order_by(OTPCode.created_at.desc())
            .limit(1)
        )

    async def consume(self, otp_row: OTPCode) -> bool:
        """Delete `otp_row` inside the caller's transaction.

        Returns False when another request already removed or replaced the
        code; only the caller that deleted the row may go on to commit.
        """
        result = await self.session.execute(
            delete(OTPCode)
            .where(OTPCode.id == otp_row.id, OTPCode.code == otp_row.code)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def invalidate(self, email: str, code: str | None = None) -> None:
        """Remove the code for `email` without validation (failed sends, lockouts).

        When `code` is given only that code is removed, so a newer code issued
        concurrently survives.
        """
        stmt = delete(OTPCode).where(OTPCode.email == email)
        if code is not None:
            stmt = stmt.where(OTPCode.code == code)
        await self.session.execute(stmt)
        await self.session.commit()


class OTPAttemptLimiter:
    """Count wrong codes per email; the window matches the OTP lifetime."""

    def __init__(self, redis: Redis, max_attempts: int = 5, window_seconds: int = 600):
        self.redis = redis
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds

    async def register_failure(self, email: str) -> int:
        key = _attempts_key(email)
        attempts = await self.redis.incr(key)
        if attempts == 1:
            await self.redis.expire(key, self.window_seconds)
        return attempts

    async def is_locked(self, email: str) -> bool:
        attempts = await self.redis.get(_attempts_key(email))
        return attempts is not None and int(attempts) >= self.max_attempts

    async def reset(self, email: str) -> None:
        await self.redis.delete(_attempts_key(email))
