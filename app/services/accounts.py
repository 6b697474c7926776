"""Account provisioning, trial bookkeeping, wallet linking and passwords."""

import logging
import math
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import utcnow
from app.core.exceptions import InternalServerException
from app.core.security import get_password_hash
from app.db.models.account import Account, SubscriptionStatus
from app.schemas.account import TrialStatus

logger = logging.getLogger(__name__)


def compute_trial_status(account: Account, now: datetime | None = None) -> TrialStatus:
    """Derive days remaining and access from the stored trial window.

    Paid plans (`pro`, `lifetime`) always have access; a trial with no days
    left counts as expired even before billing flips the status.
    """
    now = now or utcnow()
    status = account.subscription_status

    days_remaining = 0
    if account.trial_end_date is not None:
        seconds_left = (account.trial_end_date - now).total_seconds()
        days_remaining = max(math.ceil(seconds_left / 86400), 0)

    if status in (SubscriptionStatus.PRO.value, SubscriptionStatus.LIFETIME.value):
        return TrialStatus(subscription_status=status, days_remaining=days_remaining, is_expired=False, has_access=True)

    is_expired = status == SubscriptionStatus.EXPIRED.value or days_remaining == 0
    return TrialStatus(
        subscription_status=status,
        days_remaining=days_remaining,
        is_expired=is_expired,
        has_access=not is_expired,
    )


class AccountService:
    """Reads and updates `profiles` rows for an authenticated caller."""

    def __init__(self, session: AsyncSession, trial_days: int = 14):
        self.session = session
        self.trial_days = trial_days

    async def get_by_email(self, email: str) -> Account | None:
        return await self.session.scalar(select(Account).where(Account.email == email))

    async def get_by_id(self, account_id: str) -> Account | None:
        return await self.session.get(Account, account_id)

    async def get_or_create(self, email: str) -> tuple[Account, bool]:
        """Load the account for `email`, or stage a new one with a fresh trial window.

        Nothing is committed here; the caller owns the transaction.
        """
        account = await self.get_by_email(email)
        if account is not None:
            return account, False

        now = utcnow()
        account = Account(
            email=email,
            subscription_status=SubscriptionStatus.TRIAL.value,
            trial_start_date=now,
            trial_end_date=now + timedelta(days=self.trial_days),
            created_at=now,
            updated_at=now,
        )
        self.session.add(account)
        await self.session.flush()
        return account, True

    async def _save(self, account: Account, action: str) -> Account:
        try:
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception("Failed to %s for account %s", action, account.id)
            raise InternalServerException(detail=f"Failed to {action}.")
        await self.session.refresh(account)
        return account

    async def link_wallet(self, account: Account, wallet_address: str) -> Account:
        account.wallet_address = wallet_address
        return await self._save(account, "link wallet")

    async def unlink_wallet(self, account: Account) -> Account:
        account.wallet_address = None
        return await self._save(account, "unlink wallet")

    async def set_password(self, account: Account, password: str) -> Account:
        account.hashed_password = get_password_hash(password)
        return await self._save(account, "update password")
