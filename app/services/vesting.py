"""Vesting schedule persistence and the dashboard roll-up."""

import logging
import time

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import BadRequestException, InternalServerException
from app.db.models.vesting import VestingSchedule
from app.schemas.dashboard import DashboardTotals
from app.schemas.vesting import VestingScheduleCreate

logger = logging.getLogger(__name__)

UPCOMING_WINDOW_SECONDS = 7 * 24 * 3600


def summarize_schedules(schedules: list[VestingSchedule], now: int | None = None) -> DashboardTotals:
    """Aggregate wei totals and count start/end events due within the next week."""
    now = int(time.time()) if now is None else now
    horizon = now + UPCOMING_WINDOW_SECONDS

    upcoming = 0
    for schedule in schedules:
        if schedule.revoked:
            continue
        end_time = schedule.start_time + schedule.duration
        if now <= schedule.start_time <= horizon or now <= end_time <= horizon:
            upcoming += 1

    return DashboardTotals(
        schedule_count=len(schedules),
        total_amount=str(sum(int(s.total_amount) for s in schedules)),
        released_amount=str(sum(int(s.released_amount) for s in schedules)),
        upcoming_events=upcoming,
    )


class VestingService:
    """Create and list schedules owned by a single account."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, user_id: str, payload: VestingScheduleCreate) -> VestingSchedule:
        schedule = VestingSchedule(
            user_id=user_id,
            token_address=payload.token_address,
            beneficiary=payload.beneficiary,
            total_amount=payload.total_amount,
            released_amount="0",
            start_time=payload.start_time,
            duration=payload.duration,
            revoked=False,
        )
        self.session.add(schedule)
        try:
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception("Failed to create vesting schedule for %s", user_id)
            raise BadRequestException(detail="Failed to create vesting schedule.")

        await self.session.refresh(schedule)
        logger.info("Created vesting schedule %s for %s", schedule.id, user_id)
        return schedule

    async def list_for_user(self, user_id: str) -> list[VestingSchedule]:
        try:
            result = await self.session.scalars(
                select(VestingSchedule)
                .where(VestingSchedule.user_id == user_id)
                .order_by(VestingSchedule.created_at.desc())
            )
        except SQLAlchemyError:
            logger.exception("Failed to fetch vesting schedules for %s", user_id)
            raise InternalServerException(detail="Failed to fetch schedules.")
        return list(result.all())
