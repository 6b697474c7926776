from typing import List

from pydantic import BaseModel

from app.schemas.account import AccountResponse, TrialStatus
from app.schemas.vesting import VestingScheduleResponse


class DashboardTotals(BaseModel):
    schedule_count: int
    total_amount: str
    released_amount: str
    upcoming_events: int


class DashboardSummary(BaseModel):
    """Everything the dashboard landing view renders in one payload."""

    account: AccountResponse
    trial: TrialStatus
    totals: DashboardTotals
    schedules: List[VestingScheduleResponse]
