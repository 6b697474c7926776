"""Data behind the dashboard page; reachable only past the route guard."""

from fastapi import APIRouter, Depends

from app.api import deps
from app.db.models.account import Account
from app.schemas.account import AccountResponse
from app.schemas.dashboard import DashboardSummary
from app.schemas.vesting import VestingScheduleResponse
from app.services.accounts import compute_trial_status
from app.services.vesting import VestingService, summarize_schedules

router = APIRouter(tags=["dashboard"])


@router.get("/dashboard", response_model=DashboardSummary)
async def dashboard(
    account: Account = Depends(deps.get_current_account),
    vesting: VestingService = Depends(deps.get_vesting_service),
) -> DashboardSummary:
    schedules = await vesting.list_for_user(account.id)
    return DashboardSummary(
        account=AccountResponse.model_validate(account),
        trial=compute_trial_status(account),
        totals=summarize_schedules(schedules),
        schedules=[VestingScheduleResponse.model_validate(s) for s in schedules],
    )
