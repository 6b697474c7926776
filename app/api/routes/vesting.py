"""Vesting schedule endpoints used by the dashboard."""

from typing import List

from fastapi import APIRouter, Depends

from app.api import deps
from app.core.security import TokenClaims
from app.schemas.vesting import VestingScheduleCreate, VestingScheduleResponse
from app.services.vesting import VestingService

router = APIRouter(prefix="/vesting", tags=["vesting"])


@router.post("/create", response_model=VestingScheduleResponse)
async def create_schedule(
    payload: VestingScheduleCreate,
    claims: TokenClaims = Depends(deps.get_token_claims),
    vesting: VestingService = Depends(deps.get_vesting_service),
) -> VestingScheduleResponse:
    """Create a schedule owned by the caller."""

    schedule = await vesting.create(claims.account_id, payload)
    return VestingScheduleResponse.model_validate(schedule)


@router.get("/schedules", response_model=List[VestingScheduleResponse])
async def list_schedules(
    claims: TokenClaims = Depends(deps.get_bearer_claims),
    vesting: VestingService = Depends(deps.get_vesting_service),
) -> List[VestingScheduleResponse]:
    """Return the caller's schedules; an account without any gets `[]`."""

    schedules = await vesting.list_for_user(claims.account_id)
    return [VestingScheduleResponse.model_validate(s) for s in schedules]
