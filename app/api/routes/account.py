"""Profile, wallet and password endpoints for the signed-in account."""

from fastapi import APIRouter, Depends

from app.api import deps
from app.db.models.account import Account
from app.schemas.account import AccountProfile, AccountResponse, PasswordUpdate, WalletUpdate
from app.schemas.common import Message
from app.services.accounts import AccountService, compute_trial_status

router = APIRouter(prefix="/account", tags=["account"])


def _profile(account: Account) -> AccountProfile:
    return AccountProfile(
        **AccountResponse.model_validate(account).model_dump(),
        has_password=bool(account.hashed_password),
        trial=compute_trial_status(account),
    )


@router.get("/me", response_model=AccountProfile)
async def read_me(account: Account = Depends(deps.get_current_account)) -> AccountProfile:
    return _profile(account)


@router.put("/wallet", response_model=AccountProfile)
async def link_wallet(
    payload: WalletUpdate,
    account: Account = Depends(deps.get_current_account),
    accounts: AccountService = Depends(deps.get_account_service),
) -> AccountProfile:
    """Record the wallet the user connected in the browser."""

    account = await accounts.link_wallet(account, payload.wallet_address)
    return _profile(account)


@router.delete("/wallet", response_model=AccountProfile)
async def unlink_wallet(
    account: Account = Depends(deps.get_current_account),
    accounts: AccountService = Depends(deps.get_account_service),
) -> AccountProfile:
    account = await accounts.unlink_wallet(account)
    return _profile(account)


@router.put("/password", response_model=Message)
async def set_password(
    payload: PasswordUpdate,
    account: Account = Depends(deps.get_current_account),
    accounts: AccountService = Depends(deps.get_account_service),
) -> Message:
    """Let an OTP-verified account add a password for `/auth/login`."""

    await accounts.set_password(account, payload.password)
    return Message(message="Password updated.")
