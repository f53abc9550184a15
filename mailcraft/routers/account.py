from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from mailcraft.auth.dependencies import Owner, get_current_owner
from mailcraft.db.deps import get_session
from mailcraft.db.enums import SubscriptionStatusEnum
from mailcraft.db.models import Account
from mailcraft.schemas.account import AccountOut, ApiKeyUpdate, UsageOut
from mailcraft.services.usage import (
    clear_own_api_key,
    mask_api_key,
    refresh_usage_period,
    set_own_api_key,
    usage_summary,
)

router = APIRouter(prefix="/api", tags=["account"])


def _account_out(account: Account) -> AccountOut:
    return AccountOut(
        id=account.id,
        email=account.email,
        display_name=account.display_name,
        is_anonymous=account.is_anonymous,
        subscription_status=account.subscription_status,
        is_premium=account.subscription_status == SubscriptionStatusEnum.premium,
        own_api_provider=account.own_api_provider,
        own_api_key_masked=mask_api_key(account.own_api_key),
        active_workspace_id=account.active_workspace_id,
        usage=usage_summary(account),
    )


@router.get("/account", response_model=AccountOut)
def get_account(
    owner: Owner = Depends(get_current_owner),
    session: Session = Depends(get_session),
):
    return _account_out(refresh_usage_period(session, owner.account))


@router.get("/usage", response_model=UsageOut)
def get_usage(
    owner: Owner = Depends(get_current_owner),
    session: Session = Depends(get_session),
):
    return usage_summary(refresh_usage_period(session, owner.account))


@router.put("/account/api-key", response_model=AccountOut)
def put_api_key(
    payload: ApiKeyUpdate,
    owner: Owner = Depends(get_current_owner),
    session: Session = Depends(get_session),
):
    return _account_out(set_own_api_key(session, owner.account, payload.provider, payload.api_key))


@router.delete("/account/api-key", response_model=AccountOut)
def delete_api_key(
    owner: Owner = Depends(get_current_owner),
    session: Session = Depends(get_session),
):
    return _account_out(clear_own_api_key(session, owner.account))
