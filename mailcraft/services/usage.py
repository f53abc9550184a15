from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from mailcraft.config import settings
from mailcraft.db.enums import ApiKeyProviderEnum, SubscriptionStatusEnum
from mailcraft.db.models import Account
from mailcraft.db.repositories.accounts import AccountsRepository
from mailcraft.schemas.account import UsageOut

logger = logging.getLogger(__name__)

LIMIT_GUIDANCE = "Add your own API key in settings or upgrade to premium to keep generating."


class UsageLimitExceededError(Exception):
    def __init__(self, used: int, cap: int) -> None:
        self.used = used
        self.cap = cap
        self.message = f"Monthly generation limit reached ({used}/{cap}). {LIMIT_GUIDANCE}"
        super().__init__(self.message)


def current_period(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.strftime("%Y-%m")


def usage_cap(account: Account) -> int:
    if account.api_usage_cap is not None:
        return account.api_usage_cap
    if account.subscription_status == SubscriptionStatusEnum.premium:
        return settings.PREMIUM_MONTHLY_GENERATION_CAP
    return settings.FREE_MONTHLY_GENERATION_CAP


def has_own_api_key(account: Account) -> bool:
    return bool(account.own_api_key and account.own_api_provider)


def refresh_usage_period(session: Session, account: Account, *, now: Optional[datetime] = None) -> Account:
    period = current_period(now)
    if account.usage_period == period:
        return account
    logger.info(
        "Resetting monthly usage",
        extra={"account_id": account.id, "from_period": account.usage_period, "to_period": period},
    )
    return AccountsRepository(session).update(account, usage_period=period, api_usage_this_month=0)


def usage_summary(account: Account) -> UsageOut:
    cap = usage_cap(account)
    # Counters from an earlier month are reported as reset before the next write.
    used = account.api_usage_this_month if account.usage_period == current_period() else 0
    own_key = has_own_api_key(account)
    return UsageOut(
        period=current_period(),
        used=used,
        cap=cap,
        remaining=max(0, cap - used),
        has_own_api_key=own_key,
        limited=not own_key and used >= cap,
    )


def ensure_can_generate(session: Session, account: Account) -> Account:
    account = refresh_usage_period(session, account)
    if has_own_api_key(account):
        return account
    cap = usage_cap(account)
    if account.api_usage_this_month >= cap:
        logger.info(
            "Generation blocked by usage cap",
            extra={"account_id": account.id, "used": account.api_usage_this_month, "cap": cap},
        )
        raise UsageLimitExceededError(account.api_usage_this_month, cap)
    return account


def record_usage(session: Session, account: Account) -> Account:
    account = refresh_usage_period(session, account)
    return AccountsRepository(session).increment_usage(account)


def mask_api_key(api_key: Optional[str]) -> Optional[str]:
    if not api_key:
        return None
    if len(api_key) <= 8:
        return "*" * len(api_key)
    return f"{api_key[:3]}...{api_key[-4:]}"


def set_own_api_key(session: Session, account: Account, provider: ApiKeyProviderEnum, api_key: str) -> Account:
    logger.info("Storing own API key", extra={"account_id": account.id, "provider": provider.value})
    return AccountsRepository(session).update(account, own_api_key=api_key.strip(), own_api_provider=provider)


def clear_own_api_key(session: Session, account: Account) -> Account:
    return AccountsRepository(session).update(account, own_api_key=None, own_api_provider=None)
