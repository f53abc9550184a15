from datetime import datetime, timezone

import pytest

from mailcraft.db.base import SessionLocal
from mailcraft.db.enums import ApiKeyProviderEnum, SubscriptionStatusEnum
from mailcraft.db.models import Account
from mailcraft.db.repositories.accounts import AccountsRepository
from mailcraft.services.usage import (
    UsageLimitExceededError,
    clear_own_api_key,
    current_period,
    ensure_can_generate,
    mask_api_key,
    record_usage,
    refresh_usage_period,
    set_own_api_key,
    usage_cap,
    usage_summary,
)


@pytest.fixture()
def account(db_session):
    return AccountsRepository(db_session).get_or_create("usage-user", is_anonymous=False)


def test_current_period_format():
    assert current_period(datetime(2026, 2, 9, tzinfo=timezone.utc)) == "2026-02"


def test_usage_is_counted_and_capped(db_session, account):
    for _ in range(3):
        account = ensure_can_generate(db_session, account)
        account = record_usage(db_session, account)

    assert account.api_usage_this_month == 3
    with pytest.raises(UsageLimitExceededError) as excinfo:
        ensure_can_generate(db_session, account)
    assert excinfo.value.used == 3
    assert excinfo.value.cap == 3
    assert "own API key" in excinfo.value.message

    summary = usage_summary(account)
    assert summary.remaining == 0
    assert summary.limited is True


def test_concurrent_usage_records_are_not_lost(db_session, account):
    account = refresh_usage_period(db_session, account)
    other_session = SessionLocal()
    try:
        stale = other_session.get(Account, account.id)
        assert stale.api_usage_this_month == 0

        record_usage(db_session, account)
        stale = record_usage(other_session, stale)
    finally:
        other_session.close()

    assert stale.api_usage_this_month == 2
    db_session.refresh(account)
    assert account.api_usage_this_month == 2


def test_new_month_resets_the_counter(db_session, account):
    account = AccountsRepository(db_session).update(account, usage_period="2000-01", api_usage_this_month=99)
    assert usage_summary(account).used == 0

    account = refresh_usage_period(db_session, account)
    assert account.usage_period == current_period()
    assert account.api_usage_this_month == 0


def test_own_api_key_bypasses_the_cap(db_session, account):
    account = AccountsRepository(db_session).update(
        account, usage_period=current_period(), api_usage_this_month=10
    )
    account = set_own_api_key(db_session, account, ApiKeyProviderEnum.openai, " sk-test-abcdef123456 ")
    assert account.own_api_key == "sk-test-abcdef123456"

    assert ensure_can_generate(db_session, account) is account
    assert record_usage(db_session, account).api_usage_this_month == 11
    assert usage_summary(account).limited is False

    account = clear_own_api_key(db_session, account)
    assert account.own_api_provider is None
    with pytest.raises(UsageLimitExceededError):
        ensure_can_generate(db_session, account)


def test_premium_and_explicit_caps(db_session, account):
    repo = AccountsRepository(db_session)
    account = repo.update(account, subscription_status=SubscriptionStatusEnum.premium)
    assert usage_cap(account) == 1000
    account = repo.update(account, api_usage_cap=7)
    assert usage_cap(account) == 7


@pytest.mark.parametrize(
    "api_key, expected",
    [
        (None, None),
        ("", None),
        ("short", "*****"),
        ("12345678", "********"),
        ("sk-ant-secret-9876", "sk-...9876"),
    ],
)
def test_mask_api_key(api_key, expected):
    assert mask_api_key(api_key) == expected
