import hashlib
import hmac
import json
import time
from types import SimpleNamespace

import pytest
import stripe

from mailcraft.db.enums import SubscriptionStatusEnum
from mailcraft.db.repositories.accounts import AccountsRepository
from mailcraft.db.repositories.stripe_events import StripeEventsRepository
from mailcraft.routers import stripe_webhooks
from mailcraft.services.billing import apply_stripe_event

TEST_USER_ID = "user-1"


@pytest.fixture()
def stripe_calls(monkeypatch):
    calls = {"customers": [], "sessions": []}

    def create_customer(**kwargs):
        calls["customers"].append(kwargs)
        return SimpleNamespace(id="cus_test_1")

    def create_session(**kwargs):
        calls["sessions"].append(kwargs)
        return SimpleNamespace(id="cs_test_1", url="https://checkout.stripe.test/cs_test_1")

    monkeypatch.setattr(stripe.Customer, "create", create_customer)
    monkeypatch.setattr(stripe.checkout.Session, "create", create_session)
    return calls


def test_checkout_creates_customer_once(api_client, db_session, user_headers, stripe_calls):
    response = api_client.post(
        "/api/billing/checkout", json={"return_url": "https://app.example.com/"}, headers=user_headers
    )
    assert response.status_code == 200
    assert response.json() == {"url": "https://checkout.stripe.test/cs_test_1"}

    customer = stripe_calls["customers"][0]
    assert customer["email"] == "user-1@example.com"
    assert customer["metadata"] == {"owner_id": TEST_USER_ID}
    checkout = stripe_calls["sessions"][0]
    assert checkout["mode"] == "subscription"
    assert checkout["customer"] == "cus_test_1"
    assert checkout["line_items"] == [{"price": "price_test_123", "quantity": 1}]
    assert checkout["success_url"] == "https://app.example.com/#/upgrade-success"
    assert checkout["cancel_url"] == "https://app.example.com/#/login"
    assert checkout["metadata"] == {"owner_id": TEST_USER_ID}
    assert AccountsRepository(db_session).get(TEST_USER_ID).stripe_customer_id == "cus_test_1"

    api_client.post("/api/billing/checkout", json={}, headers=user_headers)
    assert len(stripe_calls["customers"]) == 1
    assert len(stripe_calls["sessions"]) == 2


def test_premium_accounts_cannot_check_out_again(api_client, db_session, user_headers, stripe_calls):
    account = AccountsRepository(db_session).get_or_create(TEST_USER_ID, is_anonymous=False)
    AccountsRepository(db_session).update(account, subscription_status=SubscriptionStatusEnum.premium)

    response = api_client.post("/api/billing/checkout", json={}, headers=user_headers)
    assert response.status_code == 400
    assert stripe_calls["sessions"] == []


def test_anonymous_checkout_is_forbidden(api_client, anon_headers, stripe_calls):
    response = api_client.post("/api/billing/checkout", json={}, headers=anon_headers)
    assert response.status_code == 403


def _event(event_id, event_type, obj):
    return {"id": event_id, "type": event_type, "data": {"object": obj}}


def test_subscription_lifecycle_events(db_session):
    repo = AccountsRepository(db_session)
    account = repo.get_or_create(TEST_USER_ID, is_anonymous=False)

    assert apply_stripe_event(
        db_session,
        _event("evt_1", "checkout.session.completed", {"customer": "cus_9", "metadata": {"owner_id": TEST_USER_ID}}),
    )
    account = repo.get(TEST_USER_ID)
    assert account.subscription_status == SubscriptionStatusEnum.premium
    assert account.stripe_customer_id == "cus_9"

    apply_stripe_event(db_session, _event("evt_2", "customer.subscription.updated", {"customer": "cus_9", "status": "past_due"}))
    assert repo.get(TEST_USER_ID).subscription_status == SubscriptionStatusEnum.cancelled

    apply_stripe_event(db_session, _event("evt_3", "customer.subscription.updated", {"customer": "cus_9", "status": "active"}))
    assert repo.get(TEST_USER_ID).subscription_status == SubscriptionStatusEnum.premium

    apply_stripe_event(db_session, _event("evt_4", "customer.subscription.deleted", {"customer": "cus_9"}))
    assert repo.get(TEST_USER_ID).subscription_status == SubscriptionStatusEnum.cancelled


def test_redelivered_events_are_ignored(db_session):
    repo = AccountsRepository(db_session)
    account = repo.get_or_create(TEST_USER_ID, is_anonymous=False)
    repo.update(account, stripe_customer_id="cus_9", subscription_status=SubscriptionStatusEnum.premium)

    event = _event("evt_dup", "customer.subscription.deleted", {"customer": "cus_9"})
    assert apply_stripe_event(db_session, event) is True
    repo.update(repo.get(TEST_USER_ID), subscription_status=SubscriptionStatusEnum.premium)

    assert apply_stripe_event(db_session, event) is False
    assert repo.get(TEST_USER_ID).subscription_status == SubscriptionStatusEnum.premium
    assert StripeEventsRepository(db_session).is_processed("evt_dup")


def test_unhandled_event_types_are_recorded(db_session):
    assert apply_stripe_event(db_session, _event("evt_x", "invoice.paid", {})) is False
    assert StripeEventsRepository(db_session).is_processed("evt_x")


def test_webhook_verifies_signature(api_client, monkeypatch):
    captured = {}

    def construct_event(payload, signature, secret):
        captured.update(payload=payload, signature=signature, secret=secret)
        return stripe.Event.construct_from(_event("evt_hook", "invoice.paid", {}), "sk_test_123")

    monkeypatch.setattr(stripe_webhooks.stripe.Webhook, "construct_event", construct_event)
    response = api_client.post("/stripe/webhook", content=b'{"id": "evt_hook"}', headers={"Stripe-Signature": "t=1,v1=abc"})
    assert response.status_code == 200
    assert response.json() == {"received": True}
    assert captured["signature"] == "t=1,v1=abc"
    assert captured["secret"] == "whsec_test"


def test_webhook_rejects_missing_or_bad_signature(api_client, monkeypatch):
    response = api_client.post("/stripe/webhook", content=b"{}")
    assert response.status_code == 400

    def construct_event(payload, signature, secret):
        raise stripe.SignatureVerificationError("bad signature", signature)

    monkeypatch.setattr(stripe_webhooks.stripe.Webhook, "construct_event", construct_event)
    response = api_client.post("/stripe/webhook", content=b"{}", headers={"Stripe-Signature": "t=1,v1=bad"})
    assert response.status_code == 400


def test_checkout_completed_without_owner_is_rejected(api_client, monkeypatch):
    def construct_event(payload, signature, secret):
        return stripe.Event.construct_from(
            _event("evt_bad", "checkout.session.completed", {"customer": "cus_1", "metadata": {}}), "sk_test_123"
        )

    monkeypatch.setattr(stripe_webhooks.stripe.Webhook, "construct_event", construct_event)
    response = api_client.post("/stripe/webhook", content=b"{}", headers={"Stripe-Signature": "sig"})
    assert response.status_code == 400


def _signed_headers(payload: bytes, secret: str = "whsec_test") -> dict[str, str]:
    timestamp = int(time.time())
    signed = f"{timestamp}.".encode() + payload
    signature = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return {"Stripe-Signature": f"t={timestamp},v1={signature}", "Content-Type": "application/json"}


def test_signed_checkout_completed_upgrades_account(api_client, db_session):
    AccountsRepository(db_session).get_or_create(TEST_USER_ID, is_anonymous=False)
    payload = json.dumps(
        {
            "id": "evt_signed_1",
            "object": "event",
            "type": "checkout.session.completed",
            "data": {
                "object": {
                    "id": "cs_test_signed",
                    "object": "checkout.session",
                    "customer": "cus_signed",
                    "metadata": {"owner_id": TEST_USER_ID},
                }
            },
        }
    ).encode()

    response = api_client.post("/stripe/webhook", content=payload, headers=_signed_headers(payload))
    assert response.status_code == 200
    assert response.json() == {"received": True}

    account = AccountsRepository(db_session).get(TEST_USER_ID)
    db_session.refresh(account)
    assert account.subscription_status == SubscriptionStatusEnum.premium
    assert account.stripe_customer_id == "cus_signed"
    assert StripeEventsRepository(db_session).is_processed("evt_signed_1")


def test_signature_from_another_secret_is_rejected(api_client):
    payload = json.dumps({"id": "evt_forged", "object": "event", "type": "invoice.paid", "data": {"object": {}}}).encode()
    response = api_client.post("/stripe/webhook", content=payload, headers=_signed_headers(payload, "whsec_other"))
    assert response.status_code == 400
