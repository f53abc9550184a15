from __future__ import annotations

import logging
from typing import Any, Optional

import stripe
from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from mailcraft.config import settings
from mailcraft.db.enums import SubscriptionStatusEnum
from mailcraft.db.models import Account
from mailcraft.db.repositories.accounts import AccountsRepository
from mailcraft.db.repositories.stripe_events import StripeEventsRepository

logger = logging.getLogger(__name__)

OWNER_METADATA_KEY = "owner_id"


def _require_stripe() -> None:
    if not settings.STRIPE_SECRET_KEY or not settings.STRIPE_PRICE_ID:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Stripe is not configured.",
        )
    stripe.api_key = settings.STRIPE_SECRET_KEY


def create_checkout_session(session: Session, account: Account, return_url: Optional[str] = None) -> str:
    """Start a subscription checkout for ``account`` and return the hosted checkout URL."""
    if account.subscription_status == SubscriptionStatusEnum.premium:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Already subscribed")
    _require_stripe()

    accounts_repo = AccountsRepository(session)
    customer_id = account.stripe_customer_id
    if not customer_id:
        customer = stripe.Customer.create(
            email=account.email,
            metadata={OWNER_METADATA_KEY: account.id},
        )
        customer_id = customer.id
        account = accounts_repo.update(account, stripe_customer_id=customer_id)
        logger.info("Created Stripe customer", extra={"account_id": account.id, "customer_id": customer_id})

    base_url = (return_url or settings.CHECKOUT_DEFAULT_RETURN_URL).strip()
    checkout_session = stripe.checkout.Session.create(
        customer=customer_id,
        mode="subscription",
        line_items=[{"price": settings.STRIPE_PRICE_ID, "quantity": 1}],
        success_url=f"{base_url}#/upgrade-success",
        cancel_url=f"{base_url}#/login",
        metadata={OWNER_METADATA_KEY: account.id},
    )
    return checkout_session.url


def _set_status_by_customer(session: Session, customer_id: Optional[str], new_status: SubscriptionStatusEnum) -> None:
    if not customer_id:
        logger.warning("Subscription event without customer id")
        return
    accounts_repo = AccountsRepository(session)
    account = accounts_repo.get_by_stripe_customer(customer_id)
    if not account:
        logger.warning("No account for Stripe customer", extra={"customer_id": customer_id})
        return
    accounts_repo.update(account, subscription_status=new_status)
    logger.info(
        "Subscription status updated",
        extra={"account_id": account.id, "customer_id": customer_id, "status": new_status.value},
    )


def _handle_checkout_completed(session: Session, checkout: dict[str, Any]) -> None:
    metadata = checkout.get("metadata") or {}
    owner_id = metadata.get(OWNER_METADATA_KEY)
    if not owner_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Missing required metadata: {OWNER_METADATA_KEY}",
        )
    accounts_repo = AccountsRepository(session)
    account = accounts_repo.get(owner_id)
    if not account:
        logger.warning("Checkout completed for unknown account", extra={"owner_id": owner_id})
        return
    fields: dict[str, Any] = {"subscription_status": SubscriptionStatusEnum.premium}
    customer_id = checkout.get("customer")
    if customer_id:
        fields["stripe_customer_id"] = customer_id
    accounts_repo.update(account, **fields)
    logger.info("Account upgraded to premium", extra={"account_id": account.id, "customer_id": customer_id})


def apply_stripe_event(session: Session, event: dict[str, Any]) -> bool:
    """Apply a verified Stripe event; returns False for redeliveries and ignored types."""
    event_id = event.get("id")
    event_type = event.get("type") or ""
    events_repo = StripeEventsRepository(session)
    if event_id and events_repo.is_processed(event_id):
        logger.info("Skipping already processed Stripe event", extra={"event_id": event_id})
        return False

    data = event.get("data") or {}
    obj = data.get("object") or {}

    handled = True
    if event_type == "checkout.session.completed":
        _handle_checkout_completed(session, obj)
    elif event_type == "customer.subscription.updated":
        new_status = (
            SubscriptionStatusEnum.premium if obj.get("status") == "active" else SubscriptionStatusEnum.cancelled
        )
        _set_status_by_customer(session, obj.get("customer"), new_status)
    elif event_type == "customer.subscription.deleted":
        _set_status_by_customer(session, obj.get("customer"), SubscriptionStatusEnum.cancelled)
    else:
        logger.info("Unhandled Stripe event type", extra={"event_type": event_type})
        handled = False

    if event_id:
        events_repo.mark_processed(event_id, event_type)
    return handled
