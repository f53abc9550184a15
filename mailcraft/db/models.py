from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

import sqlalchemy as sa
from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from mailcraft.db.base import Base
from mailcraft.db.enums import ApiKeyProviderEnum, CampaignStatusEnum, SubscriptionStatusEnum

# JSONB on Postgres, plain JSON elsewhere (SQLite for local runs and tests).
JSONType = sa.JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


class Account(Base):
    __tablename__ = "accounts"

    # Authenticated owners use the token subject; anonymous owners use "anon:<browser id>".
    id: Mapped[str] = mapped_column(String(length=128), primary_key=True)
    email: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    display_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_anonymous: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    subscription_status: Mapped[SubscriptionStatusEnum] = mapped_column(
        Enum(SubscriptionStatusEnum, name="subscription_status"),
        nullable=False,
        default=SubscriptionStatusEnum.free,
    )
    stripe_customer_id: Mapped[Optional[str]] = mapped_column(String(length=255), nullable=True, index=True)
    usage_period: Mapped[Optional[str]] = mapped_column(String(length=7), nullable=True)
    api_usage_this_month: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    api_usage_cap: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    own_api_key: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    own_api_provider: Mapped[Optional[ApiKeyProviderEnum]] = mapped_column(
        Enum(ApiKeyProviderEnum, name="api_key_provider"), nullable=True
    )
    active_workspace_id: Mapped[Optional[str]] = mapped_column(String(length=64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )


class Workspace(Base):
    __tablename__ = "workspaces"
    __table_args__ = (sa.Index("idx_workspaces_owner_default", "owner_id", "is_default"),)

    id: Mapped[str] = mapped_column(String(length=64), primary_key=True, default=new_id)
    owner_id: Mapped[str] = mapped_column(
        ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    brand_context: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    audience_context: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    offer_context: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )


class Campaign(Base):
    __tablename__ = "campaigns"
    __table_args__ = (sa.Index("idx_campaigns_owner_workspace", "owner_id", "workspace_id"),)

    # Ids may be assigned by the browser, so they are opaque strings rather than UUIDs.
    id: Mapped[str] = mapped_column(String(length=64), primary_key=True, default=new_id)
    owner_id: Mapped[str] = mapped_column(ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    workspace_id: Mapped[str] = mapped_column(ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    goal: Mapped[str] = mapped_column(String(length=64), nullable=False, default="custom")
    status: Mapped[CampaignStatusEnum] = mapped_column(
        Enum(CampaignStatusEnum, name="campaign_status"),
        nullable=False,
        default=CampaignStatusEnum.draft,
    )
    emails: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class ProcessedStripeEvent(Base):
    __tablename__ = "processed_stripe_events"

    event_id: Mapped[str] = mapped_column(String(length=255), primary_key=True)
    event_type: Mapped[str] = mapped_column(String(length=128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
