from __future__ import annotations

import time
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from mailcraft.db.enums import EmailStatusEnum
from mailcraft.db.models import Campaign as CampaignRecord
from mailcraft.db.repositories.campaigns import CampaignsRepository
from mailcraft.schemas.campaigns import (
    Campaign,
    CampaignPatchRequest,
    CampaignUpsertRequest,
    Email,
    EmailUpdateRequest,
)
from mailcraft.services.campaign_ai import email_body_text, parse_day_offset


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _email_status(value: Any) -> EmailStatusEnum:
    try:
        return EmailStatusEnum(value)
    except ValueError:
        return EmailStatusEnum.draft


def normalize_email(raw: Mapping[str, Any], index: int, *, stamp: Optional[int] = None) -> Email:
    """Accept an email in the camelCase or the older snake_case shape."""
    stamp = stamp if stamp is not None else int(time.time() * 1000)
    timing = raw.get("dayOffset")
    if timing is None:
        timing = raw.get("day_offset", raw.get("send_timing"))
    return Email(
        id=str(raw.get("id") or f"email-{stamp}-{index}"),
        dayOffset=parse_day_offset(timing),
        type=str(raw.get("type") or "Email"),
        subject=str(raw.get("subject") or raw.get("subject_line") or ""),
        previewText=str(raw.get("previewText") or raw.get("preview_text") or ""),
        body=email_body_text(raw.get("body")),
        status=_email_status(raw.get("status")),
    )


def normalize_emails(raw_emails: Iterable[Any]) -> list[Email]:
    stamp = int(time.time() * 1000)
    return [
        normalize_email(raw, index, stamp=stamp)
        for index, raw in enumerate(raw_emails or [])
        if isinstance(raw, Mapping)
    ]


def _dump_emails(emails: Iterable[Email]) -> list[dict[str, Any]]:
    return [email.model_dump(mode="json") for email in emails]


def campaign_to_schema(campaign: CampaignRecord) -> Campaign:
    return Campaign(
        id=campaign.id,
        name=campaign.name,
        goal=campaign.goal,
        status=campaign.status,
        createdAt=_as_utc(campaign.created_at),
        lastEditedAt=_as_utc(campaign.updated_at),
        emails=normalize_emails(campaign.emails or []),
        workspaceId=campaign.workspace_id,
    )


def get_campaign_or_404(session: Session, owner_id: str, campaign_id: str) -> CampaignRecord:
    campaign = CampaignsRepository(session).get(owner_id, campaign_id)
    if not campaign:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Campaign not found")
    return campaign


def save_generated_campaign(
    session: Session,
    *,
    owner_id: str,
    workspace_id: str,
    campaign: Campaign,
) -> CampaignRecord:
    return CampaignsRepository(session).create(
        owner_id,
        workspace_id,
        campaign.name,
        id=campaign.id,
        goal=campaign.goal,
        status=campaign.status,
        emails=_dump_emails(campaign.emails),
        created_at=campaign.createdAt,
        updated_at=campaign.lastEditedAt,
    )


def upsert_campaign(
    session: Session,
    *,
    owner_id: str,
    workspace_id: str,
    campaign_id: str,
    payload: CampaignUpsertRequest,
) -> CampaignRecord:
    """Create or replace a campaign under ``campaign_id``; the last write wins."""
    name = payload.name.strip()
    if not name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Campaign name cannot be empty")
    repo = CampaignsRepository(session)
    now = datetime.now(timezone.utc)
    fields = {
        "name": name,
        "goal": payload.goal,
        "status": payload.status,
        "emails": _dump_emails(normalize_emails(payload.emails)),
        "updated_at": payload.lastEditedAt or now,
    }
    existing = repo.get(owner_id, campaign_id)
    if existing:
        return repo.update(existing, workspace_id=workspace_id, **fields)
    if repo.exists(campaign_id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Campaign id already in use")
    fields.pop("name")
    return repo.create(
        owner_id,
        workspace_id,
        name,
        id=campaign_id,
        created_at=payload.createdAt or now,
        **fields,
    )


def patch_campaign(session: Session, campaign: CampaignRecord, payload: CampaignPatchRequest) -> CampaignRecord:
    fields: dict[str, Any] = {}
    if payload.name is not None:
        name = payload.name.strip()
        if not name:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Campaign name cannot be empty")
        fields["name"] = name
    if payload.status is not None:
        fields["status"] = payload.status
    if payload.emails is not None:
        fields["emails"] = _dump_emails(normalize_emails(payload.emails))
    fields["updated_at"] = datetime.now(timezone.utc)
    return CampaignsRepository(session).update(campaign, **fields)


def update_email(
    session: Session,
    campaign: CampaignRecord,
    email_id: str,
    payload: EmailUpdateRequest,
) -> CampaignRecord:
    emails = normalize_emails(campaign.emails or [])
    target = next((email for email in emails if email.id == email_id), None)
    if target is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Email not found")

    if payload.subject_line is not None:
        target.subject = payload.subject_line
    if payload.preview_text is not None:
        target.previewText = payload.preview_text
    if payload.body is not None:
        target.body = email_body_text(payload.body)
    if payload.day_offset is not None:
        target.dayOffset = payload.day_offset
    if payload.type is not None:
        target.type = payload.type
    if payload.status is not None:
        target.status = payload.status

    return CampaignsRepository(session).update(
        campaign,
        emails=_dump_emails(emails),
        updated_at=datetime.now(timezone.utc),
    )
