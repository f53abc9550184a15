"""Workspace bookkeeping and session reconciliation.

Every owner has exactly one default workspace in the happy path. Older clients
could race each other into creating several, so bootstrap repairs duplicates
before picking the active workspace. Anonymous state (a server-side
``anon:<id>`` owner or a browser-storage snapshot) is folded into an
authenticated account without ever overwriting a profile the account already
has.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Iterable, Optional

from fastapi import HTTPException, status
from pydantic import ValidationError
from sqlalchemy.orm import Session

from mailcraft.config import settings
from mailcraft.db.base import atomic
from mailcraft.db.enums import CampaignStatusEnum
from mailcraft.db.models import Account, Workspace
from mailcraft.db.repositories.accounts import AccountsRepository
from mailcraft.db.repositories.campaigns import CampaignsRepository
from mailcraft.db.repositories.workspaces import WorkspacesRepository
from mailcraft.schemas.campaigns import CampaignUpsertRequest
from mailcraft.schemas.context import FullContext
from mailcraft.schemas.workspaces import (
    LocalStateImport,
    MergeResult,
    SessionState,
    WorkspaceOut,
    WorkspaceSnapshot,
)
from mailcraft.services.campaigns import campaign_to_schema, upsert_campaign
from mailcraft.services.context_schema import (
    context_has_data,
    reconcile_audience,
    reconcile_brand,
    reconcile_context,
)

logger = logging.getLogger(__name__)

UNTITLED_CAMPAIGN_NAME = "Untitled Campaign"


def context_columns(context: FullContext) -> dict[str, Any]:
    return {
        "brand_context": context.brand.model_dump(mode="json"),
        "audience_context": context.audience.model_dump(mode="json"),
        "offer_context": context.offer.model_dump(mode="json"),
    }


def workspace_to_context(workspace: Workspace) -> Optional[FullContext]:
    """The stored profile, or ``None`` when no section holds meaningful data."""
    context = reconcile_context(
        {
            "brand": workspace.brand_context or {},
            "audience": workspace.audience_context or {},
            "offer": workspace.offer_context or {},
        }
    )
    return context if context_has_data(context) else None


def _has_seed_data(workspace: Workspace) -> bool:
    brand = reconcile_brand(workspace.brand_context or {})
    audience = reconcile_audience(workspace.audience_context or {})
    return bool(brand.name or audience.jobTitles)


def workspace_to_out(workspace: Workspace) -> WorkspaceOut:
    return WorkspaceOut(
        id=workspace.id,
        name=workspace.name,
        is_default=workspace.is_default,
        has_profile=workspace_to_context(workspace) is not None,
        created_at=workspace.created_at,
        updated_at=workspace.updated_at,
    )


def _clean_name(name: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Workspace name cannot be empty")
    return cleaned


def get_workspace_or_404(session: Session, owner_id: str, workspace_id: str) -> Workspace:
    workspace = WorkspacesRepository(session).get(owner_id, workspace_id)
    if not workspace:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Workspace not found")
    return workspace


def get_or_create_default_workspace(session: Session, owner_id: str) -> Workspace:
    repo = WorkspacesRepository(session)
    defaults = repo.list_defaults(owner_id)
    if defaults:
        return defaults[0]
    logger.info("Creating default workspace", extra={"owner_id": owner_id})
    return repo.create(owner_id, settings.DEFAULT_WORKSPACE_NAME, is_default=True)


def cleanup_duplicate_default_workspaces(session: Session, owner_id: str) -> Optional[Workspace]:
    """Keep the oldest default; demote duplicates with data, fold empty ones into it."""
    repo = WorkspacesRepository(session)
    defaults = repo.list_defaults(owner_id)
    if len(defaults) <= 1:
        return defaults[0] if defaults else None

    canonical, duplicates = defaults[0], defaults[1:]
    campaigns_repo = CampaignsRepository(session)
    for duplicate in duplicates:
        if _has_seed_data(duplicate):
            fields: dict[str, Any] = {"is_default": False}
            if duplicate.name == settings.DEFAULT_WORKSPACE_NAME:
                created = duplicate.created_at
                fields["name"] = f"{settings.DEFAULT_WORKSPACE_NAME} ({created.month}/{created.day}/{created.year})"
            repo.update(duplicate, **fields)
            logger.info(
                "Demoted duplicate default workspace",
                extra={"owner_id": owner_id, "workspace_id": duplicate.id, "name": duplicate.name},
            )
        else:
            campaigns_repo.move_to_workspace(duplicate.id, canonical.id)
            repo.delete(duplicate)
            logger.info(
                "Removed empty duplicate default workspace",
                extra={"owner_id": owner_id, "workspace_id": duplicate.id, "canonical_id": canonical.id},
            )
    return canonical


def list_workspaces(session: Session, owner_id: str) -> list[Workspace]:
    return WorkspacesRepository(session).list(owner_id)


def create_workspace(session: Session, owner_id: str, name: str) -> Workspace:
    return WorkspacesRepository(session).create(owner_id, _clean_name(name))


def rename_workspace(session: Session, workspace: Workspace, name: str) -> Workspace:
    return WorkspacesRepository(session).update(workspace, name=_clean_name(name))


def delete_workspace(session: Session, account: Account, workspace: Workspace) -> None:
    if workspace.is_default:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="The default workspace cannot be deleted")
    workspace_id = workspace.id
    CampaignsRepository(session).delete_for_workspace(workspace_id)
    WorkspacesRepository(session).delete(workspace)
    if account.active_workspace_id == workspace_id:
        default = get_or_create_default_workspace(session, account.id)
        AccountsRepository(session).update(account, active_workspace_id=default.id)
    logger.info("Deleted workspace", extra={"owner_id": account.id, "workspace_id": workspace_id})


def save_workspace_context(session: Session, workspace: Workspace, context: FullContext) -> Workspace:
    return WorkspacesRepository(session).update(workspace, **context_columns(context))


def active_workspace(session: Session, account: Account) -> Workspace:
    """The workspace the account last switched to, falling back to its default."""
    workspace = None
    if account.active_workspace_id:
        workspace = WorkspacesRepository(session).get(account.id, account.active_workspace_id)
    if workspace is None:
        workspace = get_or_create_default_workspace(session, account.id)
        AccountsRepository(session).update(account, active_workspace_id=workspace.id)
    return workspace


def resolve_workspace(session: Session, account: Account, workspace_id: Optional[str] = None) -> Workspace:
    if workspace_id:
        return get_workspace_or_404(session, account.id, workspace_id)
    return active_workspace(session, account)


def workspace_snapshot(session: Session, workspace: Workspace) -> WorkspaceSnapshot:
    campaigns = CampaignsRepository(session).list(workspace.owner_id, workspace.id)
    return WorkspaceSnapshot(
        workspace=workspace_to_out(workspace),
        context=workspace_to_context(workspace),
        campaigns=[campaign_to_schema(campaign) for campaign in campaigns],
    )


def switch_workspace(session: Session, account: Account, workspace_id: str) -> WorkspaceSnapshot:
    workspace = get_workspace_or_404(session, account.id, workspace_id)
    AccountsRepository(session).update(account, active_workspace_id=workspace.id)
    return workspace_snapshot(session, workspace)


def bootstrap_session(session: Session, account: Account) -> SessionState:
    cleanup_duplicate_default_workspaces(session, account.id)
    workspace = active_workspace(session, account)
    return SessionState(
        workspaces=[workspace_to_out(item) for item in list_workspaces(session, account.id)],
        active=workspace_snapshot(session, workspace),
    )


def _local_campaign(raw: Mapping[str, Any]) -> Optional[CampaignUpsertRequest]:
    status_value = raw.get("status")
    if status_value not in {item.value for item in CampaignStatusEnum}:
        status_value = CampaignStatusEnum.draft.value
    emails = raw.get("emails")
    try:
        return CampaignUpsertRequest(
            name=str(raw.get("name") or "").strip() or UNTITLED_CAMPAIGN_NAME,
            goal=str(raw.get("goal") or "custom"),
            status=status_value,
            emails=[email for email in emails if isinstance(email, Mapping)] if isinstance(emails, list) else [],
            createdAt=raw.get("createdAt") or raw.get("created_at"),
            lastEditedAt=raw.get("lastEditedAt") or raw.get("updated_at"),
        )
    except ValidationError:
        logger.warning("Skipping unreadable local campaign", extra={"campaign_id": raw.get("id")})
        return None


def _merge_into_account(
    session: Session,
    account: Account,
    incoming_context: Optional[FullContext],
    incoming_campaigns: Iterable[Mapping[str, Any]],
) -> MergeResult:
    target = active_workspace(session, account)
    created_workspace = False
    profile_applied = False

    if incoming_context is not None and context_has_data(incoming_context):
        if workspace_to_context(target) is None:
            target = save_workspace_context(session, target, incoming_context)
        else:
            name = incoming_context.brand.name.strip() or settings.IMPORTED_WORKSPACE_NAME
            target = WorkspacesRepository(session).create(account.id, name, **context_columns(incoming_context))
            AccountsRepository(session).update(account, active_workspace_id=target.id)
            created_workspace = True
        profile_applied = True

    campaigns_repo = CampaignsRepository(session)
    imported = skipped = 0
    for raw in incoming_campaigns:
        campaign_id = str(raw.get("id") or "").strip()
        payload = _local_campaign(raw)
        if not campaign_id or payload is None or campaigns_repo.exists(campaign_id):
            skipped += 1
            continue
        upsert_campaign(
            session,
            owner_id=account.id,
            workspace_id=target.id,
            campaign_id=campaign_id,
            payload=payload,
        )
        imported += 1

    logger.info(
        "Merged anonymous state",
        extra={
            "owner_id": account.id,
            "workspace_id": target.id,
            "created_workspace": created_workspace,
            "profile_applied": profile_applied,
            "campaigns_imported": imported,
            "campaigns_skipped": skipped,
        },
    )
    return MergeResult(
        workspace_id=target.id,
        created_workspace=created_workspace,
        profile_applied=profile_applied,
        campaigns_imported=imported,
        campaigns_skipped=skipped,
    )


def import_local_state(session: Session, account: Account, payload: LocalStateImport) -> MergeResult:
    """Fold a browser-storage snapshot (any historical profile shape) into ``account``."""
    context = reconcile_context(payload.context) if payload.context else None
    with atomic(session):
        return _merge_into_account(session, account, context, payload.campaigns)


def merge_anonymous_state(session: Session, account: Account, anonymous_owner_id: str) -> MergeResult:
    """Move a server-side anonymous owner's profile and campaigns into ``account``, then drop the owner."""
    accounts_repo = AccountsRepository(session)
    workspaces_repo = WorkspacesRepository(session)
    campaigns_repo = CampaignsRepository(session)

    anonymous = accounts_repo.get(anonymous_owner_id)
    if anonymous is None or not anonymous.is_anonymous:
        target = active_workspace(session, account)
        return MergeResult(
            workspace_id=target.id,
            created_workspace=False,
            profile_applied=False,
            campaigns_imported=0,
            campaigns_skipped=0,
        )

    anonymous_workspaces = workspaces_repo.list(anonymous.id)
    context = next(
        (found for found in (workspace_to_context(item) for item in anonymous_workspaces) if found is not None),
        None,
    )
    campaigns = [
        campaign_to_schema(campaign).model_dump(mode="json")
        for campaign in campaigns_repo.list_for_owner(anonymous.id)
    ]

    # Campaign ids are global, so the anonymous rows go before the copies are written.
    with atomic(session):
        for workspace in anonymous_workspaces:
            campaigns_repo.delete_for_workspace(workspace.id)
            workspaces_repo.delete(workspace)
        accounts_repo.delete(anonymous)
        return _merge_into_account(session, account, context, campaigns)
