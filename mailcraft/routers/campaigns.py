import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from mailcraft.auth.dependencies import Owner, get_current_owner
from mailcraft.db.deps import get_session
from mailcraft.db.enums import ExportFormatEnum
from mailcraft.db.repositories.campaigns import CampaignsRepository
from mailcraft.llm.client import build_llm_client
from mailcraft.schemas.campaigns import (
    Campaign,
    CampaignGenerateRequest,
    CampaignPatchRequest,
    CampaignUpsertRequest,
    EmailUpdateRequest,
)
from mailcraft.services.campaign_ai import generate_campaign
from mailcraft.services.campaigns import (
    campaign_to_schema,
    get_campaign_or_404,
    patch_campaign,
    save_generated_campaign,
    update_email,
    upsert_campaign,
)
from mailcraft.services.export import MEDIA_TYPES, content_disposition, export_filename, render_export
from mailcraft.services.usage import ensure_can_generate, record_usage
from mailcraft.services.workspaces import resolve_workspace, workspace_to_context

router = APIRouter(prefix="/api/campaigns", tags=["campaigns"])
logger = logging.getLogger(__name__)


@router.post("/", response_model=Campaign, status_code=status.HTTP_201_CREATED)
def generate(
    payload: CampaignGenerateRequest,
    owner: Owner = Depends(get_current_owner),
    session: Session = Depends(get_session),
):
    workspace = resolve_workspace(session, owner.account, payload.workspace_id)
    context = workspace_to_context(workspace)
    if context is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Set up your brand profile before generating a campaign.",
        )

    account = ensure_can_generate(session, owner.account)
    llm = build_llm_client(account.own_api_provider, account.own_api_key)
    generated = generate_campaign(llm, payload.campaign_type, context, payload.additional_details)
    record_usage(session, account)

    campaign = save_generated_campaign(
        session,
        owner_id=owner.id,
        workspace_id=workspace.id,
        campaign=generated,
    )
    logger.info(
        "Generated campaign",
        extra={"owner_id": owner.id, "campaign_id": campaign.id, "goal": campaign.goal, "emails": len(generated.emails)},
    )
    return campaign_to_schema(campaign)


@router.get("/", response_model=list[Campaign])
def list_campaigns(
    workspace_id: Optional[str] = None,
    owner: Owner = Depends(get_current_owner),
    session: Session = Depends(get_session),
):
    workspace = resolve_workspace(session, owner.account, workspace_id)
    campaigns = CampaignsRepository(session).list(owner.id, workspace.id)
    return [campaign_to_schema(campaign) for campaign in campaigns]


@router.get("/{campaign_id}", response_model=Campaign)
def get_campaign(
    campaign_id: str,
    owner: Owner = Depends(get_current_owner),
    session: Session = Depends(get_session),
):
    return campaign_to_schema(get_campaign_or_404(session, owner.id, campaign_id))


@router.put("/{campaign_id}", response_model=Campaign)
def put_campaign(
    campaign_id: str,
    payload: CampaignUpsertRequest,
    owner: Owner = Depends(get_current_owner),
    session: Session = Depends(get_session),
):
    workspace_id = payload.workspace_id
    if not workspace_id:
        existing = CampaignsRepository(session).get(owner.id, campaign_id)
        workspace_id = existing.workspace_id if existing else None
    workspace = resolve_workspace(session, owner.account, workspace_id)
    campaign = upsert_campaign(
        session,
        owner_id=owner.id,
        workspace_id=workspace.id,
        campaign_id=campaign_id,
        payload=payload,
    )
    return campaign_to_schema(campaign)


@router.patch("/{campaign_id}", response_model=Campaign)
def patch(
    campaign_id: str,
    payload: CampaignPatchRequest,
    owner: Owner = Depends(get_current_owner),
    session: Session = Depends(get_session),
):
    campaign = get_campaign_or_404(session, owner.id, campaign_id)
    return campaign_to_schema(patch_campaign(session, campaign, payload))


@router.delete("/{campaign_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_campaign(
    campaign_id: str,
    owner: Owner = Depends(get_current_owner),
    session: Session = Depends(get_session),
):
    if not CampaignsRepository(session).delete(owner.id, campaign_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Campaign not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{campaign_id}/emails/{email_id}", response_model=Campaign)
def put_email(
    campaign_id: str,
    email_id: str,
    payload: EmailUpdateRequest,
    owner: Owner = Depends(get_current_owner),
    session: Session = Depends(get_session),
):
    campaign = get_campaign_or_404(session, owner.id, campaign_id)
    return campaign_to_schema(update_email(session, campaign, email_id, payload))


@router.get("/{campaign_id}/export")
def export_campaign(
    campaign_id: str,
    export_format: ExportFormatEnum = Query(ExportFormatEnum.txt, alias="format"),
    owner: Owner = Depends(get_current_owner),
    session: Session = Depends(get_session),
):
    campaign = campaign_to_schema(get_campaign_or_404(session, owner.id, campaign_id))
    filename = export_filename(campaign, export_format)
    return Response(
        content=render_export(campaign, export_format),
        media_type=MEDIA_TYPES[export_format],
        headers={"Content-Disposition": content_disposition(filename)},
    )
