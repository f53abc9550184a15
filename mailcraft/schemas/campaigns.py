from datetime import datetime
from typing import Any, List, Optional, Union

from pydantic import BaseModel, Field

from mailcraft.db.enums import CampaignGoalEnum, CampaignStatusEnum, EmailStatusEnum


class Email(BaseModel):
    id: str
    dayOffset: int = Field(0, ge=0)
    type: str = "Email"
    subject: str = ""
    previewText: str = ""
    body: str = ""
    status: EmailStatusEnum = EmailStatusEnum.draft


class Campaign(BaseModel):
    id: str
    name: str
    goal: str = CampaignGoalEnum.custom.value
    status: CampaignStatusEnum = CampaignStatusEnum.draft
    createdAt: datetime
    lastEditedAt: datetime
    emails: List[Email] = []
    workspaceId: Optional[str] = None


class CampaignGenerateRequest(BaseModel):
    campaign_type: CampaignGoalEnum
    additional_details: Optional[str] = None
    workspace_id: Optional[str] = None


class CampaignUpsertRequest(BaseModel):
    name: str = Field(..., min_length=1)
    goal: str = CampaignGoalEnum.custom.value
    status: CampaignStatusEnum = CampaignStatusEnum.draft
    emails: List[dict[str, Any]] = []
    createdAt: Optional[datetime] = None
    lastEditedAt: Optional[datetime] = None
    workspace_id: Optional[str] = None


class CampaignPatchRequest(BaseModel):
    name: Optional[str] = None
    status: Optional[CampaignStatusEnum] = None
    emails: Optional[List[dict[str, Any]]] = None


class EmailUpdateRequest(BaseModel):
    subject_line: Optional[str] = None
    preview_text: Optional[str] = None
    # Either plain text or the older {hook, context, value, cta, signoff} sections.
    body: Optional[Union[str, dict[str, Any]]] = None
    day_offset: Optional[int] = Field(None, ge=0)
    type: Optional[str] = None
    status: Optional[EmailStatusEnum] = None
