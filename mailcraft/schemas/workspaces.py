from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from mailcraft.schemas.campaigns import Campaign
from mailcraft.schemas.context import FullContext


class WorkspaceCreate(BaseModel):
    name: str = Field(..., min_length=1)


class WorkspaceRename(BaseModel):
    name: str = Field(..., min_length=1)


class WorkspaceOut(BaseModel):
    id: str
    name: str
    is_default: bool
    has_profile: bool
    created_at: datetime
    updated_at: datetime


class WorkspaceSnapshot(BaseModel):
    workspace: WorkspaceOut
    context: Optional[FullContext] = None
    campaigns: List[Campaign] = []


class SessionState(BaseModel):
    workspaces: List[WorkspaceOut]
    active: WorkspaceSnapshot


class MergeAnonymousRequest(BaseModel):
    anonymous_id: str = Field(..., min_length=1)


class LocalStateImport(BaseModel):
    # Browser storage snapshot in any of the historical shapes; reconciled server-side.
    context: Optional[dict[str, Any]] = None
    campaigns: List[dict[str, Any]] = []


class MergeResult(BaseModel):
    workspace_id: str
    created_workspace: bool
    profile_applied: bool
    campaigns_imported: int
    campaigns_skipped: int
