from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from mailcraft.auth.dependencies import Owner, get_current_owner, require_authenticated
from mailcraft.db.deps import get_session
from mailcraft.schemas.workspaces import WorkspaceCreate, WorkspaceOut, WorkspaceRename, WorkspaceSnapshot
from mailcraft.services.workspaces import (
    create_workspace,
    delete_workspace,
    get_workspace_or_404,
    list_workspaces,
    rename_workspace,
    switch_workspace,
    workspace_snapshot,
    workspace_to_out,
)

router = APIRouter(prefix="/api/workspaces", tags=["workspaces"])


@router.get("/", response_model=list[WorkspaceOut])
def list_owner_workspaces(
    owner: Owner = Depends(get_current_owner),
    session: Session = Depends(get_session),
):
    return [workspace_to_out(workspace) for workspace in list_workspaces(session, owner.id)]


@router.post("/", response_model=WorkspaceOut, status_code=status.HTTP_201_CREATED)
def create(
    payload: WorkspaceCreate,
    owner: Owner = Depends(require_authenticated),
    session: Session = Depends(get_session),
):
    return workspace_to_out(create_workspace(session, owner.id, payload.name))


@router.get("/{workspace_id}", response_model=WorkspaceSnapshot)
def get_workspace(
    workspace_id: str,
    owner: Owner = Depends(get_current_owner),
    session: Session = Depends(get_session),
):
    return workspace_snapshot(session, get_workspace_or_404(session, owner.id, workspace_id))


@router.patch("/{workspace_id}", response_model=WorkspaceOut)
def rename(
    workspace_id: str,
    payload: WorkspaceRename,
    owner: Owner = Depends(require_authenticated),
    session: Session = Depends(get_session),
):
    workspace = get_workspace_or_404(session, owner.id, workspace_id)
    return workspace_to_out(rename_workspace(session, workspace, payload.name))


@router.delete("/{workspace_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete(
    workspace_id: str,
    owner: Owner = Depends(require_authenticated),
    session: Session = Depends(get_session),
):
    workspace = get_workspace_or_404(session, owner.id, workspace_id)
    delete_workspace(session, owner.account, workspace)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{workspace_id}/switch", response_model=WorkspaceSnapshot)
def switch(
    workspace_id: str,
    owner: Owner = Depends(get_current_owner),
    session: Session = Depends(get_session),
):
    return switch_workspace(session, owner.account, workspace_id)
