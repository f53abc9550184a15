from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from mailcraft.auth.dependencies import Owner, anonymous_owner_id, get_current_owner, require_authenticated
from mailcraft.db.deps import get_session
from mailcraft.schemas.workspaces import LocalStateImport, MergeAnonymousRequest, MergeResult, SessionState
from mailcraft.services.workspaces import bootstrap_session, import_local_state, merge_anonymous_state

router = APIRouter(prefix="/api/session", tags=["session"])


@router.post("/bootstrap", response_model=SessionState)
def bootstrap(
    owner: Owner = Depends(get_current_owner),
    session: Session = Depends(get_session),
):
    return bootstrap_session(session, owner.account)


@router.post("/merge-anonymous", response_model=MergeResult)
def merge_anonymous(
    payload: MergeAnonymousRequest,
    owner: Owner = Depends(require_authenticated),
    session: Session = Depends(get_session),
):
    return merge_anonymous_state(session, owner.account, anonymous_owner_id(payload.anonymous_id))


@router.post("/import-local", response_model=MergeResult)
def import_local(
    payload: LocalStateImport,
    owner: Owner = Depends(require_authenticated),
    session: Session = Depends(get_session),
):
    return import_local_state(session, owner.account, payload)
