from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, File, HTTPException, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from mailcraft.auth.dependencies import Owner, get_current_owner
from mailcraft.config import settings
from mailcraft.db.deps import get_session
from mailcraft.llm.client import build_llm_client
from mailcraft.schemas.context import (
    ContextSection,
    ExtractedSourceResponse,
    ExtractUrlRequest,
    FullContext,
    ProcessContextRequest,
)
from mailcraft.services.context_ai import analyze_context
from mailcraft.services.context_schema import reconcile_context, refresh_compat_fields
from mailcraft.services.extraction import (
    ExtractedSource,
    ExtractionError,
    extract_text_from_file,
    extract_text_from_url,
)
from mailcraft.services.usage import ensure_can_generate, record_usage
from mailcraft.services.workspaces import resolve_workspace, save_workspace_context, workspace_to_context

router = APIRouter(prefix="/api/context", tags=["context"])


def _source_response(source: ExtractedSource) -> ExtractedSourceResponse:
    return ExtractedSourceResponse(text=source.text, name=source.name, characters=source.characters, url=source.url)


@router.post("/process", response_model=FullContext)
def process_context(
    payload: ProcessContextRequest,
    owner: Owner = Depends(get_current_owner),
    session: Session = Depends(get_session),
):
    if not payload.raw_text.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Business description is required.")
    account = ensure_can_generate(session, owner.account)
    llm = build_llm_client(account.own_api_provider, account.own_api_key)
    context = analyze_context(llm, payload.raw_text)
    record_usage(session, account)
    return context


@router.post("/extract-file", response_model=ExtractedSourceResponse)
async def extract_file(
    file: UploadFile = File(...),
    owner: Owner = Depends(get_current_owner),
):
    limit = settings.EXTRACTION_MAX_UPLOAD_BYTES
    if file.size is not None and file.size > limit:
        raise ExtractionError("File is too large.", status_code=413)
    content = await file.read(limit + 1)
    source = await run_in_threadpool(extract_text_from_file, file.filename or "upload", content)
    return _source_response(source)


@router.post("/extract-url", response_model=ExtractedSourceResponse)
def extract_url(
    payload: ExtractUrlRequest,
    owner: Owner = Depends(get_current_owner),
):
    return _source_response(extract_text_from_url(payload.url))


@router.post("/save-processed", response_model=FullContext)
def save_processed_context(
    payload: dict[str, Any] = Body(...),
    workspace_id: Optional[str] = None,
    owner: Owner = Depends(get_current_owner),
    session: Session = Depends(get_session),
):
    workspace = resolve_workspace(session, owner.account, workspace_id)
    context = reconcile_context(payload)
    save_workspace_context(session, workspace, context)
    return context


@router.get("", response_model=FullContext)
def get_context(
    workspace_id: Optional[str] = None,
    owner: Owner = Depends(get_current_owner),
    session: Session = Depends(get_session),
):
    workspace = resolve_workspace(session, owner.account, workspace_id)
    context = workspace_to_context(workspace)
    if context is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No profile saved for this workspace")
    return context


@router.put("/{section}", response_model=FullContext)
def update_context_section(
    section: ContextSection,
    payload: dict[str, Any] = Body(...),
    workspace_id: Optional[str] = None,
    owner: Owner = Depends(get_current_owner),
    session: Session = Depends(get_session),
):
    workspace = resolve_workspace(session, owner.account, workspace_id)
    current = workspace_to_context(workspace) or FullContext()
    incoming = reconcile_context({section: payload})
    merged = current.model_copy(update={section: getattr(incoming, section)})
    context = refresh_compat_fields(merged, section)
    save_workspace_context(session, workspace, context)
    return context
