"""Planning event API routes — thin layer over the planning services."""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from planning_service.database import get_db
from planning_service.models.planning_event import (
    PlanningEventKind, PlanningEventStatus, PlanningPriority,
)
from planning_service.schemas.comment import CommentCreate, CommentOut
from planning_service.schemas.document import DocumentListOut
from planning_service.schemas.planning_event import (
    ArchiveOut, EventCreate, EventPatch, PlanningEventDetailOut, PlanningEventListOut, PlanningEventOut,
)
from planning_service.schemas.types import as_utc
from planning_service.services import attachment_service, document_storage, event_service, planning_queries
from planning_service.services.audit_service import AuditContext
from planning_service.services.errors import not_found

logger = logging.getLogger(__name__)
router = APIRouter()


def _audit_context(request: Request, actor_user_id: str) -> AuditContext:
    forwarded = request.headers.get("x-forwarded-for")
    ip = forwarded.split(",")[0].strip() if forwarded else (request.client.host if request.client else None)
    return AuditContext(
        actor_user_id=actor_user_id,
        ip=ip,
        user_agent=request.headers.get("user-agent"),
        path=request.url.path,
        page_key=request.headers.get("x-page-key"),
        client_session_id=request.headers.get("x-client-session-id"),
    )


@router.get("/events", response_model=PlanningEventListOut)
def list_events(
    range_start_utc: datetime = Query(...),
    range_end_utc: datetime = Query(...),
    machine_id: Optional[str] = Query(None),
    workstation_id: Optional[str] = Query(None),
    order_id: Optional[int] = Query(None, gt=0),
    operation_id: Optional[str] = Query(None),
    kind: Optional[PlanningEventKind] = Query(None),
    status: Optional[PlanningEventStatus] = Query(None),
    priority: Optional[PlanningPriority] = Query(None),
    include_archived: bool = Query(False),
    db: Session = Depends(get_db),
):
    """Events overlapping the half-open range, ordered by start time."""
    return planning_queries.list_events(
        db,
        range_start_utc=as_utc(range_start_utc),
        range_end_utc=as_utc(range_end_utc),
        machine_id=machine_id,
        workstation_id=workstation_id,
        order_id=order_id,
        operation_id=operation_id,
        kind=kind,
        status=status,
        priority=priority,
        include_archived=include_archived,
    )


@router.post("/events", response_model=PlanningEventOut, status_code=status.HTTP_201_CREATED)
def create_event(
    payload: EventCreate,
    request: Request,
    actor_user_id: str = Query(..., min_length=1, max_length=36),
    db: Session = Depends(get_db),
):
    """Book a machine or workstation; 409 PLANNING_CONFLICT if the slot is taken."""
    return event_service.create_event(db, payload, _audit_context(request, actor_user_id))


@router.get("/events/{event_id}", response_model=PlanningEventDetailOut)
def get_event(event_id: str, db: Session = Depends(get_db)):
    """Event view with its comments and documents."""
    detail = planning_queries.get_event_detail(db, event_id)
    if detail is None:
        raise not_found()
    return detail


@router.patch("/events/{event_id}", response_model=PlanningEventOut)
def patch_event(
    event_id: str,
    payload: EventPatch,
    request: Request,
    actor_user_id: str = Query(..., min_length=1, max_length=36),
    db: Session = Depends(get_db),
):
    """Partial update; supply expected_updated_at and/or expected_version to guard against lost updates."""
    patch = payload.model_dump(exclude_unset=True, exclude={"expected_updated_at", "expected_version"})
    return event_service.patch_event(
        db,
        event_id,
        patch,
        _audit_context(request, actor_user_id),
        expected_updated_at=payload.expected_updated_at,
        expected_version=payload.expected_version,
    )


@router.delete("/events/{event_id}", response_model=ArchiveOut)
def archive_event(
    event_id: str,
    request: Request,
    actor_user_id: str = Query(..., min_length=1, max_length=36),
    db: Session = Depends(get_db),
):
    """Archive (soft-delete) an event. Repeating the call is harmless."""
    result = event_service.archive_event(db, event_id, _audit_context(request, actor_user_id))
    return ArchiveOut(event_id=event_id, result=result.value)


@router.post("/events/{event_id}/comments", response_model=CommentOut, status_code=status.HTTP_201_CREATED)
def add_comment(
    event_id: str,
    payload: CommentCreate,
    request: Request,
    actor_user_id: str = Query(..., min_length=1, max_length=36),
    db: Session = Depends(get_db),
):
    """Append a comment to an event."""
    return attachment_service.add_comment(db, event_id, payload.body, _audit_context(request, actor_user_id))


@router.post("/events/{event_id}/documents", response_model=DocumentListOut, status_code=status.HTTP_201_CREATED)
def upload_documents(
    event_id: str,
    request: Request,
    documents: list[UploadFile] = File(default=[]),
    actor_user_id: str = Query(..., min_length=1, max_length=36),
    db: Session = Depends(get_db),
):
    """Attach one or more documents to an event, all or nothing."""
    uploads: list[attachment_service.UploadedDocument] = []
    try:
        for upload in documents:
            uploads.append(attachment_service.UploadedDocument(
                original_name=upload.filename or "document",
                path=document_storage.spool_upload(upload.file),
                media_type=upload.content_type,
            ))
        stored = attachment_service.attach_documents(
            db, event_id, uploads, _audit_context(request, actor_user_id),
        )
    finally:
        # spooled files not moved into storage
        for upload in uploads:
            document_storage.discard(upload.path)
    return DocumentListOut(documents=stored)


@router.get("/events/{event_id}/documents/{document_id}/file")
def download_document(
    event_id: str,
    document_id: str,
    download: bool = Query(False),
    db: Session = Depends(get_db),
):
    """Serve a document inline, or as an attachment when ``download`` is set."""
    doc = attachment_service.get_document_file(db, event_id, document_id)
    return FileResponse(
        doc.path,
        media_type=doc.media_type,
        filename=doc.filename,
        content_disposition_type="attachment" if download else "inline",
    )
