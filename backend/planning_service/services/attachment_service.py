"""Comments and documents attached to planning events.

Both are append-only and refused on archived events.
"""
import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from sqlalchemy.orm import Session

from planning_service.database import transaction
from planning_service.models.comment import PlanningEventComment
from planning_service.models.document import Document, PlanningEventDocument
from planning_service.models.planning_event import PlanningEvent
from planning_service.schemas.comment import CommentOut
from planning_service.schemas.document import DocumentOut
from planning_service.services import document_storage
from planning_service.services.audit_service import AuditContext, ENTITY_PLANNING_EVENTS, record
from planning_service.services.errors import archived_immutable, bad_request, not_found
from planning_service.services.planning_queries import get_comment, get_document_meta, list_documents

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadedDocument:
    """A file already spooled to disk, waiting to be attached."""

    original_name: str
    path: Path
    media_type: Optional[str] = None


@dataclass(frozen=True)
class DocumentFile:
    path: Path
    filename: str
    media_type: str


def _require_open_event(db: Session, event_id: str) -> PlanningEvent:
    event = db.query(PlanningEvent).filter(PlanningEvent.event_id == event_id).with_for_update().first()
    if event is None:
        raise not_found()
    if event.archived_at is not None:
        raise archived_immutable()
    return event


def add_comment(db: Session, event_id: str, body: str, audit: AuditContext) -> CommentOut:
    with transaction(db):
        _require_open_event(db, event_id)
        comment = PlanningEventComment(
            comment_id=str(uuid.uuid4()),
            event_id=event_id,
            body=body,
            created_by=audit.actor_user_id,
        )
        db.add(comment)
        db.flush()
        comment_id = comment.comment_id
        record(db, audit, "planning.events.comment.create", ENTITY_PLANNING_EVENTS, event_id, details={
            "comment_id": comment_id,
        })

    logger.info("Comment %s added to planning event %s by %s", comment_id, event_id, audit.actor_user_id)
    out = get_comment(db, comment_id)
    if out is None:
        raise RuntimeError(f"Failed to reload comment {comment_id}")
    return out


def attach_documents(
    db: Session,
    event_id: str,
    documents: list[UploadedDocument],
    audit: AuditContext,
) -> list[DocumentOut]:
    """Store every file and link it to the event, all or nothing.

    Files moved into storage are removed again if the transaction fails.
    Returns the event's full document list.
    """
    if not documents:
        raise bad_request("NO_DOCUMENTS", "No documents")

    stored: list[Path] = []
    try:
        with transaction(db):
            _require_open_event(db, event_id)
            for upload in documents:
                document_id = str(uuid.uuid4())
                pdf = document_storage.is_pdf(upload.original_name, upload.media_type)
                stored.append(document_storage.store(upload.path, document_id, upload.original_name))

                db.add(Document(
                    document_id=document_id,
                    document_name=upload.original_name,
                    type="PDF" if pdf else upload.media_type,
                ))
                db.flush()
                db.add(PlanningEventDocument(
                    event_id=event_id,
                    document_id=document_id,
                    type="PDF" if pdf else None,
                    created_by=audit.actor_user_id,
                ))
            db.flush()
            record(db, audit, "planning.events.documents.upload", ENTITY_PLANNING_EVENTS, event_id, details={
                "count": len(documents),
            })
    except Exception:
        for path in stored:
            document_storage.discard(path)
        raise

    logger.info("Attached %d document(s) to planning event %s", len(documents), event_id)
    return list_documents(db, event_id)


def get_document_file(db: Session, event_id: str, document_id: str) -> DocumentFile:
    """Locate the bytes of a document linked to ``event_id``."""
    meta = get_document_meta(db, event_id, document_id)
    if meta is None:
        raise not_found("Document not found")

    path = document_storage.resolve_stored_path(meta["document_id"], meta["document_name"])
    if not path.is_file():
        logger.warning("Document %s is registered but missing on disk at %s", document_id, path)
        raise not_found("File not found", code="FILE_NOT_FOUND")

    return DocumentFile(
        path=path,
        filename=meta["document_name"],
        media_type=document_storage.resolve_media_type(meta["type"], meta["document_name"]),
    )
