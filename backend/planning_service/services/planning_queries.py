"""Read side: the denormalized event view, listing, and detail.

Reads take no locks; mutations reload through ``get_event_view`` after commit.
"""
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.orm import Query, Session, aliased

from planning_service.models.catalog import (
    Client, Machine, ManufacturingOperation, ManufacturingOrder, Part, Workstation,
)
from planning_service.models.comment import PlanningEventComment
from planning_service.models.document import Document, PlanningEventDocument
from planning_service.models.planning_event import (
    PlanningEvent, PlanningEventKind, PlanningEventStatus, PlanningPriority,
)
from planning_service.models.user import User
from planning_service.schemas.comment import CommentOut
from planning_service.schemas.document import DocumentOut
from planning_service.schemas.planning_event import (
    PlanningEventDetailOut, PlanningEventListOut, PlanningEventOut,
)
from planning_service.services.errors import bad_request

Operation = ManufacturingOperation
Creator = aliased(User, name="creator")

# Explicit order link wins over the one inherited from the operation
_order_id_expr = func.coalesce(PlanningEvent.order_id, Operation.order_id)


def _event_view_query(db: Session) -> Query:
    return (
        db.query(
            PlanningEvent.event_id,
            PlanningEvent.kind,
            PlanningEvent.status,
            PlanningEvent.priority,
            _order_id_expr.label("order_id"),
            PlanningEvent.operation_id,
            PlanningEvent.machine_id,
            PlanningEvent.workstation_id,
            PlanningEvent.title,
            PlanningEvent.description,
            PlanningEvent.start_time_utc,
            PlanningEvent.end_time_utc,
            PlanningEvent.allow_overlap,
            PlanningEvent.version,
            PlanningEvent.created_at,
            PlanningEvent.created_by,
            Creator.username.label("created_by_username"),
            PlanningEvent.updated_at,
            PlanningEvent.updated_by,
            PlanningEvent.archived_at,
            PlanningEvent.archived_by,
            ManufacturingOrder.order_number,
            ManufacturingOrder.client_id,
            Client.company_name.label("client_company_name"),
            Part.code.label("part_code"),
            Part.designation.label("part_designation"),
            Operation.phase.label("operation_phase"),
            Operation.designation.label("operation_designation"),
            Machine.code.label("machine_code"),
            Machine.name.label("machine_name"),
            Workstation.code.label("workstation_code"),
            Workstation.label.label("workstation_label"),
        )
        .select_from(PlanningEvent)
        .outerjoin(Operation, Operation.operation_id == PlanningEvent.operation_id)
        .outerjoin(ManufacturingOrder, ManufacturingOrder.order_id == _order_id_expr)
        .outerjoin(Part, Part.part_id == ManufacturingOrder.part_id)
        .outerjoin(Client, Client.client_id == ManufacturingOrder.client_id)
        .outerjoin(Machine, Machine.machine_id == PlanningEvent.machine_id)
        .outerjoin(Workstation, Workstation.workstation_id == PlanningEvent.workstation_id)
        .outerjoin(Creator, Creator.user_id == PlanningEvent.created_by)
    )


def get_event_view(db: Session, event_id: str) -> Optional[PlanningEventOut]:
    row = _event_view_query(db).filter(PlanningEvent.event_id == event_id).first()
    if row is None:
        return None
    return PlanningEventOut.model_validate(row._asdict())


def list_events(
    db: Session,
    range_start_utc: datetime,
    range_end_utc: datetime,
    machine_id: Optional[str] = None,
    workstation_id: Optional[str] = None,
    order_id: Optional[int] = None,
    operation_id: Optional[str] = None,
    kind: Optional[PlanningEventKind] = None,
    status: Optional[PlanningEventStatus] = None,
    priority: Optional[PlanningPriority] = None,
    include_archived: bool = False,
) -> PlanningEventListOut:
    """Events whose interval overlaps ``[range_start_utc, range_end_utc)``."""
    if range_start_utc >= range_end_utc:
        raise bad_request("INVALID_INTERVAL", "range_start_utc must be before range_end_utc")
    if machine_id and workstation_id:
        raise bad_request("INVALID_RESOURCE", "Provide either machine_id or workstation_id (not both)")

    query = _event_view_query(db).filter(
        PlanningEvent.start_time_utc < range_end_utc,
        PlanningEvent.end_time_utc > range_start_utc,
    )
    if not include_archived:
        query = query.filter(PlanningEvent.archived_at.is_(None))
    if machine_id:
        query = query.filter(PlanningEvent.machine_id == machine_id)
    if workstation_id:
        query = query.filter(PlanningEvent.workstation_id == workstation_id)
    if order_id is not None:
        query = query.filter(_order_id_expr == order_id)
    if operation_id:
        query = query.filter(PlanningEvent.operation_id == operation_id)
    if kind:
        query = query.filter(PlanningEvent.kind == kind)
    if status:
        query = query.filter(PlanningEvent.status == status)
    if priority:
        query = query.filter(PlanningEvent.priority == priority)

    total = query.count()
    rows = query.order_by(PlanningEvent.start_time_utc.asc(), PlanningEvent.event_id.asc()).all()

    return PlanningEventListOut(
        items=[PlanningEventOut.model_validate(row._asdict()) for row in rows],
        total=total,
    )


def _comment_query(db: Session) -> Query:
    return (
        db.query(
            PlanningEventComment.comment_id,
            PlanningEventComment.event_id,
            PlanningEventComment.body,
            PlanningEventComment.created_by,
            User.username.label("created_by_username"),
            PlanningEventComment.created_at,
        )
        .outerjoin(User, User.user_id == PlanningEventComment.created_by)
    )


def list_comments(db: Session, event_id: str) -> list[CommentOut]:
    rows = (
        _comment_query(db)
        .filter(PlanningEventComment.event_id == event_id)
        .order_by(PlanningEventComment.created_at.asc(), PlanningEventComment.comment_id.asc())
        .all()
    )
    return [CommentOut.model_validate(row._asdict()) for row in rows]


def get_comment(db: Session, comment_id: str) -> Optional[CommentOut]:
    row = _comment_query(db).filter(PlanningEventComment.comment_id == comment_id).first()
    return CommentOut.model_validate(row._asdict()) if row else None


def _document_query(db: Session, event_id: str) -> Query:
    return (
        db.query(Document.document_id, Document.document_name, Document.type)
        .join(PlanningEventDocument, PlanningEventDocument.document_id == Document.document_id)
        .filter(PlanningEventDocument.event_id == event_id)
    )


def list_documents(db: Session, event_id: str) -> list[DocumentOut]:
    rows = (
        _document_query(db, event_id)
        .order_by(Document.document_name.asc(), Document.document_id.asc())
        .all()
    )
    return [DocumentOut.model_validate(row._asdict()) for row in rows]


def get_event_detail(db: Session, event_id: str) -> Optional[PlanningEventDetailOut]:
    event = get_event_view(db, event_id)
    if event is None:
        return None
    return PlanningEventDetailOut(
        event=event,
        comments=list_comments(db, event_id),
        documents=list_documents(db, event_id),
    )


def get_document_meta(db: Session, event_id: str, document_id: str) -> Optional[dict[str, Any]]:
    row = _document_query(db, event_id).filter(PlanningEventDocument.document_id == document_id).first()
    return row._asdict() if row else None
