"""Core event store — every mutation of a planning event goes through here.

Responsibilities:
- Resource resolution (explicit hint or linked operation default)
- Conflict enforcement on the booked resource (asymmetric allow_overlap rule)
- Optimistic concurrency on patch (updated_at / version tokens in the UPDATE predicate)
- One audit entry per mutation, inside the same transaction
- Archival as an irreversible soft delete
"""
import enum
import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from planning_service.database import transaction
from planning_service.models.planning_event import PlanningEvent, PlanningEventStatus, utcnow
from planning_service.schemas.planning_event import EventCreate, PlanningEventOut
from planning_service.schemas.types import as_utc
from planning_service.services import catalog_service
from planning_service.services.audit_service import AuditContext, ENTITY_PLANNING_EVENTS, record
from planning_service.services.conflict_detector import ensure_no_conflicts, find_conflicts
from planning_service.services.errors import (
    archived_immutable, bad_request, conflict_error, not_found, stale_error, translate_integrity_error,
)
from planning_service.services.planning_queries import get_event_view
from planning_service.services.resource_resolver import (
    OperationDefaults, ResourceRef, derive_title, resolve_resource,
)

logger = logging.getLogger(__name__)

PATCHABLE_FIELDS = (
    "kind", "status", "priority", "order_id", "operation_id", "machine_id", "workstation_id",
    "title", "description", "start_time_utc", "end_time_utc", "allow_overlap",
)


class ArchiveResult(str, enum.Enum):
    archived = "archived"
    already_archived = "already_archived"


# ---------------------------------------------------------------------------
# Field-update builder: only fields present in the patch are written
# ---------------------------------------------------------------------------
def _column(name: str) -> Callable[[dict[str, Any]], dict[str, Any]]:
    return lambda next_state: {name: next_state[name]}


def _resource_pair(next_state: dict[str, Any]) -> dict[str, Any]:
    # machine and workstation are always written together
    return {"machine_id": next_state["machine_id"], "workstation_id": next_state["workstation_id"]}


FIELD_SETTERS: dict[str, Callable[[dict[str, Any]], dict[str, Any]]] = {
    "kind": _column("kind"),
    "status": _column("status"),
    "priority": _column("priority"),
    "order_id": _column("order_id"),
    "operation_id": _column("operation_id"),
    "machine_id": _resource_pair,
    "workstation_id": _resource_pair,
    "title": _column("title"),
    "description": _column("description"),
    "start_time_utc": _column("start_time_utc"),
    "end_time_utc": _column("end_time_utc"),
    "allow_overlap": _column("allow_overlap"),
}


def build_update_values(
    patch_fields: list[str],
    next_state: dict[str, Any],
    actor_user_id: str,
    now: datetime,
) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for field in patch_fields:
        values.update(FIELD_SETTERS[field](next_state))
    values["updated_at"] = now
    values["updated_by"] = actor_user_id
    values["version"] = PlanningEvent.version + 1
    return values


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _validate_interval(start_utc: datetime, end_utc: datetime) -> None:
    if start_utc >= end_utc:
        raise bad_request("INVALID_INTERVAL", "start_time_utc must be before end_time_utc")


def _check_operation_order(order_id: Optional[int], operation: Optional[OperationDefaults]) -> None:
    if order_id is not None and operation is not None and operation.order_id != order_id:
        raise bad_request("OF_OPERATION_MISMATCH", "Operation does not belong to the provided order")


def _lock_event(db: Session, event_id: str) -> PlanningEvent:
    event = db.query(PlanningEvent).filter(PlanningEvent.event_id == event_id).with_for_update().first()
    if event is None:
        raise not_found()
    return event


def _next_timestamp(previous: Optional[datetime]) -> datetime:
    """updated_at doubles as the concurrency token, so it must strictly advance."""
    now = utcnow()
    if previous is not None:
        floor = as_utc(previous) + timedelta(microseconds=1)
        if now < floor:
            return floor
    return now


def _reload(db: Session, event_id: str) -> PlanningEventOut:
    out = get_event_view(db, event_id)
    if out is None:
        raise RuntimeError(f"Failed to reload planning event {event_id}")
    return out


def _state_snapshot(state: dict[str, Any], resource: ResourceRef) -> dict[str, Any]:
    return {
        "order_id": state["order_id"],
        "operation_id": state["operation_id"],
        "machine_id": resource.machine_id,
        "workstation_id": resource.workstation_id,
        "start_time_utc": state["start_time_utc"],
        "end_time_utc": state["end_time_utc"],
        "allow_overlap": state["allow_overlap"],
    }


def _storage_error(
    db: Session,
    err: IntegrityError,
    candidate: Optional[tuple[ResourceRef, datetime, datetime]],
    exclude_event_id: Optional[str] = None,
) -> Optional[HTTPException]:
    """Map a constraint violation raised on write, after the rollback.

    An exclusion-constraint hit is reported with the events it collided with.
    """
    mapped = translate_integrity_error(err)
    if mapped is None or candidate is None or mapped.detail["code"] != "PLANNING_CONFLICT":
        return mapped
    resource, start_utc, end_utc = candidate
    logger.warning(
        "Exclusion constraint rejected write on %s %s", resource.resource_kind.value, resource.resource_id,
    )
    return conflict_error(find_conflicts(db, resource, start_utc, end_utc, exclude_event_id=exclude_event_id))


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------
def create_event(db: Session, payload: EventCreate, audit: AuditContext) -> PlanningEventOut:
    """Create an event: resolve resource, enforce conflicts, insert, audit, reload."""
    _validate_interval(payload.start_time_utc, payload.end_time_utc)
    if payload.operation_id is None or (payload.machine_id and payload.workstation_id):
        # nothing to derive from: resolve (or fail) before touching storage
        resolve_resource(payload.machine_id, payload.workstation_id)

    event_id = str(uuid.uuid4())
    candidate = None
    try:
        with transaction(db):
            operation = (
                catalog_service.require_operation_defaults(db, payload.operation_id)
                if payload.operation_id else None
            )
            _check_operation_order(payload.order_id, operation)
            order_id = payload.order_id if payload.order_id is not None else (
                operation.order_id if operation else None
            )

            resource = resolve_resource(payload.machine_id, payload.workstation_id, operation)
            catalog_service.require_resource(db, resource)
            title = payload.title or derive_title(operation)
            candidate = (resource, payload.start_time_utc, payload.end_time_utc)

            ensure_no_conflicts(
                db, resource, payload.start_time_utc, payload.end_time_utc, payload.allow_overlap,
            )

            now = utcnow()
            event = PlanningEvent(
                event_id=event_id,
                kind=payload.kind,
                status=payload.status,
                priority=payload.priority,
                order_id=order_id,
                operation_id=payload.operation_id,
                machine_id=resource.machine_id,
                workstation_id=resource.workstation_id,
                title=title,
                description=payload.description,
                start_time_utc=payload.start_time_utc,
                end_time_utc=payload.end_time_utc,
                allow_overlap=payload.allow_overlap,
                version=1,
                created_at=now,
                created_by=audit.actor_user_id,
                updated_at=now,
                updated_by=audit.actor_user_id,
            )
            db.add(event)
            db.flush()

            record(db, audit, "planning.events.create", ENTITY_PLANNING_EVENTS, event_id, details={
                "kind": payload.kind.value,
                "status": payload.status.value,
                "priority": payload.priority.value,
                "title": title,
                **_state_snapshot(
                    {**payload.model_dump(), "order_id": order_id}, resource,
                ),
            })
    except IntegrityError as err:
        mapped = _storage_error(db, err, candidate)
        if mapped is None:
            raise
        raise mapped from err

    logger.info(
        "Created planning event '%s' (%s) on %s %s by %s",
        title, event_id, resource.resource_kind.value, resource.resource_id, audit.actor_user_id,
    )
    return _reload(db, event_id)


# ---------------------------------------------------------------------------
# Patch (compare-and-swap when a token is supplied)
# ---------------------------------------------------------------------------
def patch_event(
    db: Session,
    event_id: str,
    patch: dict[str, Any],
    audit: AuditContext,
    expected_updated_at: Optional[datetime] = None,
    expected_version: Optional[int] = None,
) -> PlanningEventOut:
    """Apply a partial update. Only fields present in ``patch`` are written.

    A supplied token that no longer matches yields PLANNING_STALE, distinct
    from NOT_FOUND.
    """
    if patch.get("machine_id") and patch.get("workstation_id"):
        raise bad_request("INVALID_RESOURCE", "Provide either machine_id or workstation_id (not both)")
    if patch.get("start_time_utc") and patch.get("end_time_utc"):
        _validate_interval(patch["start_time_utc"], patch["end_time_utc"])

    candidate = None
    try:
        with transaction(db):
            current = _lock_event(db, event_id)
            if current.archived_at is not None:
                raise archived_immutable()

            operation = (
                catalog_service.require_operation_defaults(db, patch["operation_id"])
                if patch.get("operation_id") else None
            )

            next_state = {
                field: patch[field] if field in patch else getattr(current, field)
                for field in PATCHABLE_FIELDS
            }
            next_state["start_time_utc"] = as_utc(next_state["start_time_utc"])
            next_state["end_time_utc"] = as_utc(next_state["end_time_utc"])
            _validate_interval(next_state["start_time_utc"], next_state["end_time_utc"])
            _check_operation_order(next_state["order_id"], operation)

            resource = resolve_resource(
                next_state["machine_id"], next_state["workstation_id"], operation,
            )
            next_state["machine_id"] = resource.machine_id
            next_state["workstation_id"] = resource.workstation_id
            if "machine_id" in patch or "workstation_id" in patch:
                catalog_service.require_resource(db, resource)
            candidate = (resource, next_state["start_time_utc"], next_state["end_time_utc"])

            ensure_no_conflicts(
                db,
                resource,
                next_state["start_time_utc"],
                next_state["end_time_utc"],
                next_state["allow_overlap"],
                exclude_event_id=event_id,
            )

            values = build_update_values(
                list(patch), next_state, audit.actor_user_id, _next_timestamp(current.updated_at),
            )
            query = db.query(PlanningEvent).filter(PlanningEvent.event_id == event_id)
            if expected_updated_at is not None:
                query = query.filter(PlanningEvent.updated_at == as_utc(expected_updated_at))
            if expected_version is not None:
                query = query.filter(PlanningEvent.version == expected_version)
            if query.update(values, synchronize_session=False) == 0:
                logger.warning("Stale patch on planning event %s by %s", event_id, audit.actor_user_id)
                raise stale_error()

            raw_patch = dict(patch)
            if expected_updated_at is not None:
                raw_patch["expected_updated_at"] = expected_updated_at
            if expected_version is not None:
                raw_patch["expected_version"] = expected_version
            record(db, audit, "planning.events.update", ENTITY_PLANNING_EVENTS, event_id, details={
                "patch": raw_patch,
                "next": _state_snapshot(next_state, resource),
            })
    except IntegrityError as err:
        mapped = _storage_error(db, err, candidate, exclude_event_id=event_id)
        if mapped is None:
            raise
        raise mapped from err

    logger.info("Patched planning event %s (%s) by %s", event_id, ", ".join(patch) or "-", audit.actor_user_id)
    return _reload(db, event_id)


# ---------------------------------------------------------------------------
# Archive (idempotent, irreversible)
# ---------------------------------------------------------------------------
def archive_event(db: Session, event_id: str, audit: AuditContext) -> ArchiveResult:
    """Soft-delete an event and force it to cancelled.

    Archiving an archived event is a no-op reported as ``already_archived``;
    a missing id raises NOT_FOUND.
    """
    with transaction(db):
        event = _lock_event(db, event_id)
        if event.archived_at is not None:
            logger.info("Planning event %s already archived", event_id)
            return ArchiveResult.already_archived

        now = _next_timestamp(event.updated_at)
        event.archived_at = now
        event.archived_by = audit.actor_user_id
        event.status = PlanningEventStatus.cancelled
        event.updated_at = now
        event.updated_by = audit.actor_user_id
        event.version = event.version + 1
        db.flush()

        record(db, audit, "planning.events.archive", ENTITY_PLANNING_EVENTS, event_id)

    logger.info("Archived planning event %s by %s", event_id, audit.actor_user_id)
    return ArchiveResult.archived
