"""Conflict detection on a single resource.

Intervals are half-open: ``[s1, e1)`` and ``[s2, e2)`` overlap iff
``s1 < e2 and s2 < e1``, so back-to-back events never collide.

Enforcement is asymmetric:
- a candidate with ``allow_overlap`` never triggers the check;
- an existing event with ``allow_overlap`` is never reported.
Archived events are ignored. On PostgreSQL the same rule is backed by an
exclusion constraint (see the migration), mapped to the same error.
"""
import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from planning_service.models.catalog import ManufacturingOperation, ManufacturingOrder
from planning_service.models.planning_event import PlanningEvent
from planning_service.schemas.planning_event import ConflictOut
from planning_service.services.errors import conflict_error
from planning_service.services.resource_resolver import ResourceKind, ResourceRef

logger = logging.getLogger(__name__)

CONFLICT_LIMIT = 25


def intervals_overlap(start1: datetime, end1: datetime, start2: datetime, end2: datetime) -> bool:
    return start1 < end2 and start2 < end1


def find_conflicts(
    db: Session,
    resource: ResourceRef,
    start_utc: datetime,
    end_utc: datetime,
    exclude_event_id: Optional[str] = None,
) -> list[dict[str, Any]]:
    """Return up to 25 colliding events on ``resource``, ordered by start then id."""
    if resource.resource_kind == ResourceKind.machine:
        resource_match = PlanningEvent.machine_id == resource.resource_id
    else:
        resource_match = PlanningEvent.workstation_id == resource.resource_id

    query = (
        db.query(
            PlanningEvent.event_id,
            PlanningEvent.start_time_utc,
            PlanningEvent.end_time_utc,
            PlanningEvent.title,
            ManufacturingOrder.order_number,
        )
        .outerjoin(ManufacturingOperation, ManufacturingOperation.operation_id == PlanningEvent.operation_id)
        .outerjoin(
            ManufacturingOrder,
            ManufacturingOrder.order_id == func.coalesce(PlanningEvent.order_id, ManufacturingOperation.order_id),
        )
        .filter(
            resource_match,
            PlanningEvent.archived_at.is_(None),
            PlanningEvent.allow_overlap.is_not(True),
            PlanningEvent.start_time_utc < end_utc,
            PlanningEvent.end_time_utc > start_utc,
        )
    )
    if exclude_event_id:
        query = query.filter(PlanningEvent.event_id != exclude_event_id)

    rows = (
        query.order_by(PlanningEvent.start_time_utc.asc(), PlanningEvent.event_id.asc())
        .limit(CONFLICT_LIMIT)
        .all()
    )
    return [ConflictOut.model_validate(row._asdict()).model_dump(mode="json") for row in rows]


def ensure_no_conflicts(
    db: Session,
    resource: ResourceRef,
    start_utc: datetime,
    end_utc: datetime,
    allow_overlap: bool,
    exclude_event_id: Optional[str] = None,
) -> None:
    """Raise PLANNING_CONFLICT if the candidate collides; no-op when it allows overlap."""
    if allow_overlap:
        return
    conflicts = find_conflicts(db, resource, start_utc, end_utc, exclude_event_id=exclude_event_id)
    if conflicts:
        logger.info(
            "Rejected booking on %s %s [%s, %s): %d conflict(s)",
            resource.resource_kind.value, resource.resource_id, start_utc, end_utc, len(conflicts),
        )
        raise conflict_error(conflicts)
