"""PlanningEvent ORM model — one time-boxed booking of one resource."""
import uuid
import enum
from datetime import datetime, timezone
from sqlalchemy import (
    Column, String, Text, Boolean, DateTime, Integer, CheckConstraint, Index, Enum as SAEnum,
)
from planning_service.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PlanningEventKind(str, enum.Enum):
    operation = "operation"
    maintenance = "maintenance"
    custom = "custom"


class PlanningEventStatus(str, enum.Enum):
    planned = "planned"
    in_progress = "in_progress"
    done = "done"
    cancelled = "cancelled"
    blocked = "blocked"


class PlanningPriority(str, enum.Enum):
    low = "low"
    normal = "normal"
    high = "high"
    critical = "critical"


class PlanningEvent(Base):
    __tablename__ = "planning_events"
    __table_args__ = (
        CheckConstraint("start_time_utc < end_time_utc", name="ck_planning_events_interval"),
        # exactly one of machine / workstation
        CheckConstraint(
            "(machine_id IS NULL AND workstation_id IS NOT NULL) "
            "OR (machine_id IS NOT NULL AND workstation_id IS NULL)",
            name="ck_planning_events_single_resource",
        ),
        Index("ix_planning_events_machine_window", "machine_id", "start_time_utc", "end_time_utc"),
        Index("ix_planning_events_workstation_window", "workstation_id", "start_time_utc", "end_time_utc"),
    )

    event_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    kind = Column(SAEnum(PlanningEventKind), nullable=False, default=PlanningEventKind.operation)
    status = Column(SAEnum(PlanningEventStatus), nullable=False, default=PlanningEventStatus.planned)
    priority = Column(SAEnum(PlanningPriority), nullable=False, default=PlanningPriority.normal)

    # External references, by id only
    order_id = Column(Integer, nullable=True, index=True)
    operation_id = Column(String(36), nullable=True, index=True)
    machine_id = Column(String(36), nullable=True)
    workstation_id = Column(String(36), nullable=True)

    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    start_time_utc = Column(DateTime(timezone=True), nullable=False)
    end_time_utc = Column(DateTime(timezone=True), nullable=False)
    allow_overlap = Column(Boolean, nullable=False, default=False)

    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    created_by = Column(String(36), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_by = Column(String(36), nullable=True)
    archived_at = Column(DateTime(timezone=True), nullable=True)
    archived_by = Column(String(36), nullable=True)
