"""Pydantic schemas for planning events."""
from __future__ import annotations
from typing import Optional, Literal
from pydantic import BaseModel, Field, computed_field, model_validator

from planning_service.models.planning_event import (
    PlanningEventKind,
    PlanningEventStatus,
    PlanningPriority,
)
from planning_service.schemas.comment import CommentOut
from planning_service.schemas.document import DocumentOut
from planning_service.schemas.types import UtcDatetime

# Patch fields that may be omitted but never set to null
NON_NULLABLE_PATCH_FIELDS = (
    "kind", "status", "priority", "title", "start_time_utc", "end_time_utc", "allow_overlap",
)


class EventCreate(BaseModel):
    kind: PlanningEventKind = PlanningEventKind.operation
    status: PlanningEventStatus = PlanningEventStatus.planned
    priority: PlanningPriority = PlanningPriority.normal
    order_id: Optional[int] = Field(None, gt=0)
    operation_id: Optional[str] = Field(None, max_length=36)
    machine_id: Optional[str] = Field(None, max_length=36)
    workstation_id: Optional[str] = Field(None, max_length=36)
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = None
    start_time_utc: UtcDatetime
    end_time_utc: UtcDatetime
    allow_overlap: bool = False

    model_config = {"str_strip_whitespace": True}


class EventPatch(BaseModel):
    kind: Optional[PlanningEventKind] = None
    status: Optional[PlanningEventStatus] = None
    priority: Optional[PlanningPriority] = None
    order_id: Optional[int] = Field(None, gt=0)
    operation_id: Optional[str] = Field(None, max_length=36)
    machine_id: Optional[str] = Field(None, max_length=36)
    workstation_id: Optional[str] = Field(None, max_length=36)
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = None
    start_time_utc: Optional[UtcDatetime] = None
    end_time_utc: Optional[UtcDatetime] = None
    allow_overlap: Optional[bool] = None
    # optimistic concurrency tokens, both optional
    expected_updated_at: Optional[UtcDatetime] = None
    expected_version: Optional[int] = None

    model_config = {"extra": "forbid", "str_strip_whitespace": True}

    @model_validator(mode="after")
    def _reject_null_for_required_columns(self) -> "EventPatch":
        for name in NON_NULLABLE_PATCH_FIELDS:
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


class ConflictOut(BaseModel):
    event_id: str
    start_time_utc: UtcDatetime
    end_time_utc: UtcDatetime
    title: str
    order_number: Optional[str] = None

    model_config = {"from_attributes": True}


class PlanningEventOut(BaseModel):
    """Canonical, denormalized event view."""

    event_id: str
    kind: PlanningEventKind
    status: PlanningEventStatus
    priority: PlanningPriority
    order_id: Optional[int] = None
    operation_id: Optional[str] = None
    machine_id: Optional[str] = None
    workstation_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    start_time_utc: UtcDatetime
    end_time_utc: UtcDatetime
    allow_overlap: bool
    version: int
    created_at: UtcDatetime
    created_by: Optional[str] = None
    created_by_username: Optional[str] = None
    updated_at: UtcDatetime
    updated_by: Optional[str] = None
    archived_at: Optional[UtcDatetime] = None
    archived_by: Optional[str] = None

    order_number: Optional[str] = None
    client_id: Optional[str] = None
    client_company_name: Optional[str] = None
    part_code: Optional[str] = None
    part_designation: Optional[str] = None
    operation_phase: Optional[int] = None
    operation_designation: Optional[str] = None
    machine_code: Optional[str] = None
    machine_name: Optional[str] = None
    workstation_code: Optional[str] = None
    workstation_label: Optional[str] = None

    model_config = {"from_attributes": True}

    @computed_field
    @property
    def resource_kind(self) -> Optional[str]:
        if self.machine_id:
            return "machine"
        if self.workstation_id:
            return "workstation"
        return None


class PlanningEventListOut(BaseModel):
    items: list[PlanningEventOut]
    total: int


class PlanningEventDetailOut(BaseModel):
    event: PlanningEventOut
    comments: list[CommentOut] = []
    documents: list[DocumentOut] = []


class ArchiveOut(BaseModel):
    event_id: str
    result: Literal["archived", "already_archived"]
