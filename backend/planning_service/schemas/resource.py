"""Pydantic schemas for the resource catalog.

Machines and workstations are a tagged variant: callers branch on
``resource_kind``, never on the Python type.
"""
from typing import Literal, Optional
from pydantic import BaseModel

from planning_service.schemas.types import UtcDatetime


class MachineResourceOut(BaseModel):
    resource_kind: Literal["machine"] = "machine"
    machine_id: str
    code: str
    name: str
    machine_type: str
    status: str
    is_available: bool
    archived_at: Optional[UtcDatetime] = None

    model_config = {"from_attributes": True}


class WorkstationResourceOut(BaseModel):
    resource_kind: Literal["workstation"] = "workstation"
    workstation_id: str
    code: str
    label: str
    machine_id: Optional[str] = None
    machine_code: Optional[str] = None
    machine_name: Optional[str] = None
    is_active: bool
    archived_at: Optional[UtcDatetime] = None

    model_config = {"from_attributes": True}


class PlanningResourcesOut(BaseModel):
    machines: list[MachineResourceOut]
    workstations: list[WorkstationResourceOut]
