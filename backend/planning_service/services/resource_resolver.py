"""Resource resolution — picks the single machine or workstation an event books.

Pure functions over already-fetched data: no session, no I/O.
"""
import enum
from dataclasses import dataclass
from typing import Optional

from planning_service.services.errors import bad_request


class ResourceKind(str, enum.Enum):
    machine = "machine"
    workstation = "workstation"


@dataclass(frozen=True)
class ResourceRef:
    resource_kind: ResourceKind
    resource_id: str

    @property
    def machine_id(self) -> Optional[str]:
        return self.resource_id if self.resource_kind == ResourceKind.machine else None

    @property
    def workstation_id(self) -> Optional[str]:
        return self.resource_id if self.resource_kind == ResourceKind.workstation else None


@dataclass(frozen=True)
class OperationDefaults:
    """The fields of a manufacturing operation the planning core relies on."""

    order_id: int
    phase: Optional[int]
    designation: str
    machine_id: Optional[str] = None
    workstation_id: Optional[str] = None


DEFAULT_TITLE = "Planning"


def derive_title(operation: Optional[OperationDefaults]) -> str:
    """'P{phase} - {designation}' when phase > 0, bare designation otherwise."""
    if operation is None:
        return DEFAULT_TITLE
    phase = operation.phase or 0
    if phase > 0:
        return f"P{phase} - {operation.designation}"
    return operation.designation


def resolve_resource(
    machine_id: Optional[str] = None,
    workstation_id: Optional[str] = None,
    operation: Optional[OperationDefaults] = None,
) -> ResourceRef:
    if machine_id and workstation_id:
        raise bad_request("INVALID_RESOURCE", "Provide either machine_id or workstation_id (not both)")
    if machine_id:
        return ResourceRef(ResourceKind.machine, machine_id)
    if workstation_id:
        return ResourceRef(ResourceKind.workstation, workstation_id)

    if operation is None:
        raise bad_request("MISSING_RESOURCE", "machine_id or workstation_id is required")

    # workstation is the finer-grained unit
    if operation.workstation_id:
        return ResourceRef(ResourceKind.workstation, operation.workstation_id)
    if operation.machine_id:
        return ResourceRef(ResourceKind.machine, operation.machine_id)

    raise bad_request(
        "MISSING_RESOURCE", "Operation has no machine or workstation assigned; choose a resource",
    )
