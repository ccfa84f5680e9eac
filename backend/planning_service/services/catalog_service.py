"""Read-only access to machines, workstations and manufacturing operations."""
import logging
from typing import Any, Optional

from sqlalchemy.orm import Session, aliased

from planning_service.models.catalog import Machine, Workstation, ManufacturingOperation
from planning_service.schemas.resource import MachineResourceOut, WorkstationResourceOut
from planning_service.services.errors import not_found
from planning_service.services.resource_resolver import OperationDefaults, ResourceKind, ResourceRef

logger = logging.getLogger(__name__)


def list_resources(db: Session, include_archived: bool = False) -> dict[str, Any]:
    """Machines and workstations ordered by code then id."""
    machine_query = db.query(Machine)
    if not include_archived:
        machine_query = machine_query.filter(Machine.archived_at.is_(None))
    machines = machine_query.order_by(Machine.code.asc(), Machine.machine_id.asc()).all()

    owner = aliased(Machine)
    workstation_query = (
        db.query(
            Workstation.workstation_id,
            Workstation.code,
            Workstation.label,
            Workstation.machine_id,
            owner.code.label("machine_code"),
            owner.name.label("machine_name"),
            Workstation.is_active,
            Workstation.archived_at,
        )
        .outerjoin(owner, owner.machine_id == Workstation.machine_id)
    )
    if not include_archived:
        workstation_query = workstation_query.filter(Workstation.archived_at.is_(None))
    workstations = workstation_query.order_by(Workstation.code.asc(), Workstation.workstation_id.asc()).all()

    return {
        "machines": [MachineResourceOut.model_validate(m) for m in machines],
        "workstations": [WorkstationResourceOut.model_validate(w._asdict()) for w in workstations],
    }


def get_operation_defaults(db: Session, operation_id: str) -> Optional[OperationDefaults]:
    op = db.query(ManufacturingOperation).filter(ManufacturingOperation.operation_id == operation_id).first()
    if op is None:
        return None
    return OperationDefaults(
        order_id=op.order_id,
        phase=op.phase,
        designation=op.designation,
        machine_id=op.machine_id,
        workstation_id=op.workstation_id,
    )


def require_operation_defaults(db: Session, operation_id: str) -> OperationDefaults:
    op = get_operation_defaults(db, operation_id)
    if op is None:
        raise not_found("Manufacturing operation not found", code="OF_OPERATION_NOT_FOUND")
    return op


def require_resource(db: Session, resource: ResourceRef) -> None:
    """404 RESOURCE_NOT_FOUND unless the catalog knows the referenced resource."""
    if resource.resource_kind == ResourceKind.machine:
        found = db.query(Machine).filter(Machine.machine_id == resource.resource_id).first()
    else:
        found = db.query(Workstation).filter(Workstation.workstation_id == resource.resource_id).first()
    if found is None:
        raise not_found(
            f"{resource.resource_kind.value.capitalize()} {resource.resource_id} not found",
            code="RESOURCE_NOT_FOUND",
        )
