"""Resource catalog routes."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from planning_service.database import get_db
from planning_service.schemas.resource import PlanningResourcesOut
from planning_service.services import catalog_service

router = APIRouter()


@router.get("/resources", response_model=PlanningResourcesOut)
def list_resources(include_archived: bool = Query(False), db: Session = Depends(get_db)):
    """Bookable machines and workstations, ordered by code."""
    return catalog_service.list_resources(db, include_archived=include_archived)
