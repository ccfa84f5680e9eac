"""FastAPI application entry point."""
import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from planning_service.config import settings
from planning_service.database import Base, engine

# Import routers
from planning_service.routers import planning_events, planning_resources

# Import all models so Base.metadata knows about them
from planning_service.models.planning_event import PlanningEvent  # noqa: F401
from planning_service.models.comment import PlanningEventComment  # noqa: F401
from planning_service.models.document import Document, PlanningEventDocument  # noqa: F401
from planning_service.models.audit_log import AuditLog  # noqa: F401
from planning_service.models.user import User  # noqa: F401
from planning_service.models.catalog import (  # noqa: F401
    Client, Machine, ManufacturingOperation, ManufacturingOrder, Part, Workstation,
)

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Production Planning",
    description="Scheduling of machines and workstations for manufacturing orders",
    version="0.1.0",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(planning_resources.router, prefix="/api/planning", tags=["Planning resources"])
app.include_router(planning_events.router, prefix="/api/planning", tags=["Planning events"])


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": {"code": "INTERNAL", "message": "Internal server error"}},
    )


@app.on_event("startup")
def on_startup():
    """Create database tables on startup (for SQLite dev mode)."""
    if settings.DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)


@app.get("/api/health")
def health_check():
    return {"status": "ok"}
