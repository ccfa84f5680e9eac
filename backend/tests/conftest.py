"""Pytest fixtures — file-backed SQLite database, recreated for every test."""
import os
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from planning_service.config import settings
from planning_service.database import Base, get_db
from planning_service.main import app

# Import all models so they register with Base.metadata
from planning_service.models.audit_log import AuditLog  # noqa: F401
from planning_service.models.catalog import (
    Client, Machine, ManufacturingOperation, ManufacturingOrder, Part, Workstation,
)
from planning_service.models.comment import PlanningEventComment  # noqa: F401
from planning_service.models.document import Document, PlanningEventDocument  # noqa: F401
from planning_service.models.planning_event import PlanningEvent  # noqa: F401
from planning_service.models.user import User

SQLITE_URL = "sqlite:///./test.db"

# Monday 2 March 2026, 08:00 UTC — all test intervals are offsets from here
BASE_TIME = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="function")
def db_engine():
    """Create a fresh SQLite engine for each test."""
    engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})

    # Enable WAL mode for better concurrency
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db(db_engine):
    """Yield a database session bound to the test engine."""
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(db_engine):
    """FastAPI TestClient with the database dependency overridden to use SQLite."""
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)

    def _override_get_db():
        session = TestingSession()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def documents_dir(tmp_path, monkeypatch):
    """Point document storage at a per-test directory."""
    path = tmp_path / "docs"
    monkeypatch.setattr(settings, "DOCUMENTS_DIR", str(path))
    return path


@pytest.fixture(scope="function")
def catalog(db):
    """A small shop floor: two machines, one workstation, one order with three operations."""
    planner = seed_user(db, "planner")
    m1 = seed_machine(db, "M1", "Haas VF-2")
    m2 = seed_machine(db, "M2", "DMG Mori NLX")
    w1 = seed_workstation(db, "W1", "Deburring bench", machine_id=m1.machine_id)
    order = seed_order(db, "OF-2026-001")
    other_order = seed_order(db, "OF-2026-002", client_name="Globex", part_code="P-200")
    milling = seed_operation(db, order.order_id, phase=10, designation="Milling", machine_id=m1.machine_id)
    deburring = seed_operation(
        db, order.order_id, phase=20, designation="Deburring",
        machine_id=m1.machine_id, workstation_id=w1.workstation_id,
    )
    inspection = seed_operation(db, order.order_id, phase=0, designation="Inspection")
    foreign = seed_operation(db, other_order.order_id, phase=10, designation="Turning", machine_id=m2.machine_id)
    return SimpleNamespace(
        planner=planner, m1=m1, m2=m2, w1=w1, order=order, other_order=other_order,
        milling=milling, deburring=deburring, inspection=inspection, foreign=foreign,
    )


# ---------------------------------------------------------------------------
# Seed helpers: catalog rows are owned by other modules, so insert directly
# ---------------------------------------------------------------------------
def _save(db, obj):
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj


def seed_user(db, username: str = "planner") -> User:
    return _save(db, User(username=username))


def seed_machine(db, code: str = "M1", name: str = "Machine", archived: bool = False) -> Machine:
    return _save(db, Machine(
        code=code,
        name=name,
        machine_type="CNC",
        archived_at=BASE_TIME if archived else None,
    ))


def seed_workstation(db, code: str = "W1", label: str = "Workstation", machine_id: str = None,
                     archived: bool = False) -> Workstation:
    return _save(db, Workstation(
        code=code,
        label=label,
        machine_id=machine_id,
        archived_at=BASE_TIME if archived else None,
    ))


def seed_order(db, order_number: str = "OF-001", client_name: str = "ACME",
               part_code: str = "P-100") -> ManufacturingOrder:
    client = _save(db, Client(company_name=client_name))
    part = _save(db, Part(code=part_code, designation=f"Part {part_code}"))
    return _save(db, ManufacturingOrder(
        order_number=order_number, client_id=client.client_id, part_id=part.part_id,
    ))


def seed_operation(db, order_id: int, phase: int = 10, designation: str = "Milling",
                   machine_id: str = None, workstation_id: str = None) -> ManufacturingOperation:
    return _save(db, ManufacturingOperation(
        order_id=order_id,
        phase=phase,
        designation=designation,
        machine_id=machine_id,
        workstation_id=workstation_id,
    ))


# ---------------------------------------------------------------------------
# API helpers
# ---------------------------------------------------------------------------
def at(hours: float) -> str:
    """ISO timestamp ``hours`` after BASE_TIME."""
    return (BASE_TIME + timedelta(hours=hours)).isoformat()


def post_event(client: TestClient, actor_user_id: str, start: float = 0, end: float = 2, **fields):
    """Helper — POST /api/planning/events and return the raw response."""
    payload = {"start_time_utc": at(start), "end_time_utc": at(end), **fields}
    return client.post(
        "/api/planning/events", params={"actor_user_id": actor_user_id}, json=payload,
    )


def create_event(client: TestClient, actor_user_id: str, start: float = 0, end: float = 2, **fields) -> dict:
    """Helper — create an event and return its JSON view."""
    resp = post_event(client, actor_user_id, start, end, **fields)
    assert resp.status_code == 201, resp.text
    return resp.json()


def patch_event(client: TestClient, actor_user_id: str, event_id: str, **fields):
    return client.patch(
        f"/api/planning/events/{event_id}", params={"actor_user_id": actor_user_id}, json=fields,
    )


def archive_event(client: TestClient, actor_user_id: str, event_id: str):
    return client.delete(f"/api/planning/events/{event_id}", params={"actor_user_id": actor_user_id})
