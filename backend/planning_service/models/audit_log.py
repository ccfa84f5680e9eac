"""AuditLog ORM model — one row per mutating call, written in the caller's transaction."""
import uuid
from sqlalchemy import Column, String, DateTime, JSON
from planning_service.database import Base
from planning_service.models.planning_event import utcnow


class AuditLog(Base):
    __tablename__ = "audit_logs"

    audit_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    actor_user_id = Column(String(36), nullable=False, index=True)
    event_type = Column(String(20), nullable=False, default="ACTION")
    action = Column(String(100), nullable=False)
    entity_type = Column(String(100), nullable=True)
    entity_id = Column(String(36), nullable=True, index=True)
    details = Column(JSON, nullable=True)
    ip = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)
    path = Column(String(500), nullable=True)
    page_key = Column(String(100), nullable=True)
    client_session_id = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
