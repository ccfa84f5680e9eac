"""PlanningEventComment ORM model — append-only notes on an event."""
import uuid
from sqlalchemy import Column, String, Text, DateTime, ForeignKey
from planning_service.database import Base
from planning_service.models.planning_event import utcnow


class PlanningEventComment(Base):
    __tablename__ = "planning_event_comments"

    comment_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    event_id = Column(String(36), ForeignKey("planning_events.event_id"), nullable=False, index=True)
    body = Column(Text, nullable=False)
    created_by = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
