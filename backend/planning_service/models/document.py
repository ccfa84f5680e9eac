"""Document metadata and the event ↔ document link table."""
from sqlalchemy import Column, String, DateTime, ForeignKey
from planning_service.database import Base
from planning_service.models.planning_event import utcnow


class Document(Base):
    """Metadata row for a stored file; bytes live under settings.DOCUMENTS_DIR."""

    __tablename__ = "documents"

    document_id = Column(String(36), primary_key=True)
    document_name = Column(String(255), nullable=False)
    type = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class PlanningEventDocument(Base):
    __tablename__ = "planning_event_documents"

    event_id = Column(String(36), ForeignKey("planning_events.event_id"), primary_key=True)
    document_id = Column(String(36), ForeignKey("documents.document_id"), primary_key=True)
    type = Column(String(20), nullable=True)
    created_by = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
