"""User directory mapping — read for authorship display only."""
import uuid
from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from planning_service.database import Base


class User(Base):
    __tablename__ = "users"

    user_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    username = Column(String(100), nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
