"""Pydantic schemas for event comments."""
from typing import Optional
from pydantic import BaseModel, Field

from planning_service.schemas.types import UtcDatetime


class CommentCreate(BaseModel):
    body: str = Field(min_length=1, max_length=4000)

    model_config = {"str_strip_whitespace": True}


class CommentOut(BaseModel):
    comment_id: str
    event_id: str
    body: str
    created_by: Optional[str] = None
    created_by_username: Optional[str] = None
    created_at: UtcDatetime

    model_config = {"from_attributes": True}
