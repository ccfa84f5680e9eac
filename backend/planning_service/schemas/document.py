"""Pydantic schemas for event documents."""
from typing import Optional
from pydantic import BaseModel


class DocumentOut(BaseModel):
    document_id: str
    document_name: str
    type: Optional[str] = None

    model_config = {"from_attributes": True}


class DocumentListOut(BaseModel):
    documents: list[DocumentOut]
