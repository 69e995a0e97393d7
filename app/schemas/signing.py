"""Schemas for the public (token-authenticated) signing surface."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.document import DocumentFileRead, FieldRead


class SigningRoomRead(BaseModel):
    document_id: UUID
    document_title: str
    recipient_id: UUID
    recipient_name: str
    recipient_email: str
    expires_at: datetime
    files: list[DocumentFileRead]
    fields: list[FieldRead]


class SignSubmit(BaseModel):
    field_values: dict[UUID, Any] = Field(default_factory=dict)


class SignResult(BaseModel):
    success: bool = True
    document_completed: bool


class DeclineRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=1000)
