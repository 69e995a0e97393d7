from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class AuditEventRead(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    organization_id: UUID
    document_id: UUID | None
    recipient_id: UUID | None
    event_type: str
    description: str | None = None
    actor_user_id: UUID | None
    actor_email: str | None
    actor_name: str | None
    ip_address: str | None
    user_agent: str | None
    metadata_: dict | None = Field(
        default=None,
        serialization_alias="metadata",
    )
    created_at: datetime
