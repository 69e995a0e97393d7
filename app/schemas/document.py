"""Pydantic schemas for documents, recipients and field placements."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from app.models.document import (
    DocumentFileType,
    DocumentStatus,
    FieldType,
    RecipientRole,
    RecipientStatus,
    SigningOrder,
)


class RecipientCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    role: RecipientRole = RecipientRole.signer
    signing_order: int | None = Field(default=None, ge=1)
    contact_id: UUID | None = None


class FieldCreate(BaseModel):
    """Field placement. ``recipient_index`` points into the request's recipient list."""

    recipient_index: int = Field(..., ge=0)
    type: FieldType
    page: int = Field(default=1, ge=1)
    x: float = Field(..., ge=0, le=100)
    y: float = Field(..., ge=0, le=100)
    width: float = Field(..., gt=0, le=100)
    height: float = Field(..., gt=0, le=100)
    required: bool = True
    placeholder: str | None = Field(default=None, max_length=200)

    @model_validator(mode="after")
    def _fits_on_page(self):
        if self.x + self.width > 100 or self.y + self.height > 100:
            raise ValueError("Field must fit within the page")
        return self


class DocumentFileCreate(BaseModel):
    url: str = Field(..., min_length=1, max_length=1000)
    filename: str = Field(..., min_length=1, max_length=255)
    size_bytes: int | None = Field(default=None, ge=0)
    page_count: int | None = Field(default=None, ge=1)


class DocumentCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    signing_order: SigningOrder = SigningOrder.parallel
    template_id: UUID | None = None
    file: DocumentFileCreate
    recipients: list[RecipientCreate] = Field(default_factory=list)
    fields: list[FieldCreate] = Field(default_factory=list)
    send_now: bool = False

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Title must not be blank")
        return value


class DocumentFileRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    file_type: DocumentFileType
    url: str
    filename: str
    size_bytes: int | None
    page_count: int | None


class FieldRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    recipient_id: UUID
    type: FieldType
    page: int
    x: float
    y: float
    width: float
    height: float
    required: bool
    placeholder: str | None
    value: Any = None
    signed_at: datetime | None = None


class RecipientRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str
    role: RecipientRole
    signing_order: int
    status: RecipientStatus
    viewed_at: datetime | None
    signed_at: datetime | None
    declined_at: datetime | None
    last_reminded_at: datetime | None


class DocumentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    organization_id: UUID
    created_by: UUID
    title: str
    description: str | None
    status: DocumentStatus
    signing_order: SigningOrder
    created_at: datetime
    completed_at: datetime | None
    voided_at: datetime | None
    voided_reason: str | None
    files: list[DocumentFileRead] = Field(default_factory=list)
    recipients: list[RecipientRead] = Field(default_factory=list)
    fields: list[FieldRead] = Field(default_factory=list)


class RemindRequest(BaseModel):
    recipient_id: UUID


class VoidRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=1000)


class CertificateSigner(BaseModel):
    name: str
    email: str
    role: RecipientRole
    signed_at: datetime | None


class CertificateAuditEntry(BaseModel):
    event: str
    description: str
    timestamp: datetime
    actor_email: str | None
    ip_address: str | None
    metadata: dict | None


class CertificateRead(BaseModel):
    certificate_id: str
    document_id: UUID
    title: str
    created_at: datetime
    completed_at: datetime | None
    signers: list[CertificateSigner]
    audit_trail: list[CertificateAuditEntry]
    generated_at: datetime
