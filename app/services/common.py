"""Common helper functions for service layer.

This module provides reusable utilities for:
- UUID handling
- Timezone-safe timestamps
- Entity retrieval with 404 handling
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, TypeVar

from fastapi import HTTPException

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

T = TypeVar("T")


def coerce_uuid(value):
    """Convert value to UUID, returning None if value is None."""
    if value is None:
        return None
    if isinstance(value, uuid.UUID):
        return value
    return uuid.UUID(str(value))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def get_or_404(
    db: Session,
    model: type[T],
    id: str,
    detail: str | None = None,
    organization_id=None,
) -> T:
    """Get entity by ID or raise 404.

    When ``organization_id`` is given, an entity owned by another tenant is
    reported as missing.

    Raises:
        HTTPException: 404 if entity not found
    """
    try:
        entity_id = coerce_uuid(id)
    except ValueError:
        entity_id = None
    entity = db.get(model, entity_id) if entity_id else None
    if entity is not None and organization_id is not None:
        if getattr(entity, "organization_id", None) != coerce_uuid(organization_id):
            entity = None
    if not entity:
        raise HTTPException(
            status_code=404,
            detail=detail or f"{model.__name__} not found"
        )
    return entity
