"""Data access contract used by the signing workflow.

Thin helpers over a SQLAlchemy session. Every helper accepts an optional
``organization_id`` that scopes the statement to one tenant. ``update`` and
``update_if`` return the number of affected rows; ``update_if`` is the
compare-and-swap primitive the completion evaluator relies on.
"""

from __future__ import annotations

import logging
from typing import TypeVar

from sqlalchemy.orm import Session

from app.models.audit import AuditEvent
from app.services.common import coerce_uuid

logger = logging.getLogger(__name__)

T = TypeVar("T")

APPEND_ONLY_MODELS = (AuditEvent,)


def _filtered(db: Session, model, filters: dict, conditions=(), organization_id=None):
    query = db.query(model)
    if organization_id is not None:
        query = query.filter(model.organization_id == coerce_uuid(organization_id))
    for key, value in filters.items():
        column = getattr(model, key)
        if isinstance(value, (list, tuple, set, frozenset)):
            query = query.filter(column.in_(list(value)))
        else:
            query = query.filter(column == value)
    for condition in conditions:
        query = query.filter(condition)
    return query


def _guard_append_only(model, operation: str) -> None:
    if model in APPEND_ONLY_MODELS:
        raise TypeError(f"{model.__name__} is append-only; {operation} is not allowed")


def find_one(
    db: Session, model: type[T], organization_id=None, fresh: bool = False, **filters
) -> T | None:
    query = _filtered(db, model, filters, organization_id=organization_id)
    if fresh:
        query = query.populate_existing()
    return query.first()


def find_many(
    db: Session,
    model: type[T],
    order_by=None,
    organization_id=None,
    fresh: bool = False,
    **filters,
) -> list[T]:
    """Return matching rows. ``fresh`` re-reads rows already in the session."""
    query = _filtered(db, model, filters, organization_id=organization_id)
    if fresh:
        query = query.populate_existing()
    if order_by is not None:
        if isinstance(order_by, (list, tuple)):
            query = query.order_by(*order_by)
        else:
            query = query.order_by(order_by)
    return query.all()


def insert(db: Session, record: T) -> T:
    db.add(record)
    db.flush()
    return record


def update(db: Session, model, filters: dict, patch: dict, organization_id=None) -> int:
    return update_if(db, model, filters, patch, organization_id=organization_id)


def update_if(
    db: Session,
    model,
    filters: dict,
    patch: dict,
    *conditions,
    organization_id=None,
) -> int:
    """Conditional UPDATE; ``conditions`` are extra SQL expressions on current state.

    Returns the affected row count. A zero count means the guard did not hold
    (or nothing matched) and the caller must treat the write as not applied.
    """
    _guard_append_only(model, "update")
    db.flush()
    affected = _filtered(
        db, model, filters, conditions=conditions, organization_id=organization_id
    ).update(patch, synchronize_session=False)
    db.expire_all()
    return affected


def delete(db: Session, model, filters: dict, organization_id=None) -> None:
    _guard_append_only(model, "delete")
    db.flush()
    _filtered(db, model, filters, organization_id=organization_id).delete(
        synchronize_session=False
    )
    db.expire_all()
