"""Per-recipient field answers."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from app.models.document import Field, FieldType
from app.services import store
from app.services.common import coerce_uuid, utcnow

logger = logging.getLogger(__name__)


def _is_answered(field: Field, value) -> bool:
    """A checkbox counts only when ticked; anything else needs a non-blank value."""
    if field.type == FieldType.checkbox:
        return value is True
    return bool(value) and bool(str(value).strip())


class FieldValueStore:
    def set_field_value(
        self,
        db: Session,
        field_id,
        recipient_id,
        value,
        signed_at: datetime | None = None,
    ) -> int:
        """Write ``value`` if the field belongs to ``recipient_id``.

        The UPDATE matches on both ids; a field owned by someone else (or an
        unknown id) affects zero rows and is ignored.
        """
        try:
            field_uuid = coerce_uuid(field_id)
        except ValueError:
            return 0
        affected = store.update(
            db,
            Field,
            {"id": field_uuid, "recipient_id": coerce_uuid(recipient_id)},
            {"value": value, "signed_at": signed_at or utcnow()},
        )
        if not affected:
            logger.warning(
                "Ignored write to field %s not owned by recipient %s", field_id, recipient_id
            )
        return affected

    def fields_for(self, db: Session, recipient_id) -> list[Field]:
        return store.find_many(
            db,
            Field,
            order_by=(Field.page.asc(), Field.y.asc(), Field.x.asc()),
            recipient_id=coerce_uuid(recipient_id),
        )

    def missing_required_fields(self, db: Session, recipient_id, values: dict) -> list[Field]:
        """Required fields of the recipient that ``values`` leaves unanswered."""
        provided = {str(key): value for key, value in (values or {}).items()}
        missing = []
        for field in self.fields_for(db, recipient_id):
            if not field.required:
                continue
            if not _is_answered(field, provided.get(str(field.id))):
                missing.append(field)
        return missing
