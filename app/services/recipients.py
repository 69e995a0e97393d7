"""Recipient status progression.

Status only moves forward: pending -> sent -> viewed -> signed, with declined
as an alternative terminal state. Every transition is a conditional UPDATE so
duplicate or out-of-order calls affect zero rows instead of regressing state.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy.orm import Session

from app.models.document import Recipient, RecipientRole, RecipientStatus
from app.services import store
from app.services.common import coerce_uuid, utcnow

REQUIRED_ROLES = frozenset({RecipientRole.signer, RecipientRole.approver})
TERMINAL_RECIPIENT_STATUSES = (RecipientStatus.signed, RecipientStatus.declined)


def is_required(recipient: Recipient) -> bool:
    return recipient.role in REQUIRED_ROLES


class RecipientStatusTracker:
    def mark_sent(self, db: Session, recipient_id) -> bool:
        return bool(
            store.update_if(
                db,
                Recipient,
                {"id": coerce_uuid(recipient_id), "status": RecipientStatus.pending},
                {"status": RecipientStatus.sent},
            )
        )

    def mark_viewed(self, db: Session, recipient_id, at: datetime | None = None) -> bool:
        return bool(
            store.update_if(
                db,
                Recipient,
                {"id": coerce_uuid(recipient_id), "status": RecipientStatus.sent},
                {"status": RecipientStatus.viewed, "viewed_at": at or utcnow()},
            )
        )

    def mark_signed(self, db: Session, recipient_id, at: datetime | None = None) -> bool:
        """Returns False when the recipient was already signed or declined."""
        return bool(
            store.update_if(
                db,
                Recipient,
                {"id": coerce_uuid(recipient_id)},
                {"status": RecipientStatus.signed, "signed_at": at or utcnow()},
                Recipient.status.notin_(TERMINAL_RECIPIENT_STATUSES),
            )
        )

    def mark_declined(
        self, db: Session, recipient_id, reason: str | None = None, at: datetime | None = None
    ) -> bool:
        return bool(
            store.update_if(
                db,
                Recipient,
                {"id": coerce_uuid(recipient_id)},
                {
                    "status": RecipientStatus.declined,
                    "declined_at": at or utcnow(),
                    "decline_reason": reason,
                },
                Recipient.status.notin_(TERMINAL_RECIPIENT_STATUSES),
            )
        )

    def mark_reminded(self, db: Session, recipient_id, at: datetime | None = None) -> None:
        store.update(
            db,
            Recipient,
            {"id": coerce_uuid(recipient_id)},
            {"last_reminded_at": at or utcnow()},
        )

    def statuses(self, db: Session, document_id) -> dict:
        """Fresh read of every recipient's status on a document, keyed by id."""
        rows = store.find_many(db, Recipient, fresh=True, document_id=coerce_uuid(document_id))
        return {row.id: row.status for row in rows}
