"""Append-only audit ledger for document workflow events."""

from __future__ import annotations

import logging
from datetime import timedelta

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.metrics import AUDIT_WRITE_FAILURES
from app.models.audit import AuditEvent
from app.services import store
from app.services.common import coerce_uuid, ensure_utc, utcnow

logger = logging.getLogger(__name__)

_MIN_STEP = timedelta(microseconds=1)


class AuditEventType:
    document_created = "document.created"
    document_sent = "document.sent"
    document_viewed = "document.viewed"
    document_completed = "document.completed"
    document_voided = "document.voided"
    document_declined = "document.declined"
    document_downloaded = "document.downloaded"
    document_completion_email_sent = "document.completion_email_sent"
    recipient_signed = "recipient.signed"
    recipient_email_sent = "recipient.email_sent"
    recipient_reminder_sent = "recipient.reminder_sent"
    recipient_completion_email_sent = "recipient.completion_email_sent"


_DESCRIPTIONS = {
    AuditEventType.document_created: "Document created",
    AuditEventType.document_sent: "Document sent for signature",
    AuditEventType.document_viewed: "Document viewed by {who}",
    AuditEventType.document_completed: "All signatures collected - document completed",
    AuditEventType.document_voided: "Document voided",
    AuditEventType.document_declined: "Document declined by {who}",
    AuditEventType.document_downloaded: "Document downloaded by {who}",
    AuditEventType.document_completion_email_sent: "Completion email sent to {who}",
    AuditEventType.recipient_signed: "Document signed by {who}",
    AuditEventType.recipient_email_sent: "Signature request sent to {who}",
    AuditEventType.recipient_reminder_sent: "Reminder sent to {who}",
    AuditEventType.recipient_completion_email_sent: "Completion email sent to {who}",
}


def describe(event: AuditEvent) -> str:
    """Human readable one-liner for an audit event."""
    template = _DESCRIPTIONS.get(event.event_type)
    if template is None:
        return event.event_type
    metadata = event.metadata_ or {}
    recipient = event.recipient
    who = (
        (recipient.name or recipient.email if recipient else None)
        or metadata.get("recipient_email")
        or metadata.get("email")
        or event.actor_name
        or event.actor_email
        or "Unknown"
    )
    return template.format(who=who)


class AuditLedger:
    """Records workflow events; exposes no way to change or remove them.

    ``record`` closes a unit of work. In the default best-effort mode the
    pending changes are committed first and the event is committed on its
    own, so a failing audit insert is logged without undoing the change it
    describes. With ``atomic=True`` both land in a single commit and an audit
    failure aborts the whole unit.
    """

    def __init__(self, atomic: bool = False):
        self.atomic = atomic

    def record(
        self,
        db: Session,
        event_type: str,
        *,
        organization_id,
        document_id=None,
        recipient_id=None,
        actor_user_id=None,
        actor_email: str | None = None,
        actor_name: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        metadata: dict | None = None,
    ) -> AuditEvent | None:
        values = dict(
            organization_id=coerce_uuid(organization_id),
            document_id=coerce_uuid(document_id),
            recipient_id=coerce_uuid(recipient_id),
            event_type=event_type,
            actor_user_id=coerce_uuid(actor_user_id),
            actor_email=actor_email,
            actor_name=actor_name,
            ip_address=ip_address,
            user_agent=user_agent,
            metadata_=metadata or {},
        )
        if self.atomic:
            try:
                event = self._append(db, values)
                db.commit()
            except SQLAlchemyError:
                db.rollback()
                AUDIT_WRITE_FAILURES.labels(event_type=event_type).inc()
                raise
            return event

        try:
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        try:
            event = self._append(db, values)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            AUDIT_WRITE_FAILURES.labels(event_type=event_type).inc()
            logger.exception(
                "Failed to record audit event %s for document %s",
                event_type,
                values["document_id"],
            )
            return None
        return event

    def _append(self, db: Session, values: dict) -> AuditEvent:
        created_at = utcnow()
        if values["document_id"] is not None:
            latest = (
                db.query(func.max(AuditEvent.created_at))
                .filter(AuditEvent.document_id == values["document_id"])
                .scalar()
            )
            latest = ensure_utc(latest)
            if latest is not None and latest >= created_at:
                created_at = latest + _MIN_STEP
        return store.insert(db, AuditEvent(created_at=created_at, **values))

    def trail(self, db: Session, document_id, organization_id=None) -> list[AuditEvent]:
        """Events for one document in the order they were recorded."""
        return store.find_many(
            db,
            AuditEvent,
            order_by=AuditEvent.created_at.asc(),
            organization_id=organization_id,
            document_id=coerce_uuid(document_id),
        )
