"""Public signing room: everything a recipient can do with a signing link."""

from __future__ import annotations

import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.models.document import Document, DocumentStatus, Recipient, RecipientStatus
from app.schemas.document import DocumentFileRead, FieldRead
from app.schemas.signing import SigningRoomRead, SignResult
from app.services.audit import AuditEventType, AuditLedger
from app.services.common import utcnow
from app.services.completion import CompletionEvaluator
from app.services.field_values import FieldValueStore
from app.services.recipients import RecipientStatusTracker
from app.services.signing_sessions import RejectionReason, SigningSessionManager

logger = logging.getLogger(__name__)


class SigningRoom:
    def __init__(
        self,
        sessions: SigningSessionManager,
        fields: FieldValueStore,
        tracker: RecipientStatusTracker,
        evaluator: CompletionEvaluator,
        ledger: AuditLedger,
    ):
        self.sessions = sessions
        self.fields = fields
        self.tracker = tracker
        self.evaluator = evaluator
        self.ledger = ledger

    def open(
        self,
        db: Session,
        token: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> SigningRoomRead:
        """Validate the link and return what the recipient needs to sign.

        The first open moves the recipient from sent to viewed and is audited;
        later opens are read-only.
        """
        session = self.sessions.validate_session(db, token)
        document = db.get(Document, session.document_id)
        recipient = db.get(Recipient, session.recipient_id)

        if self.tracker.mark_viewed(db, recipient.id):
            self.ledger.record(
                db,
                AuditEventType.document_viewed,
                organization_id=document.organization_id,
                document_id=document.id,
                recipient_id=recipient.id,
                actor_email=recipient.email,
                actor_name=recipient.name,
                ip_address=ip_address,
                user_agent=user_agent,
            )

        return SigningRoomRead(
            document_id=document.id,
            document_title=document.title,
            recipient_id=recipient.id,
            recipient_name=recipient.name,
            recipient_email=recipient.email,
            expires_at=session.expires_at,
            files=[DocumentFileRead.model_validate(item) for item in document.files],
            fields=[
                FieldRead.model_validate(item)
                for item in self.fields.fields_for(db, recipient.id)
            ],
        )

    def submit(
        self,
        db: Session,
        token: str,
        field_values: dict,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> SignResult:
        session = self.sessions.validate_session(db, token)
        document = db.get(Document, session.document_id)
        recipient = db.get(Recipient, session.recipient_id)
        if recipient.status == RecipientStatus.declined:
            raise HTTPException(status_code=400, detail="You have declined this document")
        if document.status != DocumentStatus.pending:
            raise HTTPException(status_code=400, detail="Document is not awaiting signatures")

        missing = self.fields.missing_required_fields(db, recipient.id, field_values)
        if missing:
            raise HTTPException(
                status_code=400,
                detail={
                    "message": "Required fields are missing",
                    "fields": [str(item.id) for item in missing],
                },
            )

        now = utcnow()
        written = 0
        for field_id, value in (field_values or {}).items():
            written += self.fields.set_field_value(db, field_id, recipient.id, value, signed_at=now)

        if not self.tracker.mark_signed(db, recipient.id, at=now):
            db.rollback()
            raise self.sessions.reject(RejectionReason.already_signed)
        self.sessions.consume_session(db, session, ip_address, user_agent, now=now)

        recipient = db.get(Recipient, session.recipient_id)
        document = db.get(Document, session.document_id)
        self.ledger.record(
            db,
            AuditEventType.recipient_signed,
            organization_id=document.organization_id,
            document_id=document.id,
            recipient_id=recipient.id,
            actor_email=recipient.email,
            actor_name=recipient.name,
            ip_address=ip_address,
            user_agent=user_agent,
            metadata={"recipient_id": str(recipient.id), "fields_written": written},
        )
        logger.info("Recipient %s signed document %s", recipient.id, document.id)

        result = self.evaluator.evaluate(db, document, final_signer=recipient)
        return SignResult(success=True, document_completed=result.all_signed)

    def decline(
        self,
        db: Session,
        token: str,
        reason: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> None:
        session = self.sessions.validate_session(db, token)
        reason = (reason or "").strip() or None
        if not self.tracker.mark_declined(db, session.recipient_id, reason=reason):
            raise HTTPException(status_code=409, detail="You have already responded")
        document = db.get(Document, session.document_id)
        recipient = db.get(Recipient, session.recipient_id)
        self.ledger.record(
            db,
            AuditEventType.document_declined,
            organization_id=document.organization_id,
            document_id=document.id,
            recipient_id=recipient.id,
            actor_email=recipient.email,
            actor_name=recipient.name,
            ip_address=ip_address,
            user_agent=user_agent,
            metadata={"reason": reason},
        )
        logger.info("Recipient %s declined document %s", recipient.id, document.id)
