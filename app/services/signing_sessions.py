"""Signing session issuance and validation.

The manager is the only component that decides whether an inbound public
signing request may proceed. Rejections are raised as ``SessionRejected`` with
one of four reasons, checked in a fixed order so the most specific message
wins when several conditions hold at once.
"""

from __future__ import annotations

import enum
import logging
from datetime import datetime

from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.metrics import SIGNING_REJECTIONS
from app.models.document import Document, DocumentStatus, Recipient, RecipientRole, RecipientStatus
from app.models.organization import Organization
from app.models.signing import SigningSession
from app.services import store
from app.services.common import ensure_utc, utcnow
from app.services.tokens import generate_token, token_expiry
from app.services.workflow_config import WorkflowConfig

logger = logging.getLogger(__name__)


class RejectionReason(enum.Enum):
    invalid = "invalid"
    expired = "expired"
    voided = "voided"
    already_signed = "already_signed"


_REJECTIONS = {
    RejectionReason.invalid: ("invalid_link", 404, "Invalid link."),
    RejectionReason.expired: ("link_expired", 410, "Link expired."),
    RejectionReason.voided: ("document_voided", 410, "Document voided."),
    RejectionReason.already_signed: ("already_signed", 409, "Already signed."),
}


class SessionRejected(Exception):
    """A signing link that must not be honoured."""

    def __init__(self, reason: RejectionReason):
        self.reason = reason
        self.code, self.status_code, self.message = _REJECTIONS[reason]
        super().__init__(self.message)


class SigningSessionManager:
    def __init__(self, config: WorkflowConfig):
        self.config = config

    def create_session(
        self,
        db: Session,
        recipient: Recipient,
        document: Document,
        now: datetime | None = None,
    ) -> SigningSession:
        """Return the recipient's live session, minting one only if none exists.

        An unexpired session is reused as-is (its token is not rotated).
        """
        if recipient.role == RecipientRole.cc:
            raise HTTPException(status_code=400, detail="CC recipients do not sign")
        now = now or utcnow()
        existing = store.find_many(
            db,
            SigningSession,
            order_by=SigningSession.created_at.desc(),
            recipient_id=recipient.id,
        )
        for session in existing:
            if ensure_utc(session.expires_at) > now:
                return session

        organization = db.get(Organization, document.organization_id)
        days = self.config.token_expiry_days_for(
            organization.settings if organization else None
        )
        session = SigningSession(
            organization_id=document.organization_id,
            recipient_id=recipient.id,
            document_id=document.id,
            token=generate_token(),
            expires_at=token_expiry(days, now),
        )
        store.insert(db, session)
        logger.info(
            "Issued signing session for recipient %s on document %s (expires in %s days)",
            recipient.id,
            document.id,
            days,
        )
        return session

    def validate_session(
        self, db: Session, token: str | None, now: datetime | None = None
    ) -> SigningSession:
        """Look up ``token`` and raise ``SessionRejected`` unless every check passes.

        Order: unknown token, expiry, voided document, recipient already signed.
        Validation never writes.
        """
        now = now or utcnow()
        session = store.find_one(db, SigningSession, fresh=True, token=token) if token else None
        if session is None:
            raise self.reject(RejectionReason.invalid)
        if now >= ensure_utc(session.expires_at):
            raise self.reject(RejectionReason.expired)
        document = store.find_one(db, Document, fresh=True, id=session.document_id)
        if document is None:
            raise self.reject(RejectionReason.invalid)
        if document.status == DocumentStatus.voided:
            raise self.reject(RejectionReason.voided)
        recipient = store.find_one(db, Recipient, fresh=True, id=session.recipient_id)
        if recipient is None:
            raise self.reject(RejectionReason.invalid)
        if recipient.status == RecipientStatus.signed:
            raise self.reject(RejectionReason.already_signed)
        return session

    def consume_session(
        self,
        db: Session,
        session: SigningSession,
        ip_address: str | None,
        user_agent: str | None,
        now: datetime | None = None,
    ) -> None:
        """Stamp the submission details. Informational only, not a replay gate."""
        store.update(
            db,
            SigningSession,
            {"id": session.id},
            {
                "used_at": now or utcnow(),
                "ip_address": (ip_address or None) and ip_address[:45],
                "user_agent": (user_agent or None) and user_agent[:500],
            },
        )

    @staticmethod
    def reject(reason: RejectionReason) -> SessionRejected:
        SIGNING_REJECTIONS.labels(reason=reason.value).inc()
        logger.info("Signing link rejected: %s", reason.value)
        return SessionRejected(reason)
