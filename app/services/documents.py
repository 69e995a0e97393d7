"""Sender-side document workflow: compose, send, remind, void, certify, download."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.models.document import (
    Document,
    DocumentFile,
    DocumentFileType,
    DocumentStatus,
    Field,
    Recipient,
    RecipientRole,
    RecipientStatus,
)
from app.models.organization import User
from app.schemas.document import (
    CertificateAuditEntry,
    CertificateRead,
    CertificateSigner,
    DocumentCreate,
)
from app.services import store
from app.services.audit import AuditEventType, AuditLedger, describe
from app.services.common import coerce_uuid, get_or_404, utcnow
from app.services.downloads import DownloadedFile
from app.services.email import (
    DispatchResult,
    EmailDispatcher,
    deliver_each,
    render_reminder,
    render_signature_request,
)
from app.services.file_fetch import FileFetcher, FileFetchError, pick_file
from app.services.recipients import (
    REQUIRED_ROLES,
    TERMINAL_RECIPIENT_STATUSES,
    RecipientStatusTracker,
)
from app.services.signing_sessions import SigningSessionManager
from app.services.workflow_config import WorkflowConfig

logger = logging.getLogger(__name__)

SENDABLE_STATUSES = (DocumentStatus.draft, DocumentStatus.pending)


@dataclass
class SendResult:
    document: Document
    deliveries: list[DispatchResult] = field(default_factory=list)


class DocumentService:
    def __init__(
        self,
        config: WorkflowConfig,
        sessions: SigningSessionManager,
        tracker: RecipientStatusTracker,
        ledger: AuditLedger,
        dispatcher: EmailDispatcher,
        fetcher: FileFetcher,
    ):
        self.config = config
        self.sessions = sessions
        self.tracker = tracker
        self.ledger = ledger
        self.dispatcher = dispatcher
        self.fetcher = fetcher

    def create(
        self,
        db: Session,
        user: User,
        payload: DocumentCreate,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> Document:
        """Compose a draft document with its file, recipients and fields.

        Args:
            db: Database session
            user: Sender; owns the document within their organization
            payload: Document definition
            ip_address: Client address recorded on the audit event
            user_agent: Client user agent recorded on the audit event

        Returns:
            The created Document (sent as well when ``payload.send_now``)

        Raises:
            HTTPException: 400 when no recipient is required to sign or a
                field references an unknown or cc recipient
        """
        if not payload.recipients:
            raise HTTPException(status_code=400, detail="At least one recipient is required")
        if not any(r.role in REQUIRED_ROLES for r in payload.recipients):
            raise HTTPException(
                status_code=400,
                detail="At least one signer or approver is required",
            )
        for placement in payload.fields:
            if placement.recipient_index >= len(payload.recipients):
                raise HTTPException(
                    status_code=400,
                    detail=f"Field references unknown recipient {placement.recipient_index}",
                )
            if payload.recipients[placement.recipient_index].role == RecipientRole.cc:
                raise HTTPException(
                    status_code=400, detail="Fields cannot be assigned to CC recipients"
                )

        document = store.insert(
            db,
            Document(
                organization_id=user.organization_id,
                created_by=user.id,
                title=payload.title.strip(),
                description=payload.description,
                status=DocumentStatus.draft,
                signing_order=payload.signing_order,
                template_id=payload.template_id,
            ),
        )
        store.insert(
            db,
            DocumentFile(
                document_id=document.id,
                file_type=DocumentFileType.original,
                url=payload.file.url,
                filename=payload.file.filename,
                size_bytes=payload.file.size_bytes,
                page_count=payload.file.page_count,
            ),
        )
        recipients = []
        for index, item in enumerate(payload.recipients):
            recipients.append(
                store.insert(
                    db,
                    Recipient(
                        organization_id=user.organization_id,
                        document_id=document.id,
                        contact_id=item.contact_id,
                        name=item.name.strip(),
                        email=str(item.email),
                        role=item.role,
                        signing_order=item.signing_order or index + 1,
                        status=RecipientStatus.pending,
                    ),
                )
            )
        for placement in payload.fields:
            store.insert(
                db,
                Field(
                    organization_id=user.organization_id,
                    document_id=document.id,
                    recipient_id=recipients[placement.recipient_index].id,
                    type=placement.type,
                    page=placement.page,
                    x=placement.x,
                    y=placement.y,
                    width=placement.width,
                    height=placement.height,
                    required=placement.required,
                    placeholder=placement.placeholder,
                ),
            )

        document_id = document.id
        self.ledger.record(
            db,
            AuditEventType.document_created,
            organization_id=user.organization_id,
            document_id=document_id,
            actor_user_id=user.id,
            actor_email=user.email,
            actor_name=user.full_name,
            ip_address=ip_address,
            user_agent=user_agent,
            metadata={
                "title": payload.title,
                "recipient_count": len(payload.recipients),
                "field_count": len(payload.fields),
            },
        )
        logger.info("Document %s created by user %s", document_id, user.id)

        if payload.send_now:
            self.send(db, user, document_id, ip_address=ip_address, user_agent=user_agent)
        return db.get(Document, document_id)

    def get(self, db: Session, user: User, document_id) -> Document:
        return get_or_404(
            db,
            Document,
            document_id,
            detail="Document not found",
            organization_id=user.organization_id,
        )

    def send(
        self,
        db: Session,
        user: User,
        document_id,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> SendResult:
        """Issue signing links and email them to every signer and approver.

        Sending again while pending reuses live sessions, so recipients get
        the same link. Recipients who already signed or declined are skipped.
        """
        document = self.get(db, user, document_id)
        if document.status not in SENDABLE_STATUSES:
            raise HTTPException(
                status_code=400,
                detail=f"Document cannot be sent while {document.status.value}",
            )
        document_id = document.id
        organization_id = document.organization_id
        title = document.title

        pairs = []
        for recipient in document.recipients:
            if recipient.role == RecipientRole.cc:
                continue
            if recipient.status in TERMINAL_RECIPIENT_STATUSES:
                continue
            session = self.sessions.create_session(db, recipient, document)
            pairs.append(
                (recipient.id, recipient.name, recipient.email, self.config.signing_url(session.token))
            )

        moved = store.update_if(
            db,
            Document,
            {"id": document_id, "status": list(SENDABLE_STATUSES)},
            {"status": DocumentStatus.pending},
        )
        if not moved:
            db.rollback()
            raise HTTPException(status_code=409, detail="Document changed while sending")

        self.ledger.record(
            db,
            AuditEventType.document_sent,
            organization_id=organization_id,
            document_id=document_id,
            actor_user_id=user.id,
            actor_email=user.email,
            actor_name=user.full_name,
            ip_address=ip_address,
            user_agent=user_agent,
            metadata={"recipient_count": len(pairs)},
        )
        sender_name = user.display_name

        def attempt(item) -> DispatchResult:
            recipient_id, name, email, signing_url = item
            message = render_signature_request(
                recipient_name=name,
                recipient_email=email,
                document_title=title,
                sender_name=sender_name,
                signing_url=signing_url,
            )
            result = self.dispatcher.send(message, kind="signature_request")
            self.tracker.mark_sent(db, recipient_id)
            self.ledger.record(
                db,
                AuditEventType.recipient_email_sent,
                organization_id=organization_id,
                document_id=document_id,
                recipient_id=recipient_id,
                actor_user_id=user.id,
                actor_email=user.email,
                metadata={
                    "recipient_email": email,
                    "email_success": result.success,
                    "error": result.error,
                },
            )
            return result

        deliveries = deliver_each(pairs, attempt, address=lambda item: item[2])
        return SendResult(document=db.get(Document, document_id), deliveries=deliveries)

    def remind(
        self,
        db: Session,
        user: User,
        document_id,
        recipient_id,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> DispatchResult:
        document = self.get(db, user, document_id)
        try:
            recipient_uuid = coerce_uuid(recipient_id)
        except ValueError:
            recipient_uuid = None
        recipient = (
            store.find_one(db, Recipient, id=recipient_uuid, document_id=document.id)
            if recipient_uuid
            else None
        )
        if recipient is None:
            raise HTTPException(status_code=404, detail="Recipient not found")
        if recipient.status == RecipientStatus.signed:
            raise HTTPException(status_code=400, detail="Recipient has already signed")
        if recipient.status == RecipientStatus.declined:
            raise HTTPException(status_code=400, detail="Recipient has declined")
        if recipient.role == RecipientRole.cc:
            raise HTTPException(status_code=400, detail="CC recipients are not asked to sign")
        if document.status != DocumentStatus.pending:
            raise HTTPException(status_code=400, detail="Only pending documents can be reminded")

        result = self.deliver_reminder(
            db,
            document,
            recipient,
            sender_name=user.display_name,
            actor=user,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        if not result.success:
            raise HTTPException(status_code=502, detail=result.error or "Failed to send reminder")
        return result

    def deliver_reminder(
        self,
        db: Session,
        document: Document,
        recipient: Recipient,
        sender_name: str,
        actor: User | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        automatic: bool = False,
        now: datetime | None = None,
    ) -> DispatchResult:
        """Email the recipient their signing link again.

        ``last_reminded_at`` and the audit entry are only written when the
        email went out.
        """
        now = now or utcnow()
        session = self.sessions.create_session(db, recipient, document, now=now)
        db.commit()

        message = render_reminder(
            recipient_name=recipient.name,
            recipient_email=recipient.email,
            document_title=document.title,
            sender_name=sender_name,
            signing_url=self.config.signing_url(session.token),
        )
        result = self.dispatcher.send(message, kind="reminder")
        if not result.success:
            return result

        self.tracker.mark_reminded(db, recipient.id, at=now)
        self.ledger.record(
            db,
            AuditEventType.recipient_reminder_sent,
            organization_id=document.organization_id,
            document_id=document.id,
            recipient_id=recipient.id,
            actor_user_id=actor.id if actor else None,
            actor_email=actor.email if actor else None,
            ip_address=ip_address,
            user_agent=user_agent,
            metadata={"recipient_email": recipient.email, "automatic": automatic},
        )
        return result

    def void(
        self,
        db: Session,
        user: User,
        document_id,
        reason: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> Document:
        document = self.get(db, user, document_id)
        document_id = document.id
        reason = (reason or "").strip() or None
        voided = store.update_if(
            db,
            Document,
            {"id": document_id, "status": list(SENDABLE_STATUSES)},
            {
                "status": DocumentStatus.voided,
                "voided_at": utcnow(),
                "voided_reason": reason,
            },
        )
        if not voided:
            raise HTTPException(
                status_code=400, detail="Only draft or pending documents can be voided"
            )
        self.ledger.record(
            db,
            AuditEventType.document_voided,
            organization_id=user.organization_id,
            document_id=document_id,
            actor_user_id=user.id,
            actor_email=user.email,
            actor_name=user.full_name,
            ip_address=ip_address,
            user_agent=user_agent,
            metadata={"reason": reason},
        )
        logger.info("Document %s voided by user %s", document_id, user.id)
        return db.get(Document, document_id)

    def audit_trail(self, db: Session, user: User, document_id) -> list[dict]:
        document = self.get(db, user, document_id)
        entries = []
        for event in self.ledger.trail(db, document.id, organization_id=user.organization_id):
            entries.append(
                {
                    "id": event.id,
                    "organization_id": event.organization_id,
                    "document_id": event.document_id,
                    "recipient_id": event.recipient_id,
                    "event_type": event.event_type,
                    "description": describe(event),
                    "actor_user_id": event.actor_user_id,
                    "actor_email": event.actor_email,
                    "actor_name": event.actor_name,
                    "ip_address": event.ip_address,
                    "user_agent": event.user_agent,
                    "metadata_": event.metadata_,
                    "created_at": event.created_at,
                }
            )
        return entries

    def certificate(self, db: Session, user: User, document_id) -> CertificateRead:
        document = self.get(db, user, document_id)
        if document.status != DocumentStatus.completed:
            raise HTTPException(
                status_code=400,
                detail="Certificate only available for completed documents",
            )
        signers = [
            CertificateSigner(
                name=recipient.name,
                email=recipient.email,
                role=recipient.role,
                signed_at=recipient.signed_at,
            )
            for recipient in document.recipients
            if recipient.role != RecipientRole.cc
        ]
        trail = [
            CertificateAuditEntry(
                event=event.event_type,
                description=describe(event),
                timestamp=event.created_at,
                actor_email=event.actor_email,
                ip_address=event.ip_address,
                metadata=event.metadata_,
            )
            for event in self.ledger.trail(db, document.id, organization_id=user.organization_id)
        ]
        return CertificateRead(
            certificate_id=document.certificate_id,
            document_id=document.id,
            title=document.title,
            created_at=document.created_at,
            completed_at=document.completed_at,
            signers=signers,
            audit_trail=trail,
            generated_at=utcnow(),
        )

    def download(
        self,
        db: Session,
        user: User,
        document_id,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> DownloadedFile:
        document = self.get(db, user, document_id)
        file = pick_file(document)
        if file is None:
            raise HTTPException(status_code=404, detail="Document file not found")
        filename = file.filename or f"{document.title}.pdf"
        file_type = file.file_type.value
        try:
            content = self.fetcher.fetch(file.url)
        except FileFetchError as exc:
            logger.error("Download of document %s failed: %s", document.id, exc)
            raise HTTPException(status_code=502, detail="Failed to fetch document") from exc

        self.ledger.record(
            db,
            AuditEventType.document_downloaded,
            organization_id=document.organization_id,
            document_id=document.id,
            actor_user_id=user.id,
            actor_email=user.email,
            actor_name=user.full_name,
            ip_address=ip_address,
            user_agent=user_agent,
            metadata={"file_type": file_type},
        )
        return DownloadedFile(filename=filename, content=content)
