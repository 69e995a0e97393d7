"""Document completion evaluation.

Runs inline after every signature. The transition to ``completed`` is a
conditional UPDATE; only the evaluator whose UPDATE affects a row goes on to
mint download links and send completion emails.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.orm import Session

from app.metrics import DOCUMENTS_COMPLETED
from app.models.document import (
    TERMINAL_DOCUMENT_STATUSES,
    Document,
    DocumentStatus,
    Recipient,
    RecipientStatus,
)
from app.models.organization import User
from app.services import store
from app.services.audit import AuditEventType, AuditLedger
from app.services.common import utcnow
from app.services.downloads import DownloadTokenService
from app.services.email import DispatchResult, EmailDispatcher, deliver_each, render_completion
from app.services.file_fetch import FileFetcher, pick_file
from app.services.recipients import RecipientStatusTracker, is_required
from app.services.workflow_config import WorkflowConfig

logger = logging.getLogger(__name__)


@dataclass
class CompletionTarget:
    email: str
    name: str
    recipient_id: object | None
    download_url: str


@dataclass
class CompletionResult:
    all_signed: bool
    completed: bool
    deliveries: list[DispatchResult] = field(default_factory=list)


class CompletionEvaluator:
    def __init__(
        self,
        config: WorkflowConfig,
        ledger: AuditLedger,
        tracker: RecipientStatusTracker,
        downloads: DownloadTokenService,
        dispatcher: EmailDispatcher,
        fetcher: FileFetcher,
    ):
        self.config = config
        self.ledger = ledger
        self.tracker = tracker
        self.downloads = downloads
        self.dispatcher = dispatcher
        self.fetcher = fetcher

    def all_required_signed(self, db: Session, document_id) -> bool:
        recipients = store.find_many(db, Recipient, document_id=document_id)
        required = [recipient.id for recipient in recipients if is_required(recipient)]
        statuses = self.tracker.statuses(db, document_id)
        return all(statuses.get(rid) == RecipientStatus.signed for rid in required)

    def evaluate(
        self,
        db: Session,
        document: Document,
        final_signer: Recipient | None = None,
        now: datetime | None = None,
    ) -> CompletionResult:
        document_id = document.id
        organization_id = document.organization_id
        if not self.all_required_signed(db, document_id):
            return CompletionResult(all_signed=False, completed=False)

        now = now or utcnow()
        won = store.update_if(
            db,
            Document,
            {"id": document_id},
            {"status": DocumentStatus.completed, "completed_at": now},
            Document.status.notin_(TERMINAL_DOCUMENT_STATUSES),
        )
        if not won:
            logger.info("Document %s already finalized; skipping completion fan-out", document_id)
            return CompletionResult(all_signed=True, completed=False)

        DOCUMENTS_COMPLETED.inc()
        document = db.get(Document, document_id)
        targets = self._mint_links(db, document, now)
        self.ledger.record(
            db,
            AuditEventType.document_completed,
            organization_id=organization_id,
            document_id=document_id,
            recipient_id=final_signer.id if final_signer else None,
            actor_email=final_signer.email if final_signer else None,
            actor_name=final_signer.name if final_signer else None,
            metadata={
                "final_signer": final_signer.email if final_signer else None,
                "notified": len(targets),
            },
        )
        logger.info("Document %s completed; notifying %d people", document_id, len(targets))

        deliveries = self._notify(db, document, targets)
        return CompletionResult(all_signed=True, completed=True, deliveries=deliveries)

    def _mint_links(self, db: Session, document: Document, now: datetime) -> list[CompletionTarget]:
        """One download token per unique email: all recipients, then the creator."""
        seen: set[str] = set()
        targets: list[CompletionTarget] = []
        recipients = store.find_many(
            db, Recipient, order_by=Recipient.signing_order.asc(), document_id=document.id
        )
        people = [(r.email, r.name, r.id) for r in recipients]
        creator = db.get(User, document.created_by)
        if creator is not None:
            people.append((creator.email, creator.display_name, None))

        for email, name, recipient_id in people:
            key = (email or "").strip().lower()
            if not key or key in seen:
                continue
            seen.add(key)
            token = self.downloads.issue(db, document, email, recipient_id=recipient_id, now=now)
            targets.append(
                CompletionTarget(
                    email=email,
                    name=name,
                    recipient_id=recipient_id,
                    download_url=self.config.download_url(token.token),
                )
            )
        return targets

    def _notify(
        self, db: Session, document: Document, targets: list[CompletionTarget]
    ) -> list[DispatchResult]:
        title = document.title
        organization_id = document.organization_id
        document_id = document.id
        attachment, too_large = self.fetcher.fetch_attachment(pick_file(document))

        def attempt(target: CompletionTarget) -> DispatchResult:
            message = render_completion(
                recipient_name=target.name,
                recipient_email=target.email,
                document_title=title,
                download_url=target.download_url,
                attachment=attachment,
                too_large=too_large,
            )
            result = self.dispatcher.send(message, kind="completion")
            event_type = (
                AuditEventType.recipient_completion_email_sent
                if target.recipient_id is not None
                else AuditEventType.document_completion_email_sent
            )
            self.ledger.record(
                db,
                event_type,
                organization_id=organization_id,
                document_id=document_id,
                recipient_id=target.recipient_id,
                metadata={
                    "email": target.email,
                    "email_success": result.success,
                    "error": result.error,
                    "attached": attachment is not None,
                },
            )
            return result

        return deliver_each(targets, attempt, address=lambda target: target.email)
