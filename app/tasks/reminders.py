import logging
import time
from datetime import datetime

from app.celery_app import celery_app
from app.config import settings
from app.db import SessionLocal
from app.metrics import observe_job
from app.models.document import Document, DocumentStatus, Recipient, RecipientRole, RecipientStatus
from app.models.organization import Organization, User
from app.models.signing import SigningSession
from app.services import store
from app.services.common import ensure_utc, utcnow
from app.services.workflow import Workflow, build_workflow
from app.services.workflow_config import WorkflowConfig

logger = logging.getLogger(__name__)

_AWAITING = (RecipientStatus.sent, RecipientStatus.viewed)


def reminder_days_for(organization_settings: dict | None) -> set[int]:
    """``reminder_days`` may be a single day count or a list of them."""
    raw = (organization_settings or {}).get("reminder_days")
    if raw is None or isinstance(raw, bool):
        return set()
    values = raw if isinstance(raw, (list, tuple)) else [raw]
    days = set()
    for value in values:
        try:
            day = int(value)
        except (TypeError, ValueError):
            continue
        if day > 0:
            days.add(day)
    return days


def _first_sent_at(db, recipient_id) -> datetime | None:
    sessions = store.find_many(
        db,
        SigningSession,
        order_by=SigningSession.created_at.asc(),
        recipient_id=recipient_id,
    )
    return ensure_utc(sessions[0].created_at) if sessions else None


def _send_due_reminders(db, workflow: Workflow, now: datetime | None = None) -> int:
    now = now or utcnow()
    sent = 0
    for document in store.find_many(db, Document, status=DocumentStatus.pending):
        organization = db.get(Organization, document.organization_id)
        days = reminder_days_for(organization.settings if organization else None)
        if not days:
            continue
        sender = db.get(User, document.created_by)
        sender_name = sender.display_name if sender else "Someone"
        recipients = store.find_many(
            db,
            Recipient,
            document_id=document.id,
            status=list(_AWAITING),
            role=[RecipientRole.signer, RecipientRole.approver],
        )
        for recipient in recipients:
            sent_at = _first_sent_at(db, recipient.id)
            if sent_at is None or (now - sent_at).days not in days:
                continue
            reminded = ensure_utc(recipient.last_reminded_at)
            if reminded is not None and reminded.date() == now.date():
                continue
            result = workflow.documents.deliver_reminder(
                db, document, recipient, sender_name=sender_name, automatic=True, now=now
            )
            if result.success:
                sent += 1
    return sent


@celery_app.task(name="app.tasks.reminders.send_due_reminders")
def send_due_reminders():
    start = time.monotonic()
    session = SessionLocal()
    status = "success"
    try:
        workflow = build_workflow(WorkflowConfig.from_settings(settings))
        sent = _send_due_reminders(session, workflow)
        logger.info("Sent %d automatic reminders", sent)
        return sent
    except Exception:
        status = "error"
        session.rollback()
        raise
    finally:
        session.close()
        observe_job("send_due_reminders", status, time.monotonic() - start)
