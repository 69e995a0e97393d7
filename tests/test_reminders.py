from datetime import timedelta

import pytest

from app.celery_app import build_beat_schedule
from app.models.audit import AuditEvent
from app.services.audit import AuditEventType
from app.services.common import utcnow
from app.tasks.reminders import _send_due_reminders, reminder_days_for
from tests.helpers import session_token


@pytest.mark.parametrize(
    "settings, expected",
    [
        (None, set()),
        ({}, set()),
        ({"reminder_days": 3}, {3}),
        ({"reminder_days": "5"}, {5}),
        ({"reminder_days": [1, "2", 0, -4, "soon"]}, {1, 2}),
        ({"reminder_days": True}, set()),
    ],
)
def test_reminder_days_parsing(settings, expected):
    assert reminder_days_for(settings) == expected


def test_due_recipients_are_reminded_once_per_day(
    db_session, workflow, dispatcher, organization, make_document
):
    organization.settings = {"reminder_days": [2, 5]}
    db_session.commit()
    document = make_document(send=True)
    now = utcnow() + timedelta(days=2, hours=1)

    assert _send_due_reminders(db_session, workflow, now=now) == 2
    assert _send_due_reminders(db_session, workflow, now=now) == 0

    reminded = {m.to for m in dispatcher.of_kind("reminder")}
    assert reminded == {r.email for r in document.recipients}
    events = (
        db_session.query(AuditEvent)
        .filter(AuditEvent.document_id == document.id)
        .filter(AuditEvent.event_type == AuditEventType.recipient_reminder_sent)
        .all()
    )
    assert len(events) == 2
    assert all(e.metadata_["automatic"] is True for e in events)
    assert all(e.actor_user_id is None for e in events)


def test_nothing_is_sent_off_schedule(db_session, workflow, dispatcher, organization, make_document):
    organization.settings = {"reminder_days": 3}
    db_session.commit()
    make_document(send=True)

    assert _send_due_reminders(db_session, workflow, now=utcnow() + timedelta(days=1)) == 0
    assert dispatcher.of_kind("reminder") == []


def test_organizations_without_schedule_are_skipped(db_session, workflow, dispatcher, make_document):
    make_document(send=True)

    assert _send_due_reminders(db_session, workflow, now=utcnow() + timedelta(days=2)) == 0


def test_signed_recipients_and_finished_documents_are_skipped(
    db_session, workflow, dispatcher, organization, user, make_document
):
    organization.settings = {"reminder_days": 1}
    db_session.commit()
    partially_signed = make_document(send=True)
    signer = partially_signed.recipients[0]
    workflow.signing.submit(db_session, session_token(db_session, signer.id), {})
    voided = make_document(send=True)
    workflow.documents.void(db_session, user, voided.id)

    sent = _send_due_reminders(db_session, workflow, now=utcnow() + timedelta(days=1, hours=2))

    assert sent == 1
    (message,) = dispatcher.of_kind("reminder")
    assert message.to == partially_signed.recipients[1].email


def test_failed_automatic_reminder_is_not_counted(
    db_session, workflow, dispatcher, organization, make_document
):
    organization.settings = {"reminder_days": 1}
    db_session.commit()
    document = make_document(roles=("signer",), send=True)
    dispatcher.fail_for.add(document.recipients[0].email.lower())

    assert _send_due_reminders(db_session, workflow, now=utcnow() + timedelta(days=1)) == 0
    assert AuditEventType.recipient_reminder_sent not in [
        e.event_type for e in workflow.ledger.trail(db_session, document.id)
    ]


def test_beat_schedule_runs_reminder_task():
    schedule = build_beat_schedule()["send_due_reminders"]

    assert schedule["task"] == "app.tasks.reminders.send_due_reminders"
    assert schedule["schedule"] >= 60
