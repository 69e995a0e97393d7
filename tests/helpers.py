"""Builders shared by the test modules."""

import uuid

from sqlalchemy import create_engine, event

from app.models.audit import AuditEvent
from app.models.signing import SigningSession
from app.schemas.document import (
    DocumentCreate,
    DocumentFileCreate,
    FieldCreate,
    RecipientCreate,
)

PDF_URL = "https://files.example.com/contracts/msa.pdf"
PDF_BYTES = b"%PDF-1.7\n% signed agreement\n%%EOF"


def unique_email(prefix: str = "test") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}@example.com"


def document_payload(
    roles=("signer", "signer"),
    fields_for=(),
    send_now: bool = False,
    size_bytes: int | None = len(PDF_BYTES),
) -> DocumentCreate:
    """One recipient per role; ``fields_for`` lists the recipient indexes that
    get a required signature field."""
    recipients = [
        RecipientCreate(name=f"Person {index + 1}", email=unique_email(role), role=role)
        for index, role in enumerate(roles)
    ]
    fields = [
        FieldCreate(
            recipient_index=index,
            type="signature",
            x=10,
            y=10 + 10 * n,
            width=20,
            height=5,
        )
        for n, index in enumerate(fields_for)
    ]
    return DocumentCreate(
        title="Master Services Agreement",
        file=DocumentFileCreate(url=PDF_URL, filename="msa.pdf", size_bytes=size_bytes),
        recipients=recipients,
        fields=fields,
        send_now=send_now,
    )


def session_token(db, recipient_id) -> str:
    session = (
        db.query(SigningSession)
        .filter(SigningSession.recipient_id == uuid.UUID(str(recipient_id)))
        .order_by(SigningSession.created_at.desc())
        .first()
    )
    return session.token


def event_types(db, document_id) -> list[str]:
    rows = (
        db.query(AuditEvent)
        .filter(AuditEvent.document_id == document_id)
        .order_by(AuditEvent.created_at.asc())
        .all()
    )
    return [row.event_type for row in rows]


def sqlite_engine(url: str = "sqlite+pysqlite://", immediate: bool = False, **kwargs):
    """SQLite engine whose transactions and SAVEPOINTs are driven by SQLAlchemy.

    ``immediate`` takes the write lock when a transaction begins so that
    concurrent sessions queue on the busy timeout instead of failing.
    """
    engine = create_engine(
        url, connect_args={"check_same_thread": False, "timeout": 30}, **kwargs
    )

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, _connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE" if immediate else "BEGIN")

    return engine
