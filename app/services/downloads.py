"""Post-completion download links."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.models.document import Document
from app.models.signing import DownloadToken
from app.services import store
from app.services.audit import AuditEventType, AuditLedger
from app.services.common import ensure_utc, utcnow
from app.services.file_fetch import FileFetcher, FileFetchError, pick_file
from app.services.tokens import generate_token, token_expiry
from app.services.workflow_config import WorkflowConfig

logger = logging.getLogger(__name__)

SAFE_FILENAME_RE = re.compile(r"[^A-Za-z0-9._ -]+")


class DownloadRejected(Exception):
    def __init__(self, code: str, status_code: int, message: str):
        self.code = code
        self.status_code = status_code
        self.message = message
        super().__init__(message)


@dataclass
class DownloadedFile:
    filename: str
    content: bytes
    content_type: str = "application/pdf"


class DownloadTokenService:
    def __init__(self, config: WorkflowConfig, ledger: AuditLedger, fetcher: FileFetcher):
        self.config = config
        self.ledger = ledger
        self.fetcher = fetcher

    def issue(
        self,
        db: Session,
        document: Document,
        email: str,
        recipient_id=None,
        now: datetime | None = None,
    ) -> DownloadToken:
        token = DownloadToken(
            organization_id=document.organization_id,
            document_id=document.id,
            recipient_id=recipient_id,
            email=email,
            token=generate_token(),
            expires_at=token_expiry(self.config.token_expiry.download_days, now),
        )
        return store.insert(db, token)

    def resolve(self, db: Session, token: str | None, now: datetime | None = None) -> DownloadToken:
        now = now or utcnow()
        record = store.find_one(db, DownloadToken, token=token) if token else None
        if record is None:
            raise DownloadRejected("invalid_download_link", 404, "Invalid download link")
        if now >= ensure_utc(record.expires_at):
            raise DownloadRejected("download_link_expired", 410, "Download link expired")
        return record

    def download(
        self,
        db: Session,
        token: str | None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        now: datetime | None = None,
    ) -> DownloadedFile:
        """Serve the signed PDF (original as fallback) for a valid link."""
        now = now or utcnow()
        record = self.resolve(db, token, now)
        document = db.get(Document, record.document_id)
        file = pick_file(document) if document else None
        if file is None:
            raise HTTPException(status_code=404, detail="File not found")
        try:
            content = self.fetcher.fetch(file.url)
        except FileFetchError as exc:
            logger.error("Download of document %s failed: %s", document.id, exc)
            raise HTTPException(status_code=502, detail="File temporarily unavailable") from exc

        if record.used_at is None:
            store.update(db, DownloadToken, {"id": record.id}, {"used_at": now})
        self.ledger.record(
            db,
            AuditEventType.document_downloaded,
            organization_id=document.organization_id,
            document_id=document.id,
            recipient_id=record.recipient_id,
            actor_email=record.email,
            ip_address=ip_address,
            user_agent=user_agent,
            metadata={"via": "download_link", "filename": file.filename},
        )
        return DownloadedFile(filename=file.filename, content=content)


def build_content_disposition(filename: str) -> str:
    name = Path(filename).name
    safe = SAFE_FILENAME_RE.sub("_", name).strip().strip(".")[:255] or "document.pdf"
    return f'attachment; filename="{safe}"'
