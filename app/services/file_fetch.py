"""Read-only access to PDF bytes referenced by URL.

Documents only store a URL; bytes are pulled transiently for email
attachments and download responses and are never persisted.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from app.models.document import Document, DocumentFile, DocumentFileType
from app.services.email import EmailAttachment
from app.services.workflow_config import StorageConfig

logger = logging.getLogger(__name__)


class FileFetchError(Exception):
    """PDF bytes could not be retrieved."""


def pick_file(document: Document, prefer_signed: bool = True) -> DocumentFile | None:
    """Signed copy when available, otherwise the original upload."""
    by_type = {item.file_type: item for item in document.files}
    if prefer_signed and DocumentFileType.signed in by_type:
        return by_type[DocumentFileType.signed]
    return by_type.get(DocumentFileType.original)


class FileFetcher:
    def __init__(self, config: StorageConfig, client: Any | None = None):
        self.config = config
        self.client = client

    def fetch(self, url: str) -> bytes:
        try:
            if self.client is not None:
                response = self.client.get(url, timeout=self.config.fetch_timeout)
            else:
                response = httpx.get(
                    url, timeout=self.config.fetch_timeout, follow_redirects=True
                )
        except httpx.HTTPError as exc:
            raise FileFetchError(f"Failed to fetch {url}: {exc}") from exc
        if response.status_code >= 400:
            raise FileFetchError(f"Failed to fetch {url}: HTTP {response.status_code}")
        return response.content

    def fetch_attachment(self, file: DocumentFile | None) -> tuple[EmailAttachment | None, bool]:
        """Returns ``(attachment, too_large)``.

        Files at or above ``max_attachment_bytes`` are not attached; a fetch
        failure yields no attachment so the email falls back to the link.
        """
        if file is None:
            return None, False
        limit = self.config.max_attachment_bytes
        if file.size_bytes is not None and file.size_bytes >= limit:
            return None, True
        try:
            content = self.fetch(file.url)
        except FileFetchError as exc:
            logger.warning("Attachment fetch failed for %s: %s", file.filename, exc)
            return None, False
        if len(content) >= limit:
            return None, True
        return EmailAttachment(filename=file.filename, content=content), False
