"""Opaque token generation for signing sessions and download links."""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta

from app.services.common import utcnow

DEFAULT_TOKEN_BYTES = 32


def generate_token(byte_length: int = DEFAULT_TOKEN_BYTES) -> str:
    """Return ``byte_length`` random bytes hex-encoded (64 chars by default)."""
    if byte_length < 16:
        raise ValueError("byte_length must be at least 16")
    return secrets.token_hex(byte_length)


def token_expiry(days: int, now: datetime | None = None) -> datetime:
    return (now or utcnow()) + timedelta(seconds=days * 86400)
