import string
from datetime import datetime, timedelta, timezone

import pytest

from app.services.tokens import generate_token, token_expiry


def test_generate_token_is_64_hex_chars():
    token = generate_token()
    assert len(token) == 64
    assert set(token) <= set(string.hexdigits.lower())


def test_generate_token_honours_byte_length():
    assert len(generate_token(16)) == 32
    assert len(generate_token(48)) == 96


def test_generate_token_rejects_short_lengths():
    with pytest.raises(ValueError):
        generate_token(8)


def test_generate_token_does_not_repeat():
    tokens = {generate_token() for _ in range(500)}
    assert len(tokens) == 500


def test_token_expiry_adds_whole_days():
    now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    assert token_expiry(7, now) == now + timedelta(seconds=7 * 86400)
    assert token_expiry(90, now) == datetime(2026, 5, 30, 12, 0, tzinfo=timezone.utc)


def test_token_expiry_defaults_to_now():
    before = datetime.now(timezone.utc)
    expires = token_expiry(1)
    assert before + timedelta(days=1) <= expires <= datetime.now(timezone.utc) + timedelta(days=1)
