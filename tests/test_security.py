# tests/test_security.py
"""Tests for bearer token helpers."""

from datetime import UTC, datetime, timedelta

import pytest
from jose import jwt

from storefront_chat.core.security import (
    InvalidTokenError,
    create_access_token,
    decode_access_token,
)
from storefront_chat.core.settings import settings


def test_token_round_trips_user_id() -> None:
    token = create_access_token(42)
    assert decode_access_token(token) == 42


def test_tampered_token_is_rejected() -> None:
    token = create_access_token(42)
    with pytest.raises(InvalidTokenError):
        decode_access_token(token[:-2] + "xx")


def test_expired_token_is_rejected() -> None:
    """Tokens past their expiry are invalid."""
    expired = jwt.encode(
        {"sub": "42", "exp": datetime.now(UTC) - timedelta(minutes=1)},
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    with pytest.raises(InvalidTokenError):
        decode_access_token(expired)


def test_non_numeric_subject_is_rejected() -> None:
    token = create_access_token("not-a-user")
    with pytest.raises(InvalidTokenError):
        decode_access_token(token)
