"""
Tests for token handling and identity resolution.
"""
from datetime import timedelta

import pytest
from jose import jwt

from app.core.config import settings
from app.core.errors import InvalidTokenError
from app.core.security import (
    create_access_token,
    create_magic_link_token,
    create_session_token,
    extract_email_from_token,
    generate_verification_code,
    parse_bearer,
    require_email_claim,
    resolve_identity,
    verify_token,
)


def test_session_token_round_trip():
    token = create_session_token("Driver@Example.com", "user-1", "PRO")
    payload = verify_token(token)
    assert payload["email"] == "Driver@Example.com"
    assert payload["userId"] == "user-1"
    assert payload["plan"] == "PRO"
    assert extract_email_from_token(token) == "driver@example.com"


def test_expired_token_is_rejected():
    token = create_access_token({"email": "a@example.com"}, expires_delta=timedelta(seconds=-10))
    assert verify_token(token) is None
    assert resolve_identity(authorization=f"Bearer {token}") is None


def test_wrong_signature_is_rejected():
    token = jwt.encode({"email": "a@example.com"}, "not-the-secret", algorithm="HS256")
    assert verify_token(token) is None


def test_malformed_token_is_rejected():
    assert verify_token("not.a.jwt") is None
    assert verify_token("") is None


def test_token_without_email_claim():
    token = create_access_token({"userId": "user-1"})
    payload = verify_token(token)
    assert payload is not None
    with pytest.raises(InvalidTokenError):
        require_email_claim(payload)
    assert extract_email_from_token(token) is None


@pytest.mark.parametrize("header, expected", [
    ("Bearer abc", "abc"),
    ("bearer abc", None),
    ("Bearer", None),
    ("Token abc", None),
    (None, None),
])
def test_parse_bearer(header, expected):
    assert parse_bearer(header) == expected


def test_bearer_takes_precedence_over_cookie():
    bearer = create_session_token("bearer@example.com", None, "FREE")
    cookie = create_session_token("cookie@example.com", None, "FREE")
    assert resolve_identity(authorization=f"Bearer {bearer}", session_cookie=cookie) == "bearer@example.com"
    assert resolve_identity(session_cookie=cookie) == "cookie@example.com"


def test_legacy_header_requires_flag():
    assert resolve_identity(legacy_email="legacy@example.com") is None
    assert resolve_identity(legacy_email="legacy@example.com", allow_legacy=True) == "legacy@example.com"
    assert resolve_identity(legacy_email="not-an-email", allow_legacy=True) is None


def test_invalid_token_does_not_fall_back_to_legacy_header():
    assert resolve_identity(
        authorization="Bearer garbage",
        legacy_email="legacy@example.com",
        allow_legacy=True,
    ) is None


def test_magic_link_token_purpose():
    payload = jwt.decode(
        create_magic_link_token("a@example.com"),
        settings.jwt_secret_key,
        algorithms=[settings.jwt_algorithm],
    )
    assert payload["purpose"] == "magic_link"


def test_magic_link_token_is_not_a_session():
    token = create_magic_link_token("a@example.com")
    assert extract_email_from_token(token) is None
    assert resolve_identity(authorization=f"Bearer {token}") is None
    assert resolve_identity(session_cookie=token) is None


def test_verification_code_format():
    for _ in range(50):
        code = generate_verification_code()
        assert len(code) == 6 and code.isdigit()
