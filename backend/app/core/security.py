"""
Security utilities for authentication.

Session tokens are HS256 JWTs signed with ``jwt_secret_key`` and carry
``{email, userId, plan}``. The same signing key produces short-lived
magic-link tokens (``purpose=magic_link``) that are exchanged for a session.
"""
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import JWTError, jwt

from .config import settings
from .errors import InvalidTokenError


logger = logging.getLogger(__name__)

MAGIC_LINK_PURPOSE = "magic_link"


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed JWT from ``data``."""
    to_encode = data.copy()
    now = datetime.now(timezone.utc)

    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(days=settings.session_expire_days)

    to_encode.update({"exp": expire, "iat": now})

    return jwt.encode(
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm
    )


def create_session_token(email: str, user_id: Optional[str], plan: str) -> str:
    """Create the 30-day session token set as cookie and returned to clients."""
    return create_access_token(
        {"email": email, "userId": user_id, "plan": plan},
        expires_delta=timedelta(days=settings.session_expire_days),
    )


def create_magic_link_token(email: str) -> str:
    return create_access_token(
        {"email": email, "purpose": MAGIC_LINK_PURPOSE},
        expires_delta=timedelta(minutes=settings.magic_link_expire_minutes),
    )


def verify_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Verify and decode a JWT.

    Returns None for malformed, expired or wrongly-signed tokens.
    """
    if not token:
        return None

    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            options={"verify_aud": False}
        )
    except JWTError as e:
        logger.debug(f"Token verification failed: {type(e).__name__}")
        return None


def require_email_claim(payload: Dict[str, Any]) -> str:
    """
    Return the ``email`` claim of a verified payload.

    Raises:
        InvalidTokenError: signature was valid but the claim is missing
    """
    email = payload.get("email")
    if not email or not isinstance(email, str):
        raise InvalidTokenError("Invalid token payload")
    return email.strip().lower()


def extract_email_from_token(token: str) -> Optional[str]:
    """
    Email of a verified session token, or None for any verification failure.

    Purpose-bound tokens (magic links) are not sessions and are refused.
    """
    payload = verify_token(token)
    if payload is None:
        return None
    if payload.get("purpose"):
        logger.warning(f"Rejected {payload['purpose']} token presented as a session")
        return None
    try:
        return require_email_claim(payload)
    except InvalidTokenError:
        logger.warning("Rejected signed token without email claim")
        return None


def parse_bearer(authorization: Optional[str]) -> Optional[str]:
    """Token part of an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        return None
    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
        return None
    return parts[1]


def resolve_identity(
    authorization: Optional[str] = None,
    session_cookie: Optional[str] = None,
    legacy_email: Optional[str] = None,
    allow_legacy: bool = False,
) -> Optional[str]:
    """
    Resolve the caller's email from request credentials.

    Order: bearer token, session cookie, then (only when ``allow_legacy``)
    the unauthenticated ``x-user-email`` header. A presented but invalid
    token never falls through to the legacy header.
    """
    token = parse_bearer(authorization) or session_cookie
    if token:
        return extract_email_from_token(token)

    if allow_legacy and legacy_email and "@" in legacy_email:
        return legacy_email.strip().lower()

    return None


def generate_verification_code() -> str:
    """Six-digit login code."""
    return f"{secrets.randbelow(900000) + 100000}"
