"""
Passwordless authentication: emailed six-digit codes and magic links
exchanged for 30-day session tokens.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from urllib.parse import quote

from ..core.config import settings
from ..core.errors import AuthError, ForbiddenError
from ..core.security import (
    MAGIC_LINK_PURPOSE,
    create_magic_link_token,
    create_session_token,
    generate_verification_code,
    require_email_claim,
    verify_token,
)
from ..core.supabase_client import supabase_client
from ..core.tier_limits import PlanCode, normalize_plan
from .email_service import email_service
from .entitlement_service import entitlement_service

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """A freshly issued session for ``user``."""
    token: str
    user: Dict[str, Any]


class AuthService:
    """Service class for authentication operations."""

    def __init__(self):
        self._supabase = None

    @property
    def supabase(self):
        if self._supabase is None:
            self._supabase = supabase_client.service_client
        return self._supabase

    @supabase.setter
    def supabase(self, client):
        self._supabase = client

    @staticmethod
    def magic_link_url(token: str) -> str:
        return f"{settings.public_api_url.rstrip('/')}{settings.api_v1_str}/auth/verify?token={quote(token)}"

    def issue_session(self, user: Dict[str, Any]) -> Session:
        token = create_session_token(
            email=user["email"],
            user_id=str(user["id"]) if user.get("id") else None,
            plan=normalize_plan(user.get("plan_code")).value,
        )
        return Session(token=token, user=user)

    async def send_code(self, email: str) -> None:
        """Replace any outstanding code for ``email`` and send a new one with a magic link."""
        email = email.lower()
        code = generate_verification_code()
        expires_at = datetime.now(timezone.utc) + timedelta(minutes=settings.magic_link_expire_minutes)

        self.supabase.table("verification_codes").delete().eq("email", email).execute()
        self.supabase.table("verification_codes").insert({
            "email": email,
            "code": code,
            "expires_at": expires_at.isoformat(),
            "used": False,
        }).execute()

        entitlement_service.get_or_create_user(email)

        link = self.magic_link_url(create_magic_link_token(email))
        await email_service.send_login_email(email, code, link)
        logger.info(f"Login code sent to {email}")

    def verify_code(self, email: str, code: str) -> Session:
        """
        Consume a valid code and open a session.

        Raises:
            AuthError: code unknown, expired or already used
        """
        email = email.lower()
        now = datetime.now(timezone.utc).isoformat()

        # Marking the code used is conditional so it can only be redeemed once
        result = (
            self.supabase.table("verification_codes")
            .update({"used": True})
            .eq("email", email)
            .eq("code", code)
            .eq("used", False)
            .gt("expires_at", now)
            .execute()
        )
        if not result.data:
            logger.info(f"Rejected login code for {email}")
            raise AuthError("Invalid or expired code")

        user = entitlement_service.get_or_create_user(email)
        logger.info(f"User {email} signed in with code")
        return self.issue_session(user)

    def verify_magic_link(self, token: str) -> Optional[Session]:
        """
        Exchange a magic-link token for a session.

        Returns None when the token is malformed, expired or not a magic link.

        Raises:
            InvalidTokenError: signature is valid but the token carries no email
        """
        payload = verify_token(token)
        if payload is None:
            return None

        email = require_email_claim(payload)
        if payload.get("purpose") != MAGIC_LINK_PURPOSE:
            logger.warning(f"Rejected non magic-link token presented for {email}")
            return None

        user = entitlement_service.get_or_create_user(email)
        logger.info(f"User {email} signed in with magic link")
        return self.issue_session(user)

    def dev_login(self, email: str) -> Session:
        """Sign in without a code. Development environments only."""
        if settings.is_production_environment:
            raise ForbiddenError("Development login is disabled in production")

        user = entitlement_service.get_or_create_user(email.lower(), plan=PlanCode.ADMIN)
        logger.warning(f"Development login for {email}")
        return self.issue_session(user)


# Global service instance
auth_service = AuthService()
