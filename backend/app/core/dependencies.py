"""
FastAPI dependencies for identity and authorization.

Every request gets a ``RequestContext`` built once from its credentials:
1. ``Authorization: Bearer <jwt>`` header (native and API clients)
2. httpOnly session cookie (browser sessions)
3. legacy ``x-user-email`` header, only when ALLOW_LEGACY_EMAIL_HEADER is set

Callers without a verified identity are anonymous and identified by a
fingerprint for the anonymous allowance.
"""
import logging
from dataclasses import dataclass
from typing import Optional
from fastapi import Depends, Header, Request

from .config import settings
from .errors import AuthError, ForbiddenError
from .security import parse_bearer, resolve_identity
from .tier_limits import ANONYMOUS_PLAN, PlanCode, normalize_plan
from ..services.anonymous_usage import build_fingerprint
from ..services.entitlement_service import entitlement_service

logger = logging.getLogger(__name__)


@dataclass
class RequestContext:
    """Who is calling, resolved once per request."""
    email: Optional[str] = None
    user_id: Optional[str] = None
    plan: str = ANONYMOUS_PLAN
    auth_method: str = "anonymous"
    fingerprint: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.email is not None

    @property
    def is_admin(self) -> bool:
        return self.plan == PlanCode.ADMIN.value


def client_ip(request: Request) -> Optional[str]:
    """Original client address, honouring the first X-Forwarded-For hop."""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else None


def _auth_method(authorization: Optional[str], session_cookie: Optional[str]) -> str:
    if parse_bearer(authorization):
        return "bearer"
    if session_cookie:
        return "cookie"
    return "legacy"


async def get_request_context(
    request: Request,
    authorization: Optional[str] = Header(None),
    x_user_email: Optional[str] = Header(None, alias="x-user-email"),
    x_anonymous_id: Optional[str] = Header(None, alias="X-Anonymous-Id"),
) -> RequestContext:
    """
    Resolve the caller. Never raises for bad credentials: an invalid or
    expired token simply yields an anonymous context.
    """
    session_cookie = request.cookies.get(settings.cookie_name)
    email = resolve_identity(
        authorization=authorization,
        session_cookie=session_cookie,
        legacy_email=x_user_email,
        allow_legacy=settings.allow_legacy_email_header,
    )

    if email is None:
        return RequestContext(
            fingerprint=build_fingerprint(
                x_anonymous_id,
                client_ip(request),
                request.headers.get("user-agent"),
            )
        )

    user = entitlement_service.get_or_create_user(email)
    return RequestContext(
        email=email,
        user_id=str(user["id"]) if user.get("id") else None,
        plan=normalize_plan(user.get("plan_code")).value,
        auth_method=_auth_method(authorization, session_cookie),
    )


async def require_user(context: RequestContext = Depends(get_request_context)) -> RequestContext:
    """Dependency for endpoints that need a verified identity."""
    if not context.is_authenticated:
        raise AuthError("Authentication required")
    return context


async def require_admin(context: RequestContext = Depends(require_user)) -> RequestContext:
    if not context.is_admin:
        logger.warning(f"Non-admin {context.email} attempted an admin operation")
        raise ForbiddenError("Admin access required")
    return context
