"""
Authentication API routes.

Passwordless sign-in: an emailed six-digit code (or the magic link in the
same email) is exchanged for a session token, returned in the body and set
as an httpOnly cookie.
"""
from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import RedirectResponse

from ...schemas.auth import (
    DevLoginRequest,
    MessageResponse,
    SendCodeRequest,
    SessionResponse,
    UserResponse,
    VerifyCodeRequest,
)
from ...services.auth_service import auth_service
from ...services.entitlement_service import entitlement_service
from ...core.config import settings
from ...core.dependencies import RequestContext, require_user
from ...core.errors import NotFoundError
from ...core.rate_limit import limiter


router = APIRouter(prefix="/auth", tags=["Authentication"])


def set_session_cookie(response: Response, token: str) -> None:
    """
    The cookie is:
    - httpOnly: JavaScript cannot access it (XSS protection)
    - Secure: Only sent over HTTPS (forced in production)
    - SameSite=Lax: CSRF protection while allowing normal navigation
    """
    response.set_cookie(
        key=settings.cookie_name,
        value=token,
        httponly=settings.cookie_httponly,
        secure=settings.is_production_environment or settings.cookie_secure,
        samesite=settings.cookie_samesite,
        domain=settings.cookie_domain,
        max_age=settings.session_max_age_seconds,
        path="/",
    )


@router.post("/send-code", response_model=MessageResponse)
@limiter.limit(settings.auth_rate_limit)
async def send_code(request: Request, body: SendCodeRequest):
    """Email a sign-in code and magic link, creating the account on first use."""
    await auth_service.send_code(body.email)
    return MessageResponse(message="Sign-in code sent to your email")


@router.post("/verify", response_model=SessionResponse)
@limiter.limit(settings.auth_rate_limit)
async def verify_code(request: Request, body: VerifyCodeRequest, response: Response):
    session = auth_service.verify_code(body.email, body.code)
    set_session_cookie(response, session.token)
    return SessionResponse(
        message="Signed in successfully",
        token=session.token,
        user=entitlement_service.to_user_response(session.user),
    )


@router.get("/verify")
async def verify_magic_link(token: str = Query(..., min_length=1)):
    """
    Magic-link landing endpoint.

    Redirects to the dashboard with a session cookie, or back to the login
    page when the link is invalid or expired.
    """
    session = auth_service.verify_magic_link(token)
    if session is None:
        return RedirectResponse(f"{settings.app_base_url}/login?error=invalid-token", status_code=302)

    response = RedirectResponse(f"{settings.app_base_url}/dashboard", status_code=302)
    set_session_cookie(response, session.token)
    return response


@router.get("/me", response_model=UserResponse)
async def get_me(context: RequestContext = Depends(require_user)):
    """Current user with plan and usage (monthly rollover applied)."""
    user = entitlement_service.get_user(context.email)
    if user is None:
        raise NotFoundError("User not found")
    return entitlement_service.to_user_response(user)


@router.post("/logout", response_model=MessageResponse)
async def logout(response: Response):
    """Clear the session cookie. Does not require authentication."""
    response.delete_cookie(
        key=settings.cookie_name,
        path="/",
        domain=settings.cookie_domain,
    )
    return MessageResponse(message="Logged out")


@router.post("/dev-login", response_model=SessionResponse)
async def dev_login(body: DevLoginRequest, response: Response):
    """Sign in as an ADMIN account without a code (non-production only)."""
    session = auth_service.dev_login(body.email)
    set_session_cookie(response, session.token)
    return SessionResponse(
        message="Development login successful",
        token=session.token,
        user=entitlement_service.to_user_response(session.user),
    )


@router.get("/health")
async def auth_health():
    return {"status": "healthy", "service": "auth"}
