"""
HTTP middleware: forwarded-header handling and credentialed CORS.

The SPA calls the API with cookies, so CORS has to echo the exact origin
rather than ``*``. Origins come from the static list in settings plus the
regex patterns for preview deployments and the native app shell.
"""
import re
from typing import Dict

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from .config import settings

ALLOWED_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS")
ALLOWED_HEADERS = (
    "Content-Type",
    "Authorization",
    "X-Requested-With",
    "X-Anonymous-Id",
    "x-user-email",
)
PREFLIGHT_MAX_AGE = 600


def is_origin_allowed(origin: str) -> bool:
    if not origin:
        return False
    if origin in settings.effective_cors_origins:
        return True
    return any(re.match(pattern, origin) for pattern in settings.cors_origin_patterns)


def cors_headers(origin: str, preflight: bool = False) -> Dict[str, str]:
    headers = {
        "Access-Control-Allow-Origin": origin,
        "Access-Control-Allow-Credentials": "true",
        "Vary": "Origin",
    }
    if preflight:
        headers.update({
            "Access-Control-Allow-Methods": ", ".join(ALLOWED_METHODS),
            "Access-Control-Allow-Headers": ", ".join(ALLOWED_HEADERS),
            "Access-Control-Max-Age": str(PREFLIGHT_MAX_AGE),
        })
    else:
        headers["Access-Control-Expose-Headers"] = "Content-Type, Retry-After"
    return headers


class ForwardedHeadersMiddleware(BaseHTTPMiddleware):
    """
    Trust X-Forwarded-Proto/Host from the load balancer so that generated
    URLs (magic-link redirects) keep the public scheme and host.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        proto = request.headers.get("x-forwarded-proto")
        if proto:
            request.scope["scheme"] = proto.split(",")[0].strip()

        host = request.headers.get("x-forwarded-host")
        if host:
            request.scope["server"] = (host.split(",")[0].strip(), None)

        return await call_next(request)


class CredentialedCORSMiddleware(BaseHTTPMiddleware):
    """Answer preflights directly; decorate other responses for allowed origins."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        origin = request.headers.get("origin", "")
        allowed = is_origin_allowed(origin)

        if request.method == "OPTIONS" and allowed and "access-control-request-method" in request.headers:
            return Response(status_code=200, headers=cors_headers(origin, preflight=True))

        response = await call_next(request)
        if allowed:
            response.headers.update(cors_headers(origin))
        return response
