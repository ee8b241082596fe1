"""
TunedUp API application: middleware, error handlers and routers.
"""
import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .core.config import settings
from .core.errors import TunedUpError
from .core.http import CredentialedCORSMiddleware, ForwardedHeadersMiddleware
from .core.rate_limit import limiter
from .api.v1.admin import router as admin_router
from .api.v1.auth import router as auth_router
from .api.v1.billing import router as billing_router
from .api.v1.community import admin_router as community_admin_router, router as community_router
from .api.v1.dashboard import router as dashboard_router
from .api.v1.promotions import router as promotions_router
from .api.v1.quota import router as quota_router
from .api.v1.saved import router as saved_router
from .api.v1.tools import router as tools_router
from .services.anonymous_usage import anonymous_usage

log_level = logging.DEBUG if settings.debug else logging.INFO

logging.basicConfig(
    level=log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    stream=sys.stdout
)

logging.getLogger("uvicorn.access").setLevel(logging.WARNING)  # Reduce access log noise
logging.getLogger("httpx").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup and shutdown.

    Redis only backs anonymous quotas, which fail open, so an unreachable
    Redis is logged rather than fatal.
    """
    logger.info(f"Starting {settings.project_name} ({settings.environment})")

    if await anonymous_usage.ping():
        logger.info("Redis connection established (anonymous quotas enabled)")
    else:
        logger.warning("Redis unavailable - anonymous quotas will not be enforced")

    yield

    logger.info("Shutting down...")
    await anonymous_usage.close()
    logger.info("Application shutdown complete")


async def tunedup_error_handler(request: Request, exc: TunedUpError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Routing errors (unknown path, wrong method) in the same body shape as domain errors."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"field": ".".join(str(part) for part in error["loc"] if part != "body"), "message": error["msg"]}
        for error in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"error": "Invalid request", "details": details})


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_application() -> FastAPI:
    app = FastAPI(
        title=settings.project_name,
        description="AI-assisted car performance estimates, build plans and renders with plan-based quotas",
        version="1.0.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    # Added last runs first: forwarded headers are applied before CORS
    app.add_middleware(CredentialedCORSMiddleware)
    app.add_middleware(ForwardedHeadersMiddleware)
    logger.info(f"CORS configured with {len(settings.effective_cors_origins)} static origins")

    if settings.is_production_environment:
        app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_hosts)

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(TunedUpError, tunedup_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    for router in (
        auth_router,
        quota_router,
        tools_router,
        community_router,
        community_admin_router,
        saved_router,
        dashboard_router,
        billing_router,
        promotions_router,
        admin_router,
    ):
        app.include_router(router, prefix=settings.api_v1_str)

    return app


app = create_application()


@app.get("/", include_in_schema=False)
async def root():
    return {"message": "TunedUp API", "version": app.version, "docs": app.docs_url or "disabled"}


@app.get("/health", include_in_schema=False)
async def health_check():
    """Liveness plus the state of the optional Redis dependency."""
    redis_up = await anonymous_usage.ping()
    return {
        "status": "healthy",
        "service": settings.project_name,
        "environment": settings.environment,
        "dependencies": {"redis": "up" if redis_up else "down"},
    }
