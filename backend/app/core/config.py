"""
Core configuration settings for the application.
"""
import json
from typing import Dict, List, Optional, Union
from pydantic import Field, ConfigDict, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Supabase Configuration
    supabase_url: str = Field(..., description="Supabase project URL")
    supabase_service_role_key: str = Field(..., description="Supabase service role key")
    supabase_timeout_seconds: float = Field(default=10.0, description="Timeout for database and storage requests")
    storage_bucket: str = Field(default="community", description="Supabase Storage bucket for uploaded images")

    # JWT / Session Configuration
    jwt_secret_key: str = Field(..., description="Secret key for session tokens")
    jwt_algorithm: str = Field(default="HS256", description="JWT algorithm")
    session_expire_days: int = Field(default=30, description="Session token lifetime in days")
    magic_link_expire_minutes: int = Field(default=15, description="Login code and magic link lifetime")
    allow_legacy_email_header: bool = Field(
        default=False,
        description="Accept the unauthenticated x-user-email header when no token is present (migration shim)"
    )

    # Cookie Security Configuration
    cookie_name: str = Field(default="tunedup_session", description="Session cookie name")
    cookie_secure: bool = Field(default=False, description="Use secure cookies (HTTPS only) - auto-enabled in production")
    cookie_samesite: str = Field(default="lax", description="SameSite cookie policy")
    cookie_httponly: bool = Field(default=True, description="HttpOnly cookies for XSS protection")
    cookie_domain: Optional[str] = Field(default=None, description="Cookie domain for cross-subdomain auth")

    # FastAPI Configuration
    api_v1_str: str = Field(default="/api/v1", description="API v1 prefix")
    project_name: str = Field(default="tunedup-api", description="Project name")
    environment: str = Field(default="dev", description="Environment (dev, staging, production)")
    debug: bool = Field(default=False, description="Debug mode - set True only for local development")
    app_base_url: str = Field(default="http://localhost:3000", description="Public URL of the web app (links, redirects)")
    public_api_url: str = Field(default="http://localhost:8000", description="Public URL of this API (magic links)")

    # CORS Configuration
    allowed_origins: List[str] = Field(
        default=[
            "https://tunedup.dev",
            "https://www.tunedup.dev",
        ],
        description="Allowed CORS origins (production)"
    )

    cors_origin_patterns: List[str] = Field(
        default=[
            r"https://.*\.vercel\.app$",  # Preview deployments
            r"https://.*\.tunedup\.dev$",
            r"capacitor://localhost$",  # Native app shell
        ],
        description="Regex patterns for allowed CORS origins"
    )

    allowed_hosts: List[str] = Field(
        default=["localhost", "127.0.0.1", "api.tunedup.dev", "tunedup.dev", "*.tunedup.dev"],
        description="Trusted Host header values (enforced in production)"
    )

    @field_validator("allowed_origins", "cors_origin_patterns", "allowed_hosts", mode="before")
    @classmethod
    def parse_list(cls, v: Union[str, List[str]]) -> List[str]:
        """Accept a JSON array or a comma-separated string from the environment."""
        if not isinstance(v, str):
            return v
        if v.lstrip().startswith("["):
            return json.loads(v)
        return [item.strip() for item in v.split(",") if item.strip()]

    @property
    def is_production_environment(self) -> bool:
        """Check if running in production environment."""
        return self.environment in ["production", "prod"]

    @property
    def effective_cors_origins(self) -> List[str]:
        """
        Get CORS origins based on environment.

        - Production: Only production origins
        - Development: Adds localhost origins for local testing
        """
        origins = list(self.allowed_origins)

        if not self.is_production_environment:
            for origin in ["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:5173"]:
                if origin not in origins:
                    origins.append(origin)

        return origins

    @property
    def session_max_age_seconds(self) -> int:
        return self.session_expire_days * 24 * 60 * 60

    # Redis Configuration (anonymous usage tracking)
    redis_host: str = Field(default="localhost", description="Redis server host")
    redis_port: int = Field(default=6379, description="Redis server port")
    redis_auth_token: Optional[str] = Field(default=None, description="Redis AUTH token")
    redis_ssl: bool = Field(default=False, description="Use SSL for Redis connection")
    redis_timeout_seconds: float = Field(default=2.0, description="Socket timeout for Redis commands")
    anonymous_usage_ttl_days: int = Field(default=30, description="How long anonymous usage counters live")

    @property
    def redis_url(self) -> str:
        """Build the Redis connection URL from host, port, auth and SSL settings."""
        protocol = "rediss" if self.redis_ssl else "redis"
        auth_part = f":{self.redis_auth_token}@" if self.redis_auth_token else ""
        return f"{protocol}://{auth_part}{self.redis_host}:{self.redis_port}/0"

    # AI Providers
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key (performance, moderation)")
    gemini_api_key: Optional[str] = Field(default=None, description="Google Gemini API key (build plans, images)")
    performance_model: str = Field(default="o3-mini", description="Primary model for performance estimates")
    performance_fallback_model: str = Field(default="gpt-4o", description="Fallback model for performance estimates")
    build_plan_model: str = Field(default="gemini-2.0-flash-exp", description="Gemini model for build plans")
    image_model: str = Field(default="gemini-2.5-flash-image-preview", description="Gemini model for images")
    ai_request_timeout_seconds: float = Field(default=60.0, description="Timeout for a single outbound AI call")
    ai_max_attempts: int = Field(default=2, description="Attempts for transient AI failures")
    moderation_enabled: bool = Field(default=True, description="Run free text through the moderation endpoint")

    # Community gallery
    community_auto_approve: bool = Field(default=False, description="Publish uploads without admin approval")
    community_description_max_length: int = Field(default=500, description="Max description length")
    community_max_image_bytes: int = Field(default=8 * 1024 * 1024, description="Max decoded upload size")

    # Email (Resend)
    resend_api_key: Optional[str] = Field(default=None, description="Resend API key for login emails")
    resend_api_url: str = Field(default="https://api.resend.com/emails", description="Resend send endpoint")
    email_from: str = Field(default="TunedUp <hello@tunedup.dev>", description="Sender address")

    # Stripe
    stripe_secret_key: Optional[str] = Field(default=None, description="Stripe secret key")
    stripe_webhook_secret: Optional[str] = Field(default=None, description="Stripe webhook signing secret")
    stripe_price_plus: Optional[str] = Field(default=None, description="Stripe price id for PLUS")
    stripe_price_pro: Optional[str] = Field(default=None, description="Stripe price id for PRO")
    stripe_price_ultra: Optional[str] = Field(default=None, description="Stripe price id for ULTRA")

    @property
    def stripe_price_ids(self) -> Dict[str, Optional[str]]:
        return {
            "PLUS": self.stripe_price_plus,
            "PRO": self.stripe_price_pro,
            "ULTRA": self.stripe_price_ultra,
        }

    # Rate Limiting Configuration
    rate_limit_enabled: bool = Field(default=True, description="Enable slowapi rate limits")
    tool_rate_limit: str = Field(default="10/minute", description="Per-IP limit on AI tool endpoints")
    public_rate_limit: str = Field(default="60/minute", description="Per-IP limit on public gallery endpoints")
    auth_rate_limit: str = Field(default="5/minute", description="Per-IP limit on login code requests")

    model_config = ConfigDict(
        env_file=".env.dev",
        case_sensitive=False,
        extra="ignore"
    )


# Global settings instance
settings = Settings()
