"""
Authentication-related Pydantic schemas.
"""
from datetime import datetime
from typing import Optional
from pydantic import EmailStr, Field

from .base import CamelModel


class SendCodeRequest(CamelModel):
    """Request a login code (and magic link) by email."""
    email: EmailStr = Field(..., description="User email address")


class VerifyCodeRequest(CamelModel):
    """Exchange an emailed code for a session."""
    email: EmailStr = Field(..., description="User email address")
    code: str = Field(..., min_length=6, max_length=6, pattern=r"^\d{6}$", description="6-digit code")


class DevLoginRequest(CamelModel):
    email: EmailStr


class UsageCounters(CamelModel):
    performance: int = 0
    build: int = 0
    image: int = 0


class UserResponse(CamelModel):
    """Schema for user data response."""
    id: Optional[str] = Field(None, description="User unique identifier")
    email: str = Field(..., description="User email address")
    plan_code: str = Field(..., description="Plan tier")
    usage: UsageCounters = Field(default_factory=UsageCounters)
    reset_date: Optional[datetime] = None
    plan_renews_at: Optional[datetime] = None
    has_billing_account: bool = False
    created_at: Optional[datetime] = None


class SessionResponse(CamelModel):
    """Response for session operations."""
    success: bool = True
    message: str
    token: Optional[str] = Field(None, description="Session token for non-browser clients")
    user: Optional[UserResponse] = None


class MessageResponse(CamelModel):
    success: bool = True
    message: str
