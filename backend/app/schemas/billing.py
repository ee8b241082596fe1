"""
Pydantic schemas for billing endpoints.
"""

from typing import Optional
from datetime import datetime

from .base import CamelModel
from ..core.tier_limits import PlanCode


class CheckoutSessionRequest(CamelModel):
    """Request to create a checkout session."""
    plan: PlanCode


class CheckoutSessionResponse(CamelModel):
    """Response with checkout session URL."""
    session_id: str
    url: str


class PortalSessionResponse(CamelModel):
    url: str


class BillingStatusResponse(CamelModel):
    """User's billing/tier status."""
    plan_code: str
    is_paid: bool
    plan_renews_at: Optional[datetime] = None
    has_billing_account: bool


class WebhookResponse(CamelModel):
    """Response from webhook processing."""
    received: bool = True
    status: str
    message: str
