"""
Billing API endpoints for Stripe integration.
Handles checkout, the customer portal, webhooks and billing status.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from ...core.dependencies import RequestContext, require_user
from ...core.errors import TunedUpError
from ...schemas.billing import (
    BillingStatusResponse,
    CheckoutSessionRequest,
    CheckoutSessionResponse,
    PortalSessionResponse,
    WebhookResponse,
)
from ...services.billing_service import billing_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/billing", tags=["Billing"])


@router.post("/checkout", response_model=CheckoutSessionResponse)
async def create_checkout_session(
    body: CheckoutSessionRequest,
    context: RequestContext = Depends(require_user),
):
    """
    Create a Stripe Checkout session for a PLUS, PRO or ULTRA subscription.
    """
    return billing_service.create_checkout(context.email, body.plan)


@router.post("/portal", response_model=PortalSessionResponse)
async def create_portal_session(context: RequestContext = Depends(require_user)):
    """Stripe billing portal for users who already have a billing account."""
    return billing_service.create_portal(context.email)


@router.post("/webhook", response_model=WebhookResponse)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
):
    """
    Handle Stripe webhook events.

    Events handled:
    - checkout.session.completed: plan upgraded, usage reset
    - customer.subscription.updated: plan follows the subscription price
    - customer.subscription.deleted: back to FREE
    - invoice.payment_succeeded / invoice.payment_failed: logged

    Any failure while applying an event returns 500 so Stripe retries it.
    """
    payload = await request.body()
    event = billing_service.construct_event(payload, stripe_signature)

    try:
        return billing_service.handle_event(event)
    except Exception as e:
        logger.error(f"Webhook handler failed for {event['type']}: {e}")
        raise TunedUpError("Webhook handler failed")


@router.get("/status", response_model=BillingStatusResponse)
async def get_billing_status(context: RequestContext = Depends(require_user)):
    return billing_service.status(context.email)
