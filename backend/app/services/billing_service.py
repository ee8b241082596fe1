"""
Stripe subscriptions: checkout, customer portal and webhook handling.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import stripe

from ..core.config import settings
from ..core.errors import ConfigurationError, UpstreamError, ValidationError
from ..core.tier_limits import PAID_PLANS, PlanCode, normalize_plan
from ..schemas.billing import (
    BillingStatusResponse,
    CheckoutSessionResponse,
    PortalSessionResponse,
    WebhookResponse,
)
from .entitlement_service import add_months, entitlement_service, parse_timestamp

logger = logging.getLogger(__name__)


def _stripe() -> Any:
    if not settings.stripe_secret_key:
        raise ConfigurationError("Server configuration error: Stripe not configured")
    stripe.api_key = settings.stripe_secret_key
    return stripe


class BillingService:

    def create_checkout(self, email: str, plan: PlanCode) -> CheckoutSessionResponse:
        plan = PlanCode(plan)
        if plan not in PAID_PLANS:
            raise ValidationError("Plan must be one of PLUS, PRO or ULTRA")

        price_id = settings.stripe_price_ids.get(plan.value)
        if not price_id:
            raise ConfigurationError(f"Server configuration error: no Stripe price for {plan.value}")

        client = _stripe()
        user = entitlement_service.get_or_create_user(email)

        try:
            customer_id = user.get("stripe_customer_id")
            if not customer_id:
                customer = client.Customer.create(email=email, metadata={"userId": str(user.get("id"))})
                customer_id = customer.id
                entitlement_service.set_stripe_customer(email, customer_id)

            session = client.checkout.Session.create(
                mode="subscription",
                customer=customer_id,
                line_items=[{"price": price_id, "quantity": 1}],
                success_url=f"{settings.app_base_url}/dashboard?success=true",
                cancel_url=f"{settings.app_base_url}/dashboard?canceled=true",
                metadata={"userId": str(user.get("id")), "email": email, "plan": plan.value},
            )
        except stripe.error.StripeError as e:
            logger.error(f"Stripe checkout failed for {email}: {e}")
            raise UpstreamError("Failed to create checkout session")

        logger.info(f"Checkout session {session.id} created for {email} ({plan.value})")
        return CheckoutSessionResponse(session_id=session.id, url=session.url)

    def create_portal(self, email: str) -> PortalSessionResponse:
        user = entitlement_service.get_or_create_user(email)
        customer_id = user.get("stripe_customer_id")
        if not customer_id:
            raise ValidationError("No billing account found")

        client = _stripe()
        try:
            session = client.billing_portal.Session.create(
                customer=customer_id,
                return_url=f"{settings.app_base_url}/dashboard",
            )
        except stripe.error.StripeError as e:
            logger.error(f"Stripe portal failed for {email}: {e}")
            raise UpstreamError("Failed to create billing portal session")
        return PortalSessionResponse(url=session.url)

    def status(self, email: str) -> BillingStatusResponse:
        user = entitlement_service.get_or_create_user(email)
        plan = normalize_plan(user.get("plan_code"))
        return BillingStatusResponse(
            plan_code=plan.value,
            is_paid=plan in PAID_PLANS,
            plan_renews_at=parse_timestamp(user.get("plan_renews_at")),
            has_billing_account=bool(user.get("stripe_customer_id")),
        )

    # ============================================================================
    # Webhooks
    # ============================================================================

    def construct_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """
        Verify a webhook delivery and return the event as plain dicts.

        ``StripeObject`` is not a dict, so the handlers work on the verified
        JSON payload instead.

        Raises:
            ValidationError: missing or invalid signature / payload
        """
        if not settings.stripe_webhook_secret:
            raise ConfigurationError("Server configuration error: Stripe webhook secret not set")
        if not signature:
            raise ValidationError("Missing Stripe signature")
        try:
            stripe.Webhook.construct_event(payload, signature, settings.stripe_webhook_secret)
            event = json.loads(payload)
        except ValueError:
            raise ValidationError("Invalid payload")
        except stripe.error.SignatureVerificationError:
            logger.warning("Webhook signature verification failed")
            raise ValidationError("Invalid signature")
        if not isinstance(event, dict) or "type" not in event:
            raise ValidationError("Invalid payload")
        return event

    def handle_event(self, event: Dict[str, Any]) -> WebhookResponse:
        """Apply a verified event. Exceptions propagate so Stripe retries."""
        event_type = event["type"]
        obj = event["data"]["object"]

        if event_type == "checkout.session.completed":
            return self._checkout_completed(obj)
        if event_type == "customer.subscription.updated":
            return self._subscription_updated(obj)
        if event_type == "customer.subscription.deleted":
            return self._subscription_deleted(obj)
        if event_type in ("invoice.payment_succeeded", "invoice.payment_failed"):
            logger.info(f"{event_type} for customer {obj.get('customer')}")
            return WebhookResponse(status="success", message=event_type)

        logger.info(f"Unhandled event type: {event_type}")
        return WebhookResponse(status="ignored", message=f"Unhandled event type: {event_type}")

    def _checkout_completed(self, session: Dict[str, Any]) -> WebhookResponse:
        metadata = session.get("metadata") or {}
        email, plan = metadata.get("email"), metadata.get("plan")
        if not email or not plan:
            logger.error("Missing metadata in checkout session")
            return WebhookResponse(status="ignored", message="Missing metadata in checkout session")

        renews_at = add_months(datetime.now(timezone.utc), 1)
        entitlement_service.set_plan(
            email,
            normalize_plan(plan),
            renews_at=renews_at,
            reset_usage=True,
            stripe_customer_id=session.get("customer"),
        )
        logger.info(f"Plan upgraded for {email} to {plan}")
        return WebhookResponse(status="success", message=f"Plan upgraded to {plan}")

    def _subscription_updated(self, subscription: Dict[str, Any]) -> WebhookResponse:
        customer_id = subscription.get("customer")
        items = (subscription.get("items") or {}).get("data") or []
        item = items[0] if items else {}

        plan = PlanCode.FREE
        if subscription.get("status") == "active":
            price_metadata = (item.get("price") or {}).get("metadata") or {}
            if price_metadata.get("plan"):
                plan = normalize_plan(price_metadata["plan"])

        period_end = subscription.get("current_period_end") or item.get("current_period_end")
        renews_at = datetime.fromtimestamp(period_end, tz=timezone.utc) if period_end else None

        user = entitlement_service.set_plan_by_customer(customer_id, plan, renews_at=renews_at)
        if user is None:
            logger.warning(f"Subscription update for unknown customer {customer_id}")
            return WebhookResponse(status="ignored", message="Unknown customer")
        logger.info(f"Subscription updated for {user['email']}: {plan.value}")
        return WebhookResponse(status="success", message=f"Plan set to {plan.value}")

    def _subscription_deleted(self, subscription: Dict[str, Any]) -> WebhookResponse:
        customer_id = subscription.get("customer")
        user = entitlement_service.set_plan_by_customer(customer_id, PlanCode.FREE)
        if user is None:
            logger.warning(f"Subscription deletion for unknown customer {customer_id}")
            return WebhookResponse(status="ignored", message="Unknown customer")
        logger.info(f"Subscription canceled for {user['email']}")
        return WebhookResponse(status="success", message="Plan set to FREE")


billing_service = BillingService()
