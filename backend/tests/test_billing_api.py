"""
Tests for Stripe checkout, portal, status and webhook handling.
"""
import hashlib
import hmac
import json
import time
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import stripe

from app.core.config import settings
from app.services.billing_service import billing_service


@pytest.fixture
def stripe_configured(monkeypatch):
    monkeypatch.setattr(settings, "stripe_secret_key", "sk_test_123")
    monkeypatch.setattr(settings, "stripe_webhook_secret", "whsec_123")
    monkeypatch.setattr(settings, "stripe_price_pro", "price_pro")

    customer_create = MagicMock(return_value=SimpleNamespace(id="cus_new"))
    session_create = MagicMock(
        return_value=SimpleNamespace(id="cs_1", url="https://checkout.stripe.test/cs_1")
    )
    monkeypatch.setattr(stripe.Customer, "create", customer_create)
    monkeypatch.setattr(stripe.checkout.Session, "create", session_create)
    return SimpleNamespace(customer_create=customer_create, session_create=session_create)


def test_checkout_creates_customer_and_session(client, fake_db, make_user, headers_for, stripe_configured):
    make_user("buyer@example.com")

    response = client.post(
        "/api/v1/billing/checkout", json={"plan": "PRO"}, headers=headers_for("buyer@example.com"),
    )

    assert response.status_code == 200
    assert response.json() == {"sessionId": "cs_1", "url": "https://checkout.stripe.test/cs_1"}
    assert fake_db.find("users", email="buyer@example.com")["stripe_customer_id"] == "cus_new"

    kwargs = stripe_configured.session_create.call_args.kwargs
    assert kwargs["customer"] == "cus_new"
    assert kwargs["line_items"] == [{"price": "price_pro", "quantity": 1}]
    assert kwargs["metadata"]["plan"] == "PRO"


def test_checkout_reuses_existing_customer(client, make_user, headers_for, stripe_configured):
    make_user("buyer@example.com", stripe_customer_id="cus_existing")

    client.post("/api/v1/billing/checkout", json={"plan": "PRO"}, headers=headers_for("buyer@example.com"))

    stripe_configured.customer_create.assert_not_called()
    assert stripe_configured.session_create.call_args.kwargs["customer"] == "cus_existing"


def test_checkout_rejects_free_plan(client, make_user, headers_for, stripe_configured):
    make_user("buyer@example.com")

    response = client.post(
        "/api/v1/billing/checkout", json={"plan": "FREE"}, headers=headers_for("buyer@example.com"),
    )

    assert response.status_code == 400


def test_checkout_without_stripe_config_is_server_error(client, make_user, headers_for, monkeypatch):
    monkeypatch.setattr(settings, "stripe_secret_key", None)
    monkeypatch.setattr(settings, "stripe_price_pro", "price_pro")
    make_user("buyer@example.com")

    response = client.post(
        "/api/v1/billing/checkout", json={"plan": "PRO"}, headers=headers_for("buyer@example.com"),
    )

    assert response.status_code == 500
    assert "Stripe not configured" in response.json()["error"]


def test_checkout_requires_login(client):
    assert client.post("/api/v1/billing/checkout", json={"plan": "PRO"}).status_code == 401


def test_portal_requires_billing_account(client, make_user, headers_for, stripe_configured):
    make_user("buyer@example.com")

    response = client.post("/api/v1/billing/portal", headers=headers_for("buyer@example.com"))

    assert response.status_code == 400
    assert response.json() == {"error": "No billing account found"}


def test_status_reports_plan(client, make_user, headers_for):
    make_user("buyer@example.com", plan="PLUS", stripe_customer_id="cus_1")

    body = client.get("/api/v1/billing/status", headers=headers_for("buyer@example.com", "PLUS")).json()

    assert body["planCode"] == "PLUS"
    assert body["isPaid"] is True
    assert body["hasBillingAccount"] is True


# Webhooks

def signed_delivery(event, secret="whsec_123", timestamp=None):
    """Body and Stripe-Signature header the way Stripe signs a delivery."""
    payload = json.dumps(event)
    timestamp = int(time.time()) if timestamp is None else timestamp
    digest = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return payload.encode(), {"Stripe-Signature": f"t={timestamp},v1={digest}"}


def checkout_completed(email, plan, customer="cus_9"):
    return {
        "id": "evt_1",
        "object": "event",
        "type": "checkout.session.completed",
        "data": {"object": {
            "id": "cs_1",
            "object": "checkout.session",
            "customer": customer,
            "metadata": {"email": email, "plan": plan},
        }},
    }


def test_webhook_requires_signature(client, stripe_configured):
    response = client.post("/api/v1/billing/webhook", content=b"{}")

    assert response.status_code == 400
    assert response.json() == {"error": "Missing Stripe signature"}


def test_webhook_rejects_bad_signature(client, stripe_configured):
    payload, headers = signed_delivery(checkout_completed("buyer@example.com", "PRO"), secret="whsec_other")

    response = client.post("/api/v1/billing/webhook", content=payload, headers=headers)

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid signature"}


def test_webhook_rejects_stale_signature(client, stripe_configured):
    payload, headers = signed_delivery(
        checkout_completed("buyer@example.com", "PRO"), timestamp=int(time.time()) - 3600,
    )

    response = client.post("/api/v1/billing/webhook", content=payload, headers=headers)

    assert response.status_code == 400


def test_webhook_checkout_completed_upgrades_plan(client, fake_db, make_user, stripe_configured):
    make_user("buyer@example.com", perf_used=7, build_used=3)
    payload, headers = signed_delivery(checkout_completed("buyer@example.com", "PRO"))

    response = client.post("/api/v1/billing/webhook", content=payload, headers=headers)

    assert response.status_code == 200
    assert response.json()["status"] == "success"
    user = fake_db.find("users", email="buyer@example.com")
    assert user["plan_code"] == "PRO"
    assert user["perf_used"] == 0 and user["build_used"] == 0
    assert user["stripe_customer_id"] == "cus_9"
    assert user["plan_renews_at"] is not None


def test_webhook_handler_failure_returns_500(client, stripe_configured):
    payload, headers = signed_delivery(checkout_completed("ghost@example.com", "PRO"))

    response = client.post("/api/v1/billing/webhook", content=payload, headers=headers)

    assert response.status_code == 500
    assert response.json() == {"error": "Webhook handler failed"}


def test_subscription_updated_follows_price_plan(fake_db, make_user):
    make_user("buyer@example.com", plan="PLUS", stripe_customer_id="cus_1")
    event = {
        "type": "customer.subscription.updated",
        "data": {"object": {
            "customer": "cus_1",
            "status": "active",
            "current_period_end": 1893456000,
            "items": {"data": [{"price": {"metadata": {"plan": "ULTRA"}}}]},
        }},
    }

    result = billing_service.handle_event(event)

    assert result.status == "success"
    user = fake_db.find("users", email="buyer@example.com")
    assert user["plan_code"] == "ULTRA"
    assert user["plan_renews_at"].startswith("2030-01-01")


def test_inactive_subscription_drops_to_free(fake_db, make_user):
    make_user("buyer@example.com", plan="PRO", stripe_customer_id="cus_1")
    event = {
        "type": "customer.subscription.updated",
        "data": {"object": {"customer": "cus_1", "status": "past_due", "items": {"data": []}}},
    }

    billing_service.handle_event(event)

    assert fake_db.find("users", email="buyer@example.com")["plan_code"] == "FREE"


def test_subscription_deleted_drops_to_free(fake_db, make_user):
    make_user("buyer@example.com", plan="PRO", stripe_customer_id="cus_1")
    event = {"type": "customer.subscription.deleted", "data": {"object": {"customer": "cus_1"}}}

    result = billing_service.handle_event(event)

    assert result.message == "Plan set to FREE"
    user = fake_db.find("users", email="buyer@example.com")
    assert user["plan_code"] == "FREE"
    assert user["plan_renews_at"] is None


def test_unknown_customer_and_event_are_ignored(fake_db):
    deleted = {"type": "customer.subscription.deleted", "data": {"object": {"customer": "cus_missing"}}}
    other = {"type": "charge.refunded", "data": {"object": {}}}

    assert billing_service.handle_event(deleted).status == "ignored"
    assert billing_service.handle_event(other).status == "ignored"
