import json
from types import SimpleNamespace
from unittest.mock import patch

import pytest
import stripe

from futuresync import config, stripe_service
from futuresync.crud import subscription as crud_subscription

SUBSCRIPTION = {
    "id": "sub_123",
    "customer": "cus_123",
    "status": "active",
    "current_period_start": 1700000000,
    "current_period_end": 1702592000,
    "cancel_at_period_end": False,
    "metadata": {"planId": "pro"},
}

@pytest.fixture
def stripe_enabled(monkeypatch):
    monkeypatch.setattr(stripe_service, "is_configured", lambda: True)
    monkeypatch.setattr(config, "STRIPE_WEBHOOK_SECRET", "whsec_test")

def send_webhook(client, event):
    return client.post(
        "/stripe/webhooks",
        content=json.dumps(event),
        headers={"stripe-signature": "t=1,v1=abc", "content-type": "application/json"},
    )

def event(event_type, obj):
    return {"id": "evt_1", "type": event_type, "data": {"object": obj}}

def test_routes_unavailable_without_stripe(client, auth_headers):
    response = client.post("/stripe/checkout", json={"planId": "pro"}, headers=auth_headers)
    assert response.status_code == 503
    assert client.post("/stripe/webhooks", content=b"{}").status_code == 503

def test_subscription_defaults_to_free(client, auth_headers):
    response = client.get("/stripe/subscription", headers=auth_headers)
    data = response.json()["data"]
    assert data["plan"] == "free"
    assert data["status"] == "active"
    assert data["planDetails"]["limits"]["max_visions"] == 2

def test_checkout_creates_session(client, db, user, auth_headers, stripe_enabled):
    with patch.object(stripe_service, "get_or_create_customer", return_value=SimpleNamespace(id="cus_9")) as customer, \
         patch.object(stripe_service, "create_checkout_session",
                      return_value=SimpleNamespace(id="cs_1", url="https://checkout.stripe.com/cs_1")) as session:
        response = client.post("/stripe/checkout", json={
            "planId": "pro", "successUrl": "https://app/success", "cancelUrl": "https://app/cancel",
        }, headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {"success": True, "sessionId": "cs_1", "url": "https://checkout.stripe.com/cs_1"}
    customer.assert_called_once_with(user.email, user.name, user.id, None)
    session.assert_called_once_with("cus_9", "pro", user.id, "https://app/success", "https://app/cancel")
    assert crud_subscription.get_subscription_for_user(db, user.id).stripe_customer_id == "cus_9"

def test_checkout_validation(client, db, user, auth_headers, stripe_enabled):
    response = client.post("/stripe/checkout", json={"planId": "free", "successUrl": "a", "cancelUrl": "b"},
                           headers=auth_headers)
    assert response.status_code == 400

    response = client.post("/stripe/checkout", json={"planId": "pro"}, headers=auth_headers)
    assert response.status_code == 400

    crud_subscription.upsert_from_stripe(db, user.id, "pro", SUBSCRIPTION)
    response = client.post("/stripe/checkout", json={"planId": "enterprise", "successUrl": "a", "cancelUrl": "b"},
                           headers=auth_headers)
    assert response.status_code == 400
    assert "already have an active subscription" in response.json()["error"]

def test_checkout_payment_error(client, auth_headers, stripe_enabled):
    with patch.object(stripe_service, "get_or_create_customer", side_effect=stripe_service.PaymentError("down")):
        response = client.post("/stripe/checkout", json={"planId": "pro", "successUrl": "a", "cancelUrl": "b"},
                               headers=auth_headers)
    assert response.status_code == 500

def test_customer_portal(client, db, user, auth_headers, stripe_enabled):
    assert client.post("/stripe/customer-portal", json={}, headers=auth_headers).status_code == 404

    crud_subscription.set_customer_id(db, user.id, "cus_5")
    with patch.object(stripe_service, "create_billing_portal_session",
                      return_value=SimpleNamespace(url="https://billing.stripe.com/p")) as portal:
        response = client.post("/stripe/customer-portal", json={"returnUrl": "https://app/settings"},
                               headers=auth_headers)
    assert response.json()["url"] == "https://billing.stripe.com/p"
    portal.assert_called_once_with("cus_5", "https://app/settings")

def test_cancel_and_reactivate(client, db, user, auth_headers, stripe_enabled):
    crud_subscription.upsert_from_stripe(db, user.id, "pro", SUBSCRIPTION)

    with patch.object(stripe_service, "cancel_subscription", return_value={"id": "sub_123"}) as cancel:
        response = client.put("/stripe/subscription", json={"action": "cancel"}, headers=auth_headers)
    assert response.json()["data"]["cancelAtPeriodEnd"] is True
    cancel.assert_called_once_with("sub_123", at_period_end=True)

    with patch.object(stripe_service, "reactivate_subscription", return_value={"id": "sub_123"}):
        response = client.put("/stripe/subscription", json={"action": "reactivate"}, headers=auth_headers)
    assert response.json()["data"]["cancelAtPeriodEnd"] is False

def test_change_plan(client, db, user, auth_headers, stripe_enabled):
    crud_subscription.upsert_from_stripe(db, user.id, "pro", SUBSCRIPTION)
    response = client.put("/stripe/subscription", json={"action": "change_plan", "planId": "free"},
                          headers=auth_headers)
    assert response.status_code == 400

    with patch.object(stripe_service, "update_subscription_plan", return_value={"id": "sub_123"}):
        response = client.put("/stripe/subscription", json={"action": "change_plan", "planId": "enterprise"},
                              headers=auth_headers)
    assert response.json()["data"]["plan"] == "enterprise"

def test_update_without_subscription(client, auth_headers, stripe_enabled):
    response = client.put("/stripe/subscription", json={"action": "cancel"}, headers=auth_headers)
    assert response.status_code == 404

def test_immediate_cancel(client, db, user, auth_headers, stripe_enabled):
    crud_subscription.upsert_from_stripe(db, user.id, "pro", SUBSCRIPTION)
    with patch.object(stripe_service, "cancel_subscription", return_value={"id": "sub_123"}) as cancel:
        response = client.delete("/stripe/subscription", headers=auth_headers)
    assert response.status_code == 200
    cancel.assert_called_once_with("sub_123", at_period_end=False)
    assert crud_subscription.get_user_plan(db, user.id) == "free"

def test_webhook_requires_signature(client, stripe_enabled):
    response = client.post("/stripe/webhooks", content=b"{}")
    assert response.status_code == 400

def test_webhook_requires_secret(client, stripe_enabled, monkeypatch):
    monkeypatch.setattr(config, "STRIPE_WEBHOOK_SECRET", "")
    assert send_webhook(client, event("ping", {})).status_code == 500

def test_webhook_rejects_bad_signature(client, stripe_enabled):
    with patch.object(stripe.Webhook, "construct_event",
                      side_effect=stripe.SignatureVerificationError("bad", "t=1,v1=abc")):
        response = send_webhook(client, event("customer.subscription.updated", SUBSCRIPTION))
    assert response.status_code == 401

def test_webhook_subscription_created_by_metadata_user(client, db, user, stripe_enabled):
    obj = {**SUBSCRIPTION, "metadata": {"planId": "enterprise", "userId": user.id}}
    with patch.object(stripe_service, "validate_webhook_signature"):
        response = send_webhook(client, event("customer.subscription.created", obj))

    assert response.json() == {"received": True, "action": "subscription_updated"}
    subscription = crud_subscription.get_subscription_for_user(db, user.id)
    assert subscription.plan == "enterprise"
    assert subscription.stripe_subscription_id == "sub_123"
    assert crud_subscription.get_user_plan(db, user.id) == "enterprise"

def test_webhook_trialing_maps_to_trial(client, db, user, stripe_enabled):
    crud_subscription.set_customer_id(db, user.id, "cus_123")
    with patch.object(stripe_service, "validate_webhook_signature"):
        send_webhook(client, event("customer.subscription.updated", {**SUBSCRIPTION, "status": "trialing"}))
    subscription = crud_subscription.get_subscription_for_user(db, user.id)
    assert subscription.status == "trial"
    assert subscription.plan == "pro"

def test_webhook_payment_events_change_status(client, db, user, stripe_enabled):
    crud_subscription.upsert_from_stripe(db, user.id, "pro", SUBSCRIPTION)
    invoice = {"id": "in_1", "subscription": "sub_123", "customer": "cus_123", "amount_paid": 2999}

    with patch.object(stripe_service, "validate_webhook_signature"):
        send_webhook(client, event("invoice.payment_failed", invoice))
        assert crud_subscription.get_subscription_for_user(db, user.id).status == "past_due"
        assert crud_subscription.get_user_plan(db, user.id) == "free"

        send_webhook(client, event("invoice.payment_succeeded", invoice))
        assert crud_subscription.get_subscription_for_user(db, user.id).status == "active"

        send_webhook(client, event("customer.subscription.deleted", SUBSCRIPTION))
        subscription = crud_subscription.get_subscription_for_user(db, user.id)
        assert subscription.status == "canceled"
        assert subscription.canceled_at is not None

def test_webhook_ignores_other_events(client, stripe_enabled):
    with patch.object(stripe_service, "validate_webhook_signature"):
        response = send_webhook(client, event("charge.refunded", {"id": "ch_1"}))
    assert response.json()["action"] == "ignored"

def test_process_webhook_event_malformed():
    result = stripe_service.process_webhook_event({"type": "customer.subscription.updated"})
    assert not result.success
    assert result.error

def test_process_subscription_event_defaults_to_pro():
    result = stripe_service.process_webhook_event(event("customer.subscription.updated", {"id": "sub_1"}))
    assert result.action == "subscription_updated"
    assert result.data["planId"] == "pro"

def test_plan_lookup_and_price_format(monkeypatch):
    monkeypatch.setitem(stripe_service.SUBSCRIPTION_PLANS["pro"], "stripe_price_id", "price_pro")
    assert stripe_service.get_plan_by_price_id("price_pro") == "pro"
    assert stripe_service.get_plan_by_price_id("price_unknown") is None
    assert stripe_service.format_price(2999) == "$29.99"
    assert stripe_service.format_price(123456, "jpy") == "1,234.56 JPY"

def test_checkout_session_requires_price_id(monkeypatch):
    monkeypatch.setitem(stripe_service.SUBSCRIPTION_PLANS["pro"], "stripe_price_id", None)
    with pytest.raises(stripe_service.PaymentError):
        stripe_service.create_checkout_session("cus_1", "pro", "u1", "a", "b")

def test_get_or_create_customer_reuses_email_match():
    existing = SimpleNamespace(id="cus_7")
    with patch.object(stripe.Customer, "list", return_value=SimpleNamespace(data=[existing])), \
         patch.object(stripe.Customer, "modify") as modify, \
         patch.object(stripe.Customer, "create") as create:
        customer = stripe_service.get_or_create_customer("a@example.com", "A", "u1")
    assert customer is existing
    modify.assert_called_once_with("cus_7", metadata={"userId": "u1", "source": "futuresync-app"})
    create.assert_not_called()
