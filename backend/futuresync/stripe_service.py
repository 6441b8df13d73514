"""
Stripe integration: customers, checkout, subscriptions and webhooks
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

import stripe

from futuresync.config import (
    STRIPE_SECRET_KEY, STRIPE_PRO_PRICE_ID, STRIPE_ENTERPRISE_PRICE_ID,
    AI_QUOTAS, VISION_LIMITS,
)

logger = logging.getLogger(__name__)

stripe.api_key = STRIPE_SECRET_KEY

METADATA_SOURCE = "futuresync-app"

SUBSCRIPTION_PLANS = {
    "free": {
        "id": "free",
        "name": "Free",
        "price": 0,
        "stripe_price_id": None,
        "features": [
            "2 visions maximum",
            "Basic AI features",
            "20 AI calls per day",
            "Personal progress tracking",
        ],
    },
    "pro": {
        "id": "pro",
        "name": "Pro",
        "price": 2999,
        "stripe_price_id": STRIPE_PRO_PRICE_ID or None,
        "features": [
            "10 visions maximum",
            "Full AI features",
            "200 AI calls per day",
            "Advanced analytics",
            "Progress insights",
            "Priority support",
        ],
    },
    "enterprise": {
        "id": "enterprise",
        "name": "Enterprise",
        "price": 9999,
        "stripe_price_id": STRIPE_ENTERPRISE_PRICE_ID or None,
        "features": [
            "Unlimited visions",
            "Enterprise AI features",
            "1000 AI calls per day",
            "Team collaboration",
            "Custom integrations",
            "Dedicated support",
        ],
    },
}

for _plan_id, _plan in SUBSCRIPTION_PLANS.items():
    _plan["limits"] = {
        "max_visions": VISION_LIMITS[_plan_id],
        "daily_ai_calls": AI_QUOTAS[_plan_id]["daily_api_calls"],
        "monthly_ai_calls": AI_QUOTAS[_plan_id]["monthly_api_calls"],
    }

class PaymentError(Exception):
    """A Stripe call that must succeed failed"""
    pass

class InvalidWebhookSignature(Exception):
    pass

@dataclass
class WebhookResult:
    success: bool
    action: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

def is_configured() -> bool:
    return bool(stripe.api_key)

def get_plan_by_price_id(price_id: str) -> Optional[str]:
    for plan_id, plan in SUBSCRIPTION_PLANS.items():
        if plan["stripe_price_id"] and plan["stripe_price_id"] == price_id:
            return plan_id
    return None

def format_price(cents: int, currency: str = "USD") -> str:
    symbols = {"USD": "$", "EUR": "€", "GBP": "£"}
    symbol = symbols.get(currency.upper(), "")
    amount = f"{cents / 100:,.2f}"
    return f"{symbol}{amount}" if symbol else f"{amount} {currency.upper()}"

def _metadata(user_id: str) -> Dict[str, str]:
    return {"userId": user_id, "source": METADATA_SOURCE}

def get_or_create_customer(email: str, name: Optional[str], user_id: str, existing_customer_id: Optional[str] = None):
    if existing_customer_id:
        try:
            customer = stripe.Customer.retrieve(existing_customer_id)
            if customer and not getattr(customer, "deleted", False):
                return customer
        except stripe.StripeError as e:
            logger.warning(f"Existing Stripe customer {existing_customer_id} not found, looking up by email: {e}")

    try:
        existing = stripe.Customer.list(email=email, limit=1)
        if existing.data:
            customer = existing.data[0]
            stripe.Customer.modify(customer.id, metadata=_metadata(user_id))
            return customer

        return stripe.Customer.create(email=email, name=name or email, metadata=_metadata(user_id))
    except stripe.StripeError as e:
        logger.error(f"Failed to get or create Stripe customer for user {user_id}: {e}")
        raise PaymentError("Failed to get or create customer") from e

def create_checkout_session(customer_id: str, plan_id: str, user_id: str, success_url: str, cancel_url: str):
    plan = SUBSCRIPTION_PLANS[plan_id]
    if not plan["stripe_price_id"]:
        raise PaymentError(f"No Stripe price ID configured for {plan_id} plan")

    try:
        return stripe.checkout.Session.create(
            customer=customer_id,
            payment_method_types=["card"],
            line_items=[{"price": plan["stripe_price_id"], "quantity": 1}],
            mode="subscription",
            success_url=success_url,
            cancel_url=cancel_url,
            metadata={"userId": user_id, "planId": plan_id, "source": METADATA_SOURCE},
            allow_promotion_codes=True,
            billing_address_collection="auto",
            customer_update={"address": "auto", "name": "auto"},
        )
    except stripe.StripeError as e:
        logger.error(f"Failed to create checkout session for user {user_id}: {e}")
        raise PaymentError("Failed to create checkout session") from e

def create_billing_portal_session(customer_id: str, return_url: str):
    try:
        return stripe.billing_portal.Session.create(customer=customer_id, return_url=return_url)
    except stripe.StripeError as e:
        logger.error(f"Failed to create billing portal session: {e}")
        raise PaymentError("Failed to create billing portal session") from e

def get_subscription(subscription_id: str):
    try:
        return stripe.Subscription.retrieve(subscription_id, expand=["default_payment_method"])
    except stripe.StripeError as e:
        logger.error(f"Failed to get subscription {subscription_id}: {e}")
        return None

def cancel_subscription(subscription_id: str, at_period_end: bool = True):
    try:
        if at_period_end:
            return stripe.Subscription.modify(
                subscription_id,
                cancel_at_period_end=True,
                metadata={"cancelled_by": "user", "cancelled_at": datetime.utcnow().isoformat()},
            )
        return stripe.Subscription.cancel(subscription_id)
    except stripe.StripeError as e:
        logger.error(f"Failed to cancel subscription {subscription_id}: {e}")
        return None

def reactivate_subscription(subscription_id: str):
    try:
        return stripe.Subscription.modify(
            subscription_id,
            cancel_at_period_end=False,
            metadata={"reactivated_by": "user", "reactivated_at": datetime.utcnow().isoformat()},
        )
    except stripe.StripeError as e:
        logger.error(f"Failed to reactivate subscription {subscription_id}: {e}")
        return None

def update_subscription_plan(subscription_id: str, new_plan_id: str):
    new_plan = SUBSCRIPTION_PLANS.get(new_plan_id)
    if not new_plan or not new_plan["stripe_price_id"]:
        logger.error(f"No Stripe price ID configured for {new_plan_id} plan")
        return None
    try:
        subscription = stripe.Subscription.retrieve(subscription_id)
        return stripe.Subscription.modify(
            subscription_id,
            items=[{"id": subscription["items"]["data"][0]["id"], "price": new_plan["stripe_price_id"]}],
            proration_behavior="create_prorations",
            metadata={"upgraded_to": new_plan_id, "upgraded_at": datetime.utcnow().isoformat()},
        )
    except stripe.StripeError as e:
        logger.error(f"Failed to update subscription {subscription_id} to {new_plan_id}: {e}")
        return None

def validate_webhook_signature(payload: bytes, signature: str, secret: str):
    try:
        return stripe.Webhook.construct_event(payload, signature, secret)
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.error(f"Webhook signature validation failed: {e}")
        raise InvalidWebhookSignature("Invalid webhook signature") from e

def process_webhook_event(event: Dict[str, Any]) -> WebhookResult:
    """Translate a Stripe event payload into the change it implies"""
    try:
        event_type = event["type"]
        obj = event["data"]["object"]

        if event_type in ("customer.subscription.created", "customer.subscription.updated"):
            return WebhookResult(True, "subscription_updated", {
                "subscriptionId": obj["id"],
                "customerId": obj.get("customer"),
                "status": obj.get("status"),
                "currentPeriodEnd": obj.get("current_period_end"),
                "cancelAtPeriodEnd": obj.get("cancel_at_period_end", False),
                "planId": (obj.get("metadata") or {}).get("planId", "pro"),
                "subscription": obj,
            })
        if event_type == "customer.subscription.deleted":
            return WebhookResult(True, "subscription_cancelled", {
                "subscriptionId": obj["id"],
                "customerId": obj.get("customer"),
            })
        if event_type == "invoice.payment_succeeded":
            return WebhookResult(True, "payment_succeeded", {
                "subscriptionId": obj.get("subscription"),
                "customerId": obj.get("customer"),
                "amountPaid": obj.get("amount_paid"),
                "invoiceId": obj.get("id"),
            })
        if event_type == "invoice.payment_failed":
            return WebhookResult(True, "payment_failed", {
                "subscriptionId": obj.get("subscription"),
                "customerId": obj.get("customer"),
                "invoiceId": obj.get("id"),
            })
        return WebhookResult(True, "ignored", {"eventType": event_type})
    except (KeyError, TypeError) as e:
        logger.error(f"Failed to process webhook event: {e}")
        return WebhookResult(False, error=str(e))
