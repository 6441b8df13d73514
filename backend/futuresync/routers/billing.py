"""
Stripe billing routes
"""
import json
import logging
from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel
from sqlalchemy.orm import Session
from typing import Literal, Optional

from futuresync import config, stripe_service
from futuresync.database import get_db
from futuresync.crud import subscription as crud_subscription
from futuresync.routers.auth import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/stripe",
    tags=["billing"]
)

class CheckoutRequest(BaseModel):
    planId: str
    successUrl: Optional[str] = None
    cancelUrl: Optional[str] = None

class PortalRequest(BaseModel):
    returnUrl: Optional[str] = None

class SubscriptionUpdate(BaseModel):
    action: Literal["cancel", "reactivate", "change_plan"]
    planId: Optional[str] = None

def require_stripe() -> None:
    if not stripe_service.is_configured():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Payment processing is not configured"
        )

def get_paid_subscription(db: Session, user_id: str):
    subscription = crud_subscription.get_subscription_for_user(db, user_id)
    if not subscription or not subscription.stripe_subscription_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No active subscription found")
    return subscription

def subscription_summary(subscription) -> dict:
    plan = subscription.plan if subscription else "free"
    return {
        "plan": plan,
        "planDetails": stripe_service.SUBSCRIPTION_PLANS.get(plan, stripe_service.SUBSCRIPTION_PLANS["free"]),
        "status": subscription.status if subscription else "active",
        "currentPeriodEnd": subscription.current_period_end.isoformat() if subscription and subscription.current_period_end else None,
        "cancelAtPeriodEnd": bool(subscription.cancel_at_period_end) if subscription else False,
        "stripeSubscriptionId": subscription.stripe_subscription_id if subscription else None,
    }

@router.post("/checkout", dependencies=[Depends(require_stripe)])
async def create_checkout(
    body: CheckoutRequest,
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    if body.planId not in stripe_service.SUBSCRIPTION_PLANS or body.planId == "free":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid plan selected")
    if not body.successUrl or not body.cancelUrl:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Success and cancel URLs are required")

    subscription = crud_subscription.get_subscription_for_user(db, current_user.id)
    if subscription and subscription.stripe_subscription_id and subscription.status in ("active", "trial"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You already have an active subscription. Use the customer portal to change plans."
        )

    try:
        customer = stripe_service.get_or_create_customer(
            current_user.email, current_user.name, current_user.id,
            subscription.stripe_customer_id if subscription else None
        )
        crud_subscription.set_customer_id(db, current_user.id, customer.id)
        session = stripe_service.create_checkout_session(
            customer.id, body.planId, current_user.id, body.successUrl, body.cancelUrl
        )
    except stripe_service.PaymentError as e:
        logger.error(f"Checkout failed for user {current_user.id}: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to create checkout session")

    return {"success": True, "sessionId": session.id, "url": session.url}

@router.post("/customer-portal", dependencies=[Depends(require_stripe)])
async def customer_portal(
    body: PortalRequest,
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    subscription = crud_subscription.get_subscription_for_user(db, current_user.id)
    if not subscription or not subscription.stripe_customer_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No billing account found")

    return_url = body.returnUrl or f"{config.APP_URL}/settings"
    try:
        session = stripe_service.create_billing_portal_session(subscription.stripe_customer_id, return_url)
    except stripe_service.PaymentError:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to create portal session")
    return {"success": True, "url": session.url}

@router.get("/subscription")
async def get_subscription(
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    subscription = crud_subscription.get_subscription_for_user(db, current_user.id)
    return {"success": True, "data": subscription_summary(subscription)}

@router.put("/subscription", dependencies=[Depends(require_stripe)])
async def update_subscription(
    body: SubscriptionUpdate,
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    subscription = get_paid_subscription(db, current_user.id)
    stripe_id = subscription.stripe_subscription_id

    if body.action == "cancel":
        result = stripe_service.cancel_subscription(stripe_id, at_period_end=True)
        if result is None:
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to cancel subscription")
        subscription.cancel_at_period_end = True
        message = "Subscription will be cancelled at the end of the billing period"
    elif body.action == "reactivate":
        result = stripe_service.reactivate_subscription(stripe_id)
        if result is None:
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to reactivate subscription")
        subscription.cancel_at_period_end = False
        message = "Subscription reactivated"
    else:
        if body.planId not in ("pro", "enterprise"):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid plan selected")
        result = stripe_service.update_subscription_plan(stripe_id, body.planId)
        if result is None:
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to change plan")
        subscription.plan = body.planId
        message = f"Plan changed to {body.planId}"

    db.commit()
    db.refresh(subscription)
    return {"success": True, "data": subscription_summary(subscription), "message": message}

@router.delete("/subscription", dependencies=[Depends(require_stripe)])
async def cancel_subscription_now(
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    subscription = get_paid_subscription(db, current_user.id)
    if stripe_service.cancel_subscription(subscription.stripe_subscription_id, at_period_end=False) is None:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to cancel subscription")
    crud_subscription.set_status_by_stripe_ids(db, "canceled", subscription_id=subscription.stripe_subscription_id)
    return {"success": True, "message": "Subscription cancelled"}

@router.post("/webhooks")
async def stripe_webhook(request: Request, db: Session = Depends(get_db)):
    require_stripe()
    signature = request.headers.get("stripe-signature")
    if not signature:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing stripe-signature header")
    if not config.STRIPE_WEBHOOK_SECRET:
        logger.error("STRIPE_WEBHOOK_SECRET is not configured")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Webhook secret not configured")

    payload = await request.body()
    try:
        stripe_service.validate_webhook_signature(payload, signature, config.STRIPE_WEBHOOK_SECRET)
    except stripe_service.InvalidWebhookSignature:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")

    result = stripe_service.process_webhook_event(json.loads(payload))
    if not result.success:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to process webhook")

    data = result.data
    if result.action == "subscription_updated":
        row = crud_subscription.get_by_stripe_customer(db, data["customerId"])
        user_id = row.user_id if row else (data["subscription"].get("metadata") or {}).get("userId")
        if user_id:
            crud_subscription.upsert_from_stripe(db, user_id, data["planId"], data["subscription"])
        else:
            logger.warning(f"Subscription {data['subscriptionId']} has no matching user")
    elif result.action == "subscription_cancelled":
        crud_subscription.set_status_by_stripe_ids(db, "canceled", data["subscriptionId"], data["customerId"])
    elif result.action == "payment_succeeded":
        crud_subscription.set_status_by_stripe_ids(db, "active", data["subscriptionId"], data["customerId"])
    elif result.action == "payment_failed":
        crud_subscription.set_status_by_stripe_ids(db, "past_due", data["subscriptionId"], data["customerId"])

    logger.info(f"Processed Stripe webhook: {result.action}")
    return {"received": True, "action": result.action}
