"""
Subscription CRUD operations
"""
from sqlalchemy.orm import Session
from futuresync.models import UserSubscription
from typing import Optional
from datetime import datetime

PAID_STATUSES = ("active", "trial")

def get_subscription_for_user(db: Session, user_id: str) -> Optional[UserSubscription]:
    return db.query(UserSubscription).filter(UserSubscription.user_id == user_id).first()

def get_by_stripe_customer(db: Session, customer_id: str) -> Optional[UserSubscription]:
    return db.query(UserSubscription).filter(
        UserSubscription.stripe_customer_id == customer_id
    ).first()

def get_user_plan(db: Session, user_id: str) -> str:
    """Plan that currently applies to the user"""
    subscription = get_subscription_for_user(db, user_id)
    if subscription and subscription.status in PAID_STATUSES:
        return subscription.plan or "free"
    return "free"

def _from_timestamp(value) -> Optional[datetime]:
    return datetime.utcfromtimestamp(value) if value else None

def upsert_from_stripe(
    db: Session,
    user_id: str,
    plan: str,
    stripe_subscription: dict
) -> UserSubscription:
    """Mirror a Stripe subscription object onto the user's row"""
    subscription = get_subscription_for_user(db, user_id)
    if not subscription:
        subscription = UserSubscription(user_id=user_id)
        db.add(subscription)

    status = stripe_subscription.get("status", "active")
    subscription.plan = plan
    subscription.status = "trial" if status == "trialing" else status
    subscription.stripe_subscription_id = stripe_subscription.get("id")
    subscription.stripe_customer_id = stripe_subscription.get("customer")
    subscription.current_period_start = _from_timestamp(stripe_subscription.get("current_period_start"))
    subscription.current_period_end = _from_timestamp(stripe_subscription.get("current_period_end"))
    subscription.cancel_at_period_end = bool(stripe_subscription.get("cancel_at_period_end"))
    subscription.canceled_at = _from_timestamp(stripe_subscription.get("canceled_at"))
    subscription.trial_ends_at = _from_timestamp(stripe_subscription.get("trial_end"))
    db.commit()
    db.refresh(subscription)
    return subscription

def set_status_by_stripe_ids(
    db: Session,
    status: str,
    subscription_id: Optional[str] = None,
    customer_id: Optional[str] = None
) -> Optional[UserSubscription]:
    """Change the status of the row matching a Stripe subscription or customer id"""
    subscription = None
    if subscription_id:
        subscription = db.query(UserSubscription).filter(
            UserSubscription.stripe_subscription_id == subscription_id
        ).first()
    if not subscription and customer_id:
        subscription = get_by_stripe_customer(db, customer_id)
    if not subscription:
        return None

    subscription.status = status
    if status == "canceled":
        subscription.canceled_at = datetime.utcnow()
    db.commit()
    db.refresh(subscription)
    return subscription

def set_customer_id(db: Session, user_id: str, customer_id: str) -> UserSubscription:
    """Remember the Stripe customer before any subscription exists"""
    subscription = get_subscription_for_user(db, user_id)
    if not subscription:
        subscription = UserSubscription(user_id=user_id, plan="free", status="active")
        db.add(subscription)
    subscription.stripe_customer_id = customer_id
    db.commit()
    db.refresh(subscription)
    return subscription
