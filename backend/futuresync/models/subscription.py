"""
Subscription and progress models
"""
from sqlalchemy import Column, Integer, String, Date, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
from futuresync.database import Base, generate_id

SUBSCRIPTION_PLANS = ("free", "pro", "enterprise")
SUBSCRIPTION_STATUSES = ("trial", "active", "past_due", "canceled", "unpaid")

class UserSubscription(Base):
    """Billing state mirrored from Stripe"""
    __tablename__ = "user_subscriptions"

    id = Column(String(36), primary_key=True, index=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id"), unique=True, nullable=False)
    plan = Column(String(20), default="free")
    status = Column(String(20), default="active")
    stripe_subscription_id = Column(String(255), unique=True, nullable=True)
    stripe_customer_id = Column(String(255), nullable=True, index=True)
    current_period_start = Column(DateTime, nullable=True)
    current_period_end = Column(DateTime, nullable=True)
    cancel_at_period_end = Column(Boolean, default=False)
    canceled_at = Column(DateTime, nullable=True)
    trial_ends_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="subscription")

class UserProgress(Base):
    """Streaks and running totals"""
    __tablename__ = "user_progress"

    id = Column(String(36), primary_key=True, index=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id"), unique=True, nullable=False)
    current_streak = Column(Integer, default=0)
    longest_streak = Column(Integer, default=0)
    total_days_completed = Column(Integer, default=0)
    total_actions_completed = Column(Integer, default=0)
    total_time_invested_minutes = Column(Integer, default=0)
    last_completion_date = Column(Date, nullable=True)
    streak_updated_at = Column(DateTime, default=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="progress")
