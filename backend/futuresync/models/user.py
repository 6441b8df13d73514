"""
User and auth token models
"""
from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
from futuresync.database import Base, generate_id

USER_ROLES = ("user", "admin", "enterprise_admin")
TOKEN_TYPES = ("email_verification", "password_reset", "login_verification")

class User(Base):
    """Users table"""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, index=True, default=generate_id)
    email = Column(String(255), unique=True, index=True, nullable=False)
    email_verified_at = Column(DateTime, nullable=True)
    # Null for OAuth-only accounts
    password_hash = Column(String(255), nullable=True)
    name = Column(String(255))
    display_name = Column(String(255))
    avatar_url = Column(String(500))
    timezone = Column(String(50), default="UTC")
    locale = Column(String(10), default="en")
    role = Column(String(20), default="user")
    is_active = Column(Boolean, default=True)
    last_login = Column(DateTime, nullable=True)
    onboarding_completed = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True)

    visions = relationship("Vision", back_populates="user")
    daily_actions = relationship("DailyAction", back_populates="user")
    subscription = relationship("UserSubscription", back_populates="user", uselist=False)
    progress = relationship("UserProgress", back_populates="user", uselist=False)
    auth_tokens = relationship("AuthToken", back_populates="user")

class AuthToken(Base):
    """One-time tokens for email verification and password reset"""
    __tablename__ = "auth_tokens"

    id = Column(String(36), primary_key=True, index=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    token = Column(String(255), unique=True, index=True, nullable=False)
    type = Column(String(30), nullable=False)
    expires_at = Column(DateTime, nullable=False)
    used_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="auth_tokens")
