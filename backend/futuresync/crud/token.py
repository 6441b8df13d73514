"""
One-time auth token operations
"""
import logging
from sqlalchemy.orm import Session
from futuresync.models import AuthToken, User
from futuresync.security import generate_secure_token, get_password_hash
from futuresync.config import EMAIL_VERIFICATION_TOKEN_HOURS, PASSWORD_RESET_TOKEN_HOURS
from typing import Optional
from datetime import datetime, timedelta

logger = logging.getLogger(__name__)

def create_token(db: Session, user_id: str, token_type: str, expires_in_hours: int = 24) -> str:
    """Store a fresh token and return its value"""
    value = generate_secure_token()
    db_token = AuthToken(
        user_id=user_id,
        token=value,
        type=token_type,
        expires_at=datetime.utcnow() + timedelta(hours=expires_in_hours),
    )
    db.add(db_token)
    db.commit()
    return value

def find_valid_token(db: Session, token: str, token_type: str) -> Optional[AuthToken]:
    """Unused, unexpired token of the given type"""
    return db.query(AuthToken).filter(
        AuthToken.token == token,
        AuthToken.type == token_type,
        AuthToken.used_at.is_(None),
        AuthToken.expires_at > datetime.utcnow()
    ).first()

def invalidate_user_tokens(db: Session, user_id: str, token_type: Optional[str] = None) -> None:
    """Mark a user's open tokens as used"""
    query = db.query(AuthToken).filter(
        AuthToken.user_id == user_id,
        AuthToken.used_at.is_(None)
    )
    if token_type:
        query = query.filter(AuthToken.type == token_type)
    query.update({AuthToken.used_at: datetime.utcnow()}, synchronize_session=False)
    db.commit()

def create_email_verification_token(db: Session, user_id: str) -> str:
    invalidate_user_tokens(db, user_id, "email_verification")
    return create_token(db, user_id, "email_verification", EMAIL_VERIFICATION_TOKEN_HOURS)

def create_password_reset_token(db: Session, user_id: str) -> str:
    invalidate_user_tokens(db, user_id, "password_reset")
    return create_token(db, user_id, "password_reset", PASSWORD_RESET_TOKEN_HOURS)

def verify_email(db: Session, token: str) -> Optional[User]:
    """Consume a verification token and activate its user"""
    db_token = find_valid_token(db, token, "email_verification")
    if not db_token:
        return None
    user = db.query(User).filter(User.id == db_token.user_id).first()
    if not user:
        return None

    now = datetime.utcnow()
    db_token.used_at = now
    user.email_verified_at = now
    user.is_active = True
    db.commit()
    db.refresh(user)
    logger.info(f"Email verified for user {user.id}")
    return user

def validate_password_reset_token(db: Session, token: str) -> Optional[User]:
    """User behind a reset token, only if the account is active"""
    db_token = find_valid_token(db, token, "password_reset")
    if not db_token:
        return None
    return db.query(User).filter(
        User.id == db_token.user_id,
        User.is_active.is_(True)
    ).first()

def reset_password_with_token(db: Session, token: str, new_password: str) -> Optional[User]:
    """Set a new password and burn every open token of the user"""
    user = validate_password_reset_token(db, token)
    if not user:
        return None
    user.password_hash = get_password_hash(new_password)
    db.commit()
    invalidate_user_tokens(db, user.id)
    db.refresh(user)
    logger.info(f"Password reset for user {user.id}")
    return user

def cleanup_expired_tokens(db: Session) -> int:
    """Delete tokens that expired more than a week ago"""
    cutoff = datetime.utcnow() - timedelta(days=7)
    deleted = db.query(AuthToken).filter(AuthToken.expires_at < cutoff).delete(synchronize_session=False)
    db.commit()
    return deleted
