"""
User CRUD operations
"""
from sqlalchemy.orm import Session
from futuresync.models import (
    User, AuthToken, Vision, VisionAIAnalysis, DailyAction, ActionTimingSession,
    UserSubscription, UserProgress, AuditLog, AnalyticsEvent, DataExportRequest,
)
from futuresync.security import get_password_hash, verify_password
from typing import Optional
from datetime import datetime

# Fields a user may change on their own profile
UPDATABLE_FIELDS = ("name", "display_name", "avatar_url", "timezone", "locale", "onboarding_completed")

def get_user(db: Session, user_id: str) -> Optional[User]:
    """Get a user by id"""
    return db.query(User).filter(User.id == user_id).first()

def get_user_by_email(db: Session, email: str) -> Optional[User]:
    """Get a live (not soft-deleted) user by email"""
    return db.query(User).filter(
        User.email == email.lower(),
        User.deleted_at.is_(None)
    ).first()

def create_user(
    db: Session,
    email: str,
    password: Optional[str],
    name: Optional[str] = None,
    is_active: bool = True,
    email_verified: bool = False,
) -> User:
    """Create a user together with an empty progress row"""
    db_user = User(
        email=email.lower(),
        password_hash=get_password_hash(password) if password else None,
        name=name,
        is_active=is_active,
        email_verified_at=datetime.utcnow() if email_verified else None,
    )
    db.add(db_user)
    db.flush()
    db.add(UserProgress(user_id=db_user.id))
    db.commit()
    db.refresh(db_user)

    return db_user

def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
    """Return the user when the password matches"""
    user = get_user_by_email(db, email)
    if not user or not user.password_hash:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user

def update_last_login(db: Session, user: User) -> User:
    user.last_login = datetime.utcnow()
    db.commit()
    db.refresh(user)
    return user

def update_user(db: Session, user: User, updates: dict) -> User:
    """Apply whitelisted profile fields"""
    for field, value in updates.items():
        if field in UPDATABLE_FIELDS:
            setattr(user, field, value)
    db.commit()
    db.refresh(user)
    return user

def set_password(db: Session, user: User, password: str) -> User:
    user.password_hash = get_password_hash(password)
    db.commit()
    db.refresh(user)
    return user

def soft_delete_user(db: Session, user: User) -> User:
    """Anonymize the account and deactivate it"""
    user.deleted_at = datetime.utcnow()
    user.email = f"deleted_{user.id}@deleted.local"
    user.is_active = False
    db.commit()
    db.refresh(user)
    return user

def hard_delete_user(db: Session, user: User) -> None:
    """Remove the user and every row they own"""
    action_ids = [a.id for a in db.query(DailyAction.id).filter(DailyAction.user_id == user.id)]
    if action_ids:
        db.query(ActionTimingSession).filter(
            ActionTimingSession.action_id.in_(action_ids)
        ).delete(synchronize_session=False)
    db.query(DailyAction).filter(DailyAction.user_id == user.id).delete(synchronize_session=False)

    vision_ids = [v.id for v in db.query(Vision.id).filter(Vision.user_id == user.id)]
    if vision_ids:
        db.query(VisionAIAnalysis).filter(
            VisionAIAnalysis.vision_id.in_(vision_ids)
        ).delete(synchronize_session=False)
    db.query(Vision).filter(Vision.user_id == user.id).delete(synchronize_session=False)

    for model in (AuthToken, UserSubscription, UserProgress, DataExportRequest, AnalyticsEvent):
        db.query(model).filter(model.user_id == user.id).delete(synchronize_session=False)
    # Audit rows outlive the account
    db.query(AuditLog).filter(AuditLog.user_id == user.id).update(
        {AuditLog.user_id: None}, synchronize_session=False
    )
    db.delete(user)
    db.commit()

def get_progress(db: Session, user_id: str) -> Optional[UserProgress]:
    return db.query(UserProgress).filter(UserProgress.user_id == user_id).first()
