"""
Audit log, analytics events and data export
"""
import logging
from sqlalchemy.orm import Session
from futuresync.models import (
    AuditLog, AnalyticsEvent, DataExportRequest, User, Vision, DailyAction,
    UserProgress, UserSubscription,
)
from typing import Any, Dict, List, Optional
from datetime import datetime, timedelta

logger = logging.getLogger(__name__)

def log_action(
    db: Session,
    user_id: Optional[str],
    action: str,
    resource_type: str,
    resource_id: Optional[str] = None,
    old_values: Optional[Dict] = None,
    new_values: Optional[Dict] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None
) -> AuditLog:
    entry = AuditLog(
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        old_values=old_values,
        new_values=new_values,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry

def track_event(db: Session, user_id: Optional[str], event_name: str, properties: Optional[Dict] = None) -> AnalyticsEvent:
    event = AnalyticsEvent(user_id=user_id, event_name=event_name, event_properties=properties or {})
    db.add(event)
    db.commit()
    db.refresh(event)
    logger.info(f"Analytics event '{event_name}' for user {user_id}")
    return event

def get_pending_export(db: Session, user_id: str) -> Optional[DataExportRequest]:
    return db.query(DataExportRequest).filter(
        DataExportRequest.user_id == user_id,
        DataExportRequest.status.in_(("pending", "processing"))
    ).first()

def list_export_requests(db: Session, user_id: str) -> List[DataExportRequest]:
    return db.query(DataExportRequest).filter(
        DataExportRequest.user_id == user_id
    ).order_by(DataExportRequest.requested_at.desc()).all()

def create_export_request(db: Session, user_id: str) -> DataExportRequest:
    request = DataExportRequest(user_id=user_id, status="processing")
    db.add(request)
    db.commit()
    db.refresh(request)
    return request

def complete_export_request(db: Session, request: DataExportRequest, success: bool = True) -> DataExportRequest:
    """Download links are valid for a week"""
    now = datetime.utcnow()
    request.status = "completed" if success else "failed"
    request.completed_at = now
    request.expires_at = now + timedelta(days=7) if success else None
    db.commit()
    db.refresh(request)
    return request

def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None

def build_user_export(db: Session, user: User) -> Dict[str, Any]:
    """Everything stored about a user, as plain JSON"""
    visions = db.query(Vision).filter(Vision.user_id == user.id).all()
    actions = db.query(DailyAction).filter(DailyAction.user_id == user.id).all()
    progress = db.query(UserProgress).filter(UserProgress.user_id == user.id).first()
    subscription = db.query(UserSubscription).filter(UserSubscription.user_id == user.id).first()

    return {
        "exportedAt": datetime.utcnow().isoformat(),
        "user": {
            "id": user.id,
            "email": user.email,
            "name": user.name,
            "displayName": user.display_name,
            "timezone": user.timezone,
            "locale": user.locale,
            "createdAt": _iso(user.created_at),
        },
        "visions": [
            {
                "id": v.id,
                "category": v.category,
                "title": v.title,
                "description": v.description,
                "priority": v.priority,
                "timeAllocationMinutes": v.time_allocation_minutes,
                "isActive": v.is_active,
                "createdAt": _iso(v.created_at),
            }
            for v in visions
        ],
        "dailyActions": [
            {
                "id": a.id,
                "visionId": a.vision_id,
                "description": a.description,
                "estimatedTimeMinutes": a.estimated_time_minutes,
                "actualTimeMinutes": a.actual_time_minutes,
                "status": a.status,
                "date": _iso(a.date),
                "completedAt": _iso(a.completed_at),
            }
            for a in actions
        ],
        "progress": {
            "currentStreak": progress.current_streak,
            "longestStreak": progress.longest_streak,
            "totalActionsCompleted": progress.total_actions_completed,
            "totalTimeInvestedMinutes": progress.total_time_invested_minutes,
        } if progress else None,
        "subscription": {
            "plan": subscription.plan,
            "status": subscription.status,
            "currentPeriodEnd": _iso(subscription.current_period_end),
        } if subscription else None,
    }
