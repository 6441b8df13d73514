"""
Daily action CRUD operations
"""
from sqlalchemy.orm import Session
from futuresync.models import DailyAction, ActionTimingSession, UserProgress
from typing import Dict, List, Optional
from datetime import date, datetime, timedelta

def get_action_for_user(db: Session, action_id: str, user_id: str) -> Optional[DailyAction]:
    """An action, only if owned by the user"""
    return db.query(DailyAction).filter(
        DailyAction.id == action_id,
        DailyAction.user_id == user_id
    ).first()

def list_by_date(db: Session, user_id: str, day: date) -> List[DailyAction]:
    return db.query(DailyAction).filter(
        DailyAction.user_id == user_id,
        DailyAction.date == day
    ).order_by(DailyAction.created_at.asc()).all()

def list_by_date_range(db: Session, user_id: str, start: date, end: date) -> List[DailyAction]:
    return db.query(DailyAction).filter(
        DailyAction.user_id == user_id,
        DailyAction.date >= start,
        DailyAction.date <= end
    ).order_by(DailyAction.date.desc(), DailyAction.created_at.asc()).all()

def list_by_vision(db: Session, user_id: str, vision_id: str) -> List[DailyAction]:
    return db.query(DailyAction).filter(
        DailyAction.user_id == user_id,
        DailyAction.vision_id == vision_id
    ).order_by(DailyAction.date.desc()).all()

def create_action(
    db: Session,
    user_id: str,
    description: str,
    estimated_time_minutes: int,
    day: date,
    vision_id: Optional[str] = None,
    ai_generated: bool = False,
    ai_reasoning: Optional[str] = None
) -> DailyAction:
    db_action = DailyAction(
        user_id=user_id,
        vision_id=vision_id,
        description=description,
        estimated_time_minutes=estimated_time_minutes,
        date=day,
        status="pending",
        ai_generated=ai_generated,
        ai_reasoning=ai_reasoning,
    )
    db.add(db_action)
    db.commit()
    db.refresh(db_action)
    return db_action

def create_actions_batch(db: Session, user_id: str, actions: List[Dict]) -> List[DailyAction]:
    """Insert several actions in one transaction"""
    db_actions = [
        DailyAction(
            user_id=user_id,
            vision_id=a.get("vision_id"),
            description=a["description"],
            estimated_time_minutes=a["estimated_time_minutes"],
            date=a["date"],
            status="pending",
            ai_generated=a.get("ai_generated", False),
            ai_reasoning=a.get("ai_reasoning"),
        )
        for a in actions
    ]
    db.add_all(db_actions)
    db.commit()
    for db_action in db_actions:
        db.refresh(db_action)
    return db_actions

def update_action(db: Session, action: DailyAction, updates: dict) -> DailyAction:
    """Partial update; status drives completed_at"""
    was_completed = action.status == "completed"
    for field, value in updates.items():
        if value is not None:
            setattr(action, field, value)

    status = updates.get("status")
    if status == "completed":
        action.completed_at = datetime.utcnow()
        if not was_completed:
            _record_completion(db, action)
    elif status is not None:
        action.completed_at = None
    db.commit()
    db.refresh(action)
    return action

def complete_action(db: Session, action: DailyAction, actual_time_minutes: Optional[int] = None) -> DailyAction:
    updates = {"status": "completed"}
    if actual_time_minutes is not None:
        updates["actual_time_minutes"] = actual_time_minutes
    return update_action(db, action, updates)

def skip_action(db: Session, action: DailyAction) -> DailyAction:
    return update_action(db, action, {"status": "skipped"})

def delete_action(db: Session, action: DailyAction) -> None:
    db.query(ActionTimingSession).filter(
        ActionTimingSession.action_id == action.id
    ).delete(synchronize_session=False)
    db.delete(action)
    db.commit()

def clear_actions_for_date(db: Session, user_id: str, day: date) -> int:
    action_ids = [a.id for a in db.query(DailyAction.id).filter(
        DailyAction.user_id == user_id,
        DailyAction.date == day
    )]
    if not action_ids:
        return 0
    db.query(ActionTimingSession).filter(
        ActionTimingSession.action_id.in_(action_ids)
    ).delete(synchronize_session=False)
    deleted = db.query(DailyAction).filter(
        DailyAction.id.in_(action_ids)
    ).delete(synchronize_session=False)
    db.commit()
    return deleted

def _record_completion(db: Session, action: DailyAction) -> None:
    """Update the user's running totals and streak for a newly completed action"""
    progress = db.query(UserProgress).filter(UserProgress.user_id == action.user_id).first()
    if not progress:
        progress = UserProgress(user_id=action.user_id)
        db.add(progress)

    progress.total_actions_completed = (progress.total_actions_completed or 0) + 1
    progress.total_time_invested_minutes = (progress.total_time_invested_minutes or 0) + (action.actual_time_minutes or 0)

    last = progress.last_completion_date
    if last != action.date:
        progress.total_days_completed = (progress.total_days_completed or 0) + 1
        if last is not None and last == action.date - timedelta(days=1):
            progress.current_streak = (progress.current_streak or 0) + 1
        elif last is None or last < action.date:
            progress.current_streak = 1
        progress.longest_streak = max(progress.longest_streak or 0, progress.current_streak or 0)
        if last is None or last < action.date:
            progress.last_completion_date = action.date
        progress.streak_updated_at = datetime.utcnow()

# Timer sessions

def get_active_timer(db: Session, action_id: str) -> Optional[ActionTimingSession]:
    return db.query(ActionTimingSession).filter(
        ActionTimingSession.action_id == action_id,
        ActionTimingSession.is_active.is_(True)
    ).first()

def _close_session(session: ActionTimingSession, now: datetime) -> None:
    session.ended_at = now
    session.duration_seconds = int((now - session.started_at).total_seconds())
    session.is_active = False

def start_timer(db: Session, action: DailyAction) -> ActionTimingSession:
    """Close any running session and open a new one"""
    now = datetime.utcnow()
    active = get_active_timer(db, action.id)
    if active:
        _close_session(active, now)

    session = ActionTimingSession(action_id=action.id, started_at=now, is_active=True)
    db.add(session)
    action.status = "in_progress"
    db.commit()
    db.refresh(session)
    return session

def stop_timer(db: Session, action: DailyAction) -> Optional[ActionTimingSession]:
    active = get_active_timer(db, action.id)
    if not active:
        return None
    _close_session(active, datetime.utcnow())
    db.commit()
    db.refresh(active)
    return active

def list_timing_sessions(db: Session, action_id: str) -> List[ActionTimingSession]:
    return db.query(ActionTimingSession).filter(
        ActionTimingSession.action_id == action_id
    ).order_by(ActionTimingSession.started_at.desc()).all()

def list_with_timing_sessions(db: Session, actions: List[DailyAction]) -> List[Dict]:
    return [
        {"action": action, "timing_sessions": list_timing_sessions(db, action.id)}
        for action in actions
    ]

# Statistics

def get_progress_stats(db: Session, user_id: str, start: date, end: date) -> Dict:
    actions = list_by_date_range(db, user_id, start, end)
    total = len(actions)
    completed = sum(1 for a in actions if a.status == "completed")
    pending = sum(1 for a in actions if a.status == "pending")
    timed = [a.actual_time_minutes for a in actions if a.actual_time_minutes is not None]

    return {
        "totalActions": total,
        "completedActions": completed,
        "pendingActions": pending,
        "totalTimeSpent": sum(timed),
        "completionRate": (completed / total) * 100 if total > 0 else 0,
        "averageTimePerAction": sum(timed) / len(timed) if timed else 0,
    }

def get_action_streak(db: Session, user_id: str) -> Dict:
    """Runs of action days that had at least one completion, newest first"""
    actions = db.query(DailyAction.date, DailyAction.status).filter(
        DailyAction.user_id == user_id
    ).all()

    days: Dict[date, bool] = {}
    for day, status in actions:
        days[day] = days.get(day, False) or status == "completed"

    ordered = sorted(days.items(), key=lambda item: item[0], reverse=True)
    current = 0
    for _, has_completion in ordered:
        if not has_completion:
            break
        current += 1

    longest = run = 0
    for _, has_completion in ordered:
        run = run + 1 if has_completion else 0
        longest = max(longest, run)

    completed_days = [day for day, has_completion in ordered if has_completion]
    return {
        "currentStreak": current,
        "longestStreak": longest,
        "lastCompletionDate": completed_days[0].isoformat() if completed_days else None,
    }
