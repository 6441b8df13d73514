"""
Analytics routes
"""
import logging
import re
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.orm import Session
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Literal, Optional

from futuresync.database import get_db
from futuresync.crud import daily_action as crud_action
from futuresync.crud import vision as crud_vision
from futuresync.crud import audit as crud_audit
from futuresync.routers.auth import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/analytics",
    tags=["analytics"]
)

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

class AnalyticsEventRequest(BaseModel):
    event: Optional[str] = None
    properties: Optional[Dict[str, Any]] = None

def time_analytics(actions: List) -> Dict:
    count = len(actions)
    breakdown: Dict[str, Dict] = {}
    for action in actions:
        key = action.date.isoformat()
        day = breakdown.setdefault(key, {
            "date": key,
            "actionsCount": 0,
            "completedCount": 0,
            "timeSpent": 0,
            "timeEstimated": 0,
        })
        day["actionsCount"] += 1
        if action.status == "completed":
            day["completedCount"] += 1
        day["timeSpent"] += action.actual_time_minutes or 0
        day["timeEstimated"] += action.estimated_time_minutes

    return {
        "totalTimeSpent": sum(a.actual_time_minutes or 0 for a in actions),
        "totalTimeEstimated": sum(a.estimated_time_minutes for a in actions),
        "averageTimePerAction": (
            sum(a.actual_time_minutes or a.estimated_time_minutes for a in actions) / count if count else 0
        ),
        # Share of actions with a recorded actual time
        "timeAccuracy": (sum(1 for a in actions if a.actual_time_minutes) / count) * 100 if count else 0,
        "dailyBreakdown": breakdown,
    }

def trend_analytics(db: Session, user_id: str, today: date) -> Dict:
    days = []
    for offset in range(6, -1, -1):
        day = today - timedelta(days=offset)
        actions = crud_action.list_by_date(db, user_id, day)
        completed = sum(1 for a in actions if a.status == "completed")
        days.append({
            "date": day.isoformat(),
            "total": len(actions),
            "completed": completed,
            "completionRate": (completed / len(actions)) * 100 if actions else 0,
        })
    return {
        "last7Days": days,
        "weeklyAverage": sum(d["completionRate"] for d in days) / 7,
    }

@router.get("")
async def get_analytics(
    type: Literal["overview", "actions", "visions", "time", "trends"] = "overview",
    startDate: Optional[str] = None,
    endDate: Optional[str] = None,
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    today = datetime.utcnow().date()
    start_str = startDate or (today - timedelta(days=30)).isoformat()
    end_str = endDate or today.isoformat()
    try:
        if not DATE_PATTERN.match(start_str) or not DATE_PATTERN.match(end_str):
            raise ValueError("bad format")
        start, end = date.fromisoformat(start_str), date.fromisoformat(end_str)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid date format. Use YYYY-MM-DD"
        )

    analytics: Dict[str, Any] = {}
    if type in ("overview", "actions"):
        analytics["actions"] = {
            **crud_action.get_progress_stats(db, current_user.id, start, end),
            **crud_action.get_action_streak(db, current_user.id),
        }
    if type in ("overview", "visions"):
        analytics["visions"] = crud_vision.get_vision_stats(db, current_user.id)
    if type in ("overview", "time"):
        analytics["time"] = time_analytics(crud_action.list_by_date_range(db, current_user.id, start, end))
    if type in ("overview", "trends"):
        analytics["trends"] = trend_analytics(db, current_user.id, today)

    return {
        "success": True,
        "data": analytics,
        "dateRange": {"startDate": start_str, "endDate": end_str},
        "type": type,
    }

@router.post("")
async def track_event(
    body: AnalyticsEventRequest,
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    if not body.event:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Event name is required")
    crud_audit.track_event(db, current_user.id, body.event, body.properties)
    return {"success": True, "message": "Event tracked successfully"}
