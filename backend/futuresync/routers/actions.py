"""
Daily action routes
"""
import logging
import re
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session
from datetime import date, datetime
from typing import List, Literal, Optional

from futuresync.database import get_db
from futuresync.crud import daily_action as crud_action
from futuresync.crud import vision as crud_vision
from futuresync.models.daily_action import ACTION_STATUSES
from futuresync.routers.auth import get_current_user
from futuresync.security import sanitize_input

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/actions",
    tags=["actions"]
)

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
MAX_BATCH_SIZE = 20

class ActionCreate(BaseModel):
    description: str
    estimatedTime: int
    date: Optional[str] = None
    visionId: Optional[str] = None
    aiGenerated: bool = False
    aiReasoning: Optional[str] = None

class ActionBatchCreate(BaseModel):
    actions: List[ActionCreate]

class ActionUpdate(BaseModel):
    description: Optional[str] = None
    estimatedTime: Optional[int] = None
    actualTime: Optional[int] = None
    status: Optional[str] = None

class ActionComplete(BaseModel):
    actualTimeMinutes: Optional[int] = None

class TimerRequest(BaseModel):
    action: Literal["start", "stop"]

class ActionResponse(BaseModel):
    id: str
    user_id: str
    vision_id: Optional[str] = None
    description: str
    estimated_time_minutes: int
    actual_time_minutes: Optional[int] = None
    status: str
    date: date
    ai_generated: bool
    ai_reasoning: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class TimingSessionResponse(BaseModel):
    id: str
    action_id: str
    started_at: datetime
    ended_at: Optional[datetime] = None
    duration_seconds: Optional[int] = None
    is_active: bool

    class Config:
        from_attributes = True

def serialize_action(action) -> dict:
    return ActionResponse.model_validate(action).model_dump(mode="json")

def serialize_session(session) -> Optional[dict]:
    return TimingSessionResponse.model_validate(session).model_dump(mode="json") if session else None

def validation_error(errors: List[dict]) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"error": "Validation failed", "details": errors}
    )

def parse_date(value: str, field: str = "date") -> date:
    if not DATE_PATTERN.match(value):
        raise validation_error([{"field": field, "message": "Date must be in YYYY-MM-DD format"}])
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise validation_error([{"field": field, "message": "Invalid date"}])

def get_owned_action(db: Session, action_id: str, user_id: str):
    action = crud_action.get_action_for_user(db, action_id, user_id)
    if not action:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Action not found")
    return action

def check_action_fields(
    description: Optional[str] = None,
    estimated_time: Optional[int] = None,
    actual_time: Optional[int] = None,
    action_status: Optional[str] = None,
    prefix: str = ""
) -> List[dict]:
    errors = []
    if description is not None and not 3 <= len(description.strip()) <= 500:
        errors.append({"field": f"{prefix}description", "message": "Description must be between 3 and 500 characters"})
    if estimated_time is not None and not 1 <= estimated_time <= 480:
        errors.append({"field": f"{prefix}estimatedTime", "message": "Estimated time must be between 1 and 480 minutes"})
    if actual_time is not None and not 0 <= actual_time <= 960:
        errors.append({"field": f"{prefix}actualTime", "message": "Actual time must be between 0 and 960 minutes"})
    if action_status is not None and action_status not in ACTION_STATUSES:
        errors.append({"field": f"{prefix}status", "message": f"Status must be one of: {', '.join(ACTION_STATUSES)}"})
    return errors

@router.get("")
async def list_actions(
    date: Optional[str] = None,
    startDate: Optional[str] = None,
    endDate: Optional[str] = None,
    visionId: Optional[str] = None,
    includeTimingSessions: bool = False,
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Filter precedence: date, then date range, then vision, then today"""
    if date:
        actions = crud_action.list_by_date(db, current_user.id, parse_date(date))
    elif startDate and endDate:
        actions = crud_action.list_by_date_range(
            db, current_user.id, parse_date(startDate, "startDate"), parse_date(endDate, "endDate")
        )
    elif visionId:
        actions = crud_action.list_by_vision(db, current_user.id, visionId)
    else:
        actions = crud_action.list_by_date(db, current_user.id, datetime.utcnow().date())

    if includeTimingSessions:
        data = [
            {**serialize_action(item["action"]),
             "timing_sessions": [serialize_session(s) for s in item["timing_sessions"]]}
            for item in crud_action.list_with_timing_sessions(db, actions)
        ]
    else:
        data = [serialize_action(a) for a in actions]
    return {"success": True, "data": data, "count": len(data)}

def _check_vision(db: Session, vision_id: Optional[str], user_id: str, field: str) -> List[dict]:
    if vision_id and not crud_vision.get_vision_for_user(db, vision_id, user_id):
        return [{"field": field, "message": "Vision not found"}]
    return []

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_actions(
    body: dict,
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Create one action, or a batch when the body carries an `actions` list"""
    today = datetime.utcnow().date().isoformat()

    if "actions" in body:
        try:
            batch = ActionBatchCreate.model_validate(body)
        except ValueError:
            raise validation_error([{"field": "actions", "message": "Invalid actions payload"}])
        if not 1 <= len(batch.actions) <= MAX_BATCH_SIZE:
            raise validation_error([{"field": "actions", "message": f"Between 1 and {MAX_BATCH_SIZE} actions are required"}])

        errors = []
        rows = []
        for i, item in enumerate(batch.actions):
            prefix = f"actions.{i}."
            errors += check_action_fields(item.description, item.estimatedTime, prefix=prefix)
            errors += _check_vision(db, item.visionId, current_user.id, f"{prefix}visionId")
            rows.append({
                "description": sanitize_input(item.description),
                "estimated_time_minutes": item.estimatedTime,
                "date": parse_date(item.date or today, f"{prefix}date"),
                "vision_id": item.visionId,
                "ai_generated": item.aiGenerated,
                "ai_reasoning": item.aiReasoning,
            })
        if errors:
            raise validation_error(errors)

        actions = crud_action.create_actions_batch(db, current_user.id, rows)
        return {
            "success": True,
            "data": [serialize_action(a) for a in actions],
            "message": f"{len(actions)} actions created successfully",
        }

    try:
        item = ActionCreate.model_validate(body)
    except ValueError:
        raise validation_error([{"field": "body", "message": "description and estimatedTime are required"}])

    errors = check_action_fields(item.description, item.estimatedTime)
    errors += _check_vision(db, item.visionId, current_user.id, "visionId")
    if errors:
        raise validation_error(errors)

    action = crud_action.create_action(
        db=db,
        user_id=current_user.id,
        description=sanitize_input(item.description),
        estimated_time_minutes=item.estimatedTime,
        day=parse_date(item.date or today),
        vision_id=item.visionId,
        ai_generated=item.aiGenerated,
        ai_reasoning=item.aiReasoning,
    )
    return {"success": True, "data": serialize_action(action), "message": "Action created successfully"}

@router.get("/{action_id}")
async def get_action(
    action_id: str,
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    action = get_owned_action(db, action_id, current_user.id)
    return {"success": True, "data": serialize_action(action)}

@router.put("/{action_id}")
async def update_action(
    action_id: str,
    body: ActionUpdate,
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    action = get_owned_action(db, action_id, current_user.id)
    errors = check_action_fields(body.description, body.estimatedTime, body.actualTime, body.status)
    if errors:
        raise validation_error(errors)

    updated = crud_action.update_action(db, action, {
        "description": sanitize_input(body.description) if body.description else None,
        "estimated_time_minutes": body.estimatedTime,
        "actual_time_minutes": body.actualTime,
        "status": body.status,
    })
    return {"success": True, "data": serialize_action(updated), "message": "Action updated successfully"}

@router.delete("/{action_id}")
async def delete_action(
    action_id: str,
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    action = get_owned_action(db, action_id, current_user.id)
    crud_action.delete_action(db, action)
    return {"success": True, "message": "Action deleted successfully"}

@router.post("/{action_id}/complete")
async def complete_action(
    action_id: str,
    body: Optional[ActionComplete] = None,
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    action = get_owned_action(db, action_id, current_user.id)
    actual = body.actualTimeMinutes if body else None
    errors = check_action_fields(actual_time=actual)
    if errors:
        raise validation_error(errors)

    completed = crud_action.complete_action(db, action, actual)
    logger.info(f"Action {action_id} completed by user {current_user.id}")
    return {"success": True, "data": serialize_action(completed), "message": "Action completed successfully"}

@router.post("/{action_id}/timer")
async def control_timer(
    action_id: str,
    body: TimerRequest,
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    action = get_owned_action(db, action_id, current_user.id)

    if body.action == "start":
        session = crud_action.start_timer(db, action)
        return {"success": True, "data": serialize_session(session), "message": "Timer started"}

    session = crud_action.stop_timer(db, action)
    if not session:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No active timer found")
    return {"success": True, "data": serialize_session(session), "message": "Timer stopped"}

@router.get("/{action_id}/timer")
async def get_timer(
    action_id: str,
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    get_owned_action(db, action_id, current_user.id)
    session = crud_action.get_active_timer(db, action_id)
    return {"success": True, "data": serialize_session(session), "hasActiveTimer": session is not None}
