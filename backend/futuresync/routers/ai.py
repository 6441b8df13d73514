"""
AI routes: quota check, validation, generation, usage tracking
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional

from futuresync.config import AI_ENDPOINT_TOKENS
from futuresync.database import get_db
from futuresync.ai_service import ai_service
from futuresync.ai_usage import usage_tracker
from futuresync.crud import vision as crud_vision
from futuresync.models.vision import VISION_CATEGORIES
from futuresync.routers.auth import get_current_user, get_current_plan

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/ai",
    tags=["ai"]
)

class GenerateActionsRequest(BaseModel):
    visions: List[Dict[str, Any]]
    userBehaviorData: Optional[Dict[str, Any]] = None

class AnalyzeVisionRequest(BaseModel):
    visionDescription: str
    category: str
    visionId: Optional[str] = None

class InsightsRequest(BaseModel):
    userStats: Dict[str, Any]

def enforce_quota(user_id: str, plan: str) -> None:
    check = usage_tracker.check_ai_quota(user_id, plan)
    if not check.allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "success": False,
                "error": check.reason,
                "quotaExceeded": True,
                "remainingDaily": check.remaining_daily,
                "remainingMonthly": check.remaining_monthly,
            }
        )

def bad_request(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"success": False, "error": message}
    )

def ai_payload(result) -> dict:
    payload = {"success": result.success, "data": result.data}
    if result.error:
        payload["error"] = result.error
    if result.cached:
        payload["cached"] = True
    return payload

@router.post("/generate-actions")
async def generate_actions(
    body: GenerateActionsRequest,
    current_user = Depends(get_current_user),
    plan: str = Depends(get_current_plan)
):
    enforce_quota(current_user.id, plan)

    if not body.visions:
        raise bad_request("Visions array is required")
    for vision in body.visions:
        if not vision.get("id") or not vision.get("category") or not vision.get("description"):
            raise bad_request("Each vision must have id, category, and description")

    result = await ai_service.generate_daily_actions(
        body.visions, current_user.id, body.userBehaviorData, plan_type=plan
    )
    usage_tracker.track_ai_usage(
        current_user.id, "generate-actions", result.model,
        AI_ENDPOINT_TOKENS["generate-actions"], result.success, result.cached
    )
    return ai_payload(result)

@router.post("/analyze-vision")
async def analyze_vision(
    body: AnalyzeVisionRequest,
    current_user = Depends(get_current_user),
    plan: str = Depends(get_current_plan),
    db: Session = Depends(get_db)
):
    enforce_quota(current_user.id, plan)

    description = body.visionDescription.strip()
    if not 10 <= len(description) <= 2000:
        raise bad_request("Vision description must be between 10 and 2000 characters")
    if body.category not in VISION_CATEGORIES:
        raise bad_request(f"Category must be one of: {', '.join(VISION_CATEGORIES)}")

    vision = None
    if body.visionId:
        vision = crud_vision.get_vision_for_user(db, body.visionId, current_user.id)
        if not vision:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Vision not found")

    result = await ai_service.analyze_vision(description, body.category, current_user.id, plan_type=plan)
    usage_tracker.track_ai_usage(
        current_user.id, "analyze-vision", result.model,
        AI_ENDPOINT_TOKENS["analyze-vision"], result.success, result.cached
    )

    if vision and result.success and result.data:
        crud_vision.upsert_ai_analysis(db, vision.id, result.data)
        logger.info(f"Stored AI analysis for vision {vision.id}")
    return ai_payload(result)

@router.post("/insights")
async def insights(
    body: InsightsRequest,
    current_user = Depends(get_current_user),
    plan: str = Depends(get_current_plan)
):
    enforce_quota(current_user.id, plan)

    stats = body.userStats
    for field in ("completionRate", "averageCompletionTime", "streakCount"):
        value = stats.get(field)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise bad_request("userStats must include numeric completionRate, averageCompletionTime, and streakCount")

    result = await ai_service.generate_insights(stats, current_user.id, plan_type=plan)
    usage_tracker.track_ai_usage(
        current_user.id, "insights", result.model,
        AI_ENDPOINT_TOKENS["insights"], result.success, result.cached
    )
    return ai_payload(result)

@router.get("/usage")
async def usage(current_user = Depends(get_current_user)):
    return {"success": True, "data": usage_tracker.get_ai_usage_stats(current_user.id)}
