"""
Vision routes
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session
from datetime import datetime
from typing import List, Optional

from futuresync.config import VISION_LIMITS
from futuresync.database import get_db
from futuresync.crud import vision as crud_vision
from futuresync.models.vision import VISION_CATEGORIES
from futuresync.routers.auth import get_current_user, get_current_plan
from futuresync.security import sanitize_input

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/visions",
    tags=["visions"]
)

class VisionCreate(BaseModel):
    category: str
    description: str
    title: Optional[str] = Field(default=None, max_length=255)
    priority: int = Field(default=1, ge=1, le=10)
    time_allocation: int = Field(default=30, ge=1, le=480, alias="timeAllocation")

    class Config:
        populate_by_name = True

class VisionUpdate(BaseModel):
    category: Optional[str] = None
    description: Optional[str] = None
    title: Optional[str] = Field(default=None, max_length=255)
    priority: Optional[int] = Field(default=None, ge=1, le=10)
    time_allocation: Optional[int] = Field(default=None, ge=1, le=480, alias="timeAllocation")
    is_active: Optional[bool] = Field(default=None, alias="isActive")

    class Config:
        populate_by_name = True

class VisionResponse(BaseModel):
    id: str
    user_id: str
    category: str
    title: Optional[str] = None
    description: str
    priority: int
    time_allocation_minutes: int
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class VisionAnalysisResponse(BaseModel):
    id: str
    vision_id: str
    themes: Optional[List[str]] = None
    key_goals: Optional[List[str]] = None
    suggested_actions: Optional[List[str]] = None
    time_complexity: Optional[str] = None
    feasibility_score: Optional[float] = None
    improvements: Optional[List[str]] = None
    analysis_version: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True

def serialize_vision(vision) -> dict:
    return VisionResponse.model_validate(vision).model_dump(mode="json")

def validate_vision_fields(category: Optional[str], description: Optional[str]) -> None:
    errors = []
    if category is not None and category not in VISION_CATEGORIES:
        errors.append({"field": "category", "message": f"Category must be one of: {', '.join(VISION_CATEGORIES)}"})
    if description is not None and not 10 <= len(description.strip()) <= 2000:
        errors.append({"field": "description", "message": "Description must be between 10 and 2000 characters"})
    if errors:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Validation failed", "details": errors}
        )

@router.get("")
async def list_visions(
    active: bool = True,
    category: Optional[str] = None,
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    if category is not None and category not in VISION_CATEGORIES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid category")
    visions = crud_vision.list_visions(db, current_user.id, active_only=active, category=category)
    return {"success": True, "data": [serialize_vision(v) for v in visions], "count": len(visions)}

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_vision(
    vision_data: VisionCreate,
    current_user = Depends(get_current_user),
    plan: str = Depends(get_current_plan),
    db: Session = Depends(get_db)
):
    validate_vision_fields(vision_data.category, vision_data.description)

    limit = VISION_LIMITS.get(plan, VISION_LIMITS["free"])
    current_count = crud_vision.count_active_visions(db, current_user.id)
    if current_count >= limit:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": f"Vision limit reached. Your {plan} plan allows {limit} active visions.",
                "upgradeRequired": plan != "enterprise",
                "currentCount": current_count,
                "limit": limit,
            }
        )

    vision = crud_vision.create_vision(
        db=db,
        user_id=current_user.id,
        category=vision_data.category,
        description=sanitize_input(vision_data.description),
        title=sanitize_input(vision_data.title) if vision_data.title else None,
        priority=vision_data.priority,
        time_allocation_minutes=vision_data.time_allocation,
    )
    logger.info(f"Vision {vision.id} created for user {current_user.id}")
    return {"success": True, "data": serialize_vision(vision), "message": "Vision created successfully"}

@router.get("/{vision_id}")
async def get_vision(
    vision_id: str,
    includeAiAnalysis: bool = False,
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    vision, analysis = crud_vision.get_vision_with_analysis(db, vision_id, current_user.id)
    if not vision:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Vision not found")

    data = {"vision": serialize_vision(vision)}
    if includeAiAnalysis:
        data["aiAnalysis"] = VisionAnalysisResponse.model_validate(analysis).model_dump(mode="json") if analysis else None
    return {"success": True, "data": data}

@router.put("/{vision_id}")
async def update_vision(
    vision_id: str,
    vision_data: VisionUpdate,
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    vision = crud_vision.get_vision_for_user(db, vision_id, current_user.id)
    if not vision:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Vision not found")

    validate_vision_fields(vision_data.category, vision_data.description)
    updated = crud_vision.update_vision(db, vision, {
        "category": vision_data.category,
        "description": sanitize_input(vision_data.description) if vision_data.description else None,
        "title": sanitize_input(vision_data.title) if vision_data.title else None,
        "priority": vision_data.priority,
        "time_allocation_minutes": vision_data.time_allocation,
        "is_active": vision_data.is_active,
    })
    return {"success": True, "data": serialize_vision(updated), "message": "Vision updated successfully"}

@router.delete("/{vision_id}")
async def delete_vision(
    vision_id: str,
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    vision = crud_vision.get_vision_for_user(db, vision_id, current_user.id)
    if not vision:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Vision not found")

    crud_vision.delete_vision(db, vision)
    logger.info(f"Vision {vision_id} deleted for user {current_user.id}")
    return {"success": True, "message": "Vision deleted successfully"}
