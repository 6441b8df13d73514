"""
Vision CRUD operations
"""
from sqlalchemy.orm import Session
from futuresync.models import Vision, VisionAIAnalysis, DailyAction
from typing import Dict, List, Optional, Tuple

def get_vision_for_user(db: Session, vision_id: str, user_id: str) -> Optional[Vision]:
    """A vision, only if owned by the user"""
    return db.query(Vision).filter(
        Vision.id == vision_id,
        Vision.user_id == user_id
    ).first()

def list_visions(
    db: Session,
    user_id: str,
    active_only: bool = True,
    category: Optional[str] = None
) -> List[Vision]:
    """Highest priority first, then oldest first"""
    query = db.query(Vision).filter(Vision.user_id == user_id)
    if active_only:
        query = query.filter(Vision.is_active.is_(True))
    if category:
        query = query.filter(Vision.category == category)
    return query.order_by(Vision.priority.desc(), Vision.created_at.asc()).all()

def list_visions_by_category(db: Session, user_id: str, category: str) -> List[Vision]:
    return db.query(Vision).filter(
        Vision.user_id == user_id,
        Vision.category == category,
        Vision.is_active.is_(True)
    ).order_by(Vision.priority.desc()).all()

def count_active_visions(db: Session, user_id: str) -> int:
    return db.query(Vision).filter(
        Vision.user_id == user_id,
        Vision.is_active.is_(True)
    ).count()

def create_vision(
    db: Session,
    user_id: str,
    category: str,
    description: str,
    title: Optional[str] = None,
    priority: int = 1,
    time_allocation_minutes: int = 30
) -> Vision:
    db_vision = Vision(
        user_id=user_id,
        category=category,
        title=title,
        description=description,
        priority=priority,
        time_allocation_minutes=time_allocation_minutes,
        is_active=True,
    )
    db.add(db_vision)
    db.commit()
    db.refresh(db_vision)
    return db_vision

def update_vision(db: Session, vision: Vision, updates: dict) -> Vision:
    """Partial update, None values are ignored"""
    for field, value in updates.items():
        if value is not None:
            setattr(vision, field, value)
    db.commit()
    db.refresh(vision)
    return vision

def delete_vision(db: Session, vision: Vision) -> None:
    """Delete a vision; its actions survive without a vision"""
    db.query(VisionAIAnalysis).filter(
        VisionAIAnalysis.vision_id == vision.id
    ).delete(synchronize_session=False)
    db.query(DailyAction).filter(
        DailyAction.vision_id == vision.id,
        DailyAction.user_id == vision.user_id
    ).update({DailyAction.vision_id: None}, synchronize_session=False)
    db.delete(vision)
    db.commit()

def get_ai_analysis(db: Session, vision_id: str) -> Optional[VisionAIAnalysis]:
    return db.query(VisionAIAnalysis).filter(VisionAIAnalysis.vision_id == vision_id).first()

def get_vision_with_analysis(
    db: Session,
    vision_id: str,
    user_id: str
) -> Tuple[Optional[Vision], Optional[VisionAIAnalysis]]:
    vision = get_vision_for_user(db, vision_id, user_id)
    if not vision:
        return None, None
    return vision, get_ai_analysis(db, vision.id)

def upsert_ai_analysis(db: Session, vision_id: str, analysis: Dict) -> VisionAIAnalysis:
    """Store the AI analysis of a vision, replacing any previous one"""
    db_analysis = get_ai_analysis(db, vision_id)
    if not db_analysis:
        db_analysis = VisionAIAnalysis(vision_id=vision_id)
        db.add(db_analysis)

    db_analysis.themes = analysis.get("themes", [])
    db_analysis.key_goals = analysis.get("keyGoals", [])
    db_analysis.suggested_actions = analysis.get("suggestedActions", [])
    db_analysis.time_complexity = analysis.get("timeComplexity", "medium")
    db_analysis.feasibility_score = analysis.get("feasibilityScore")
    db_analysis.improvements = analysis.get("improvements", [])
    db_analysis.analysis_version = "1.0"
    db.commit()
    db.refresh(db_analysis)
    return db_analysis

def get_vision_stats(db: Session, user_id: str) -> Dict:
    visions = db.query(Vision).filter(Vision.user_id == user_id).all()
    active = [v for v in visions if v.is_active]

    by_category: Dict[str, int] = {}
    for v in visions:
        by_category[v.category] = by_category.get(v.category, 0) + 1

    return {
        "totalVisions": len(visions),
        "activeVisions": len(active),
        "inactiveVisions": len(visions) - len(active),
        "totalTimeAllocated": sum(v.time_allocation_minutes or 0 for v in active),
        "averagePriority": round(sum(v.priority or 0 for v in visions) / len(visions), 2) if visions else 0,
        "byCategory": by_category,
    }
