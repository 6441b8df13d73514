"""
Vision models
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, Float, ForeignKey, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
from futuresync.database import Base, generate_id

VISION_CATEGORIES = ("health", "career", "relationships", "personal-growth")
TIME_COMPLEXITIES = ("low", "medium", "high")

class Vision(Base):
    """A user's long-term goal in one life category"""
    __tablename__ = "visions"

    id = Column(String(36), primary_key=True, index=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    category = Column(String(30), nullable=False)
    title = Column(String(255))
    description = Column(Text, nullable=False)
    priority = Column(Integer, default=1)
    time_allocation_minutes = Column(Integer, default=30)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="visions")
    ai_analysis = relationship("VisionAIAnalysis", back_populates="vision", uselist=False)
    daily_actions = relationship("DailyAction", back_populates="vision")

class VisionAIAnalysis(Base):
    """AI analysis of a vision, one per vision"""
    __tablename__ = "vision_ai_analysis"

    id = Column(String(36), primary_key=True, index=True, default=generate_id)
    vision_id = Column(String(36), ForeignKey("visions.id"), unique=True, nullable=False)
    themes = Column(JSON)  # ["theme", ...]
    key_goals = Column(JSON)
    suggested_actions = Column(JSON)
    time_complexity = Column(String(10))
    feasibility_score = Column(Float)
    improvements = Column(JSON)
    analysis_version = Column(String(10), default="1.0")
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    vision = relationship("Vision", back_populates="ai_analysis")
