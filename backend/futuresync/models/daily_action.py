"""
Daily action and timer session models
"""
from sqlalchemy import Column, Integer, String, Text, Date, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
from futuresync.database import Base, generate_id

ACTION_STATUSES = ("pending", "in_progress", "completed", "skipped")

class DailyAction(Base):
    """A task for one day, optionally tied to a vision"""
    __tablename__ = "daily_actions"

    id = Column(String(36), primary_key=True, index=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    vision_id = Column(String(36), ForeignKey("visions.id"), nullable=True)
    description = Column(Text, nullable=False)
    estimated_time_minutes = Column(Integer, nullable=False)
    actual_time_minutes = Column(Integer, nullable=True)
    status = Column(String(20), default="pending")
    date = Column(Date, nullable=False, index=True)
    ai_generated = Column(Boolean, default=False)
    ai_reasoning = Column(Text)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="daily_actions")
    vision = relationship("Vision", back_populates="daily_actions")
    timing_sessions = relationship("ActionTimingSession", back_populates="action")

class ActionTimingSession(Base):
    """Stopwatch session for an action"""
    __tablename__ = "action_timing_sessions"

    id = Column(String(36), primary_key=True, index=True, default=generate_id)
    action_id = Column(String(36), ForeignKey("daily_actions.id"), nullable=False, index=True)
    started_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    ended_at = Column(DateTime, nullable=True)
    duration_seconds = Column(Integer, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    action = relationship("DailyAction", back_populates="timing_sessions")
