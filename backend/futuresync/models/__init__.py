"""
Model imports
"""
# Base first
from futuresync.database import Base

from futuresync.models.user import User, AuthToken
from futuresync.models.vision import Vision, VisionAIAnalysis
from futuresync.models.daily_action import DailyAction, ActionTimingSession
from futuresync.models.subscription import UserSubscription, UserProgress
from futuresync.models.audit import AuditLog, AnalyticsEvent, DataExportRequest

__all__ = ["Base", "User", "AuthToken", "Vision", "VisionAIAnalysis",
           "DailyAction", "ActionTimingSession", "UserSubscription", "UserProgress",
           "AuditLog", "AnalyticsEvent", "DataExportRequest"]
