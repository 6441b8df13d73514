"""
Audit, analytics and data export models
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, JSON
from datetime import datetime
from futuresync.database import Base, generate_id

AUDIT_ACTIONS = ("create", "update", "delete", "login", "logout", "export_data", "delete_account")
EXPORT_STATUSES = ("pending", "processing", "completed", "failed")

class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True, index=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)
    action = Column(String(30), nullable=False)
    resource_type = Column(String(50), nullable=False)
    resource_id = Column(String(36), nullable=True)
    old_values = Column(JSON)
    new_values = Column(JSON)
    ip_address = Column(String(64))
    user_agent = Column(String(500))
    timestamp = Column(DateTime, default=datetime.utcnow, index=True)

class AnalyticsEvent(Base):
    __tablename__ = "analytics_events"

    id = Column(String(36), primary_key=True, index=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)
    event_name = Column(String(100), nullable=False)
    event_properties = Column(JSON)
    timestamp = Column(DateTime, default=datetime.utcnow, index=True)

class DataExportRequest(Base):
    __tablename__ = "data_export_requests"

    id = Column(String(36), primary_key=True, index=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String(20), default="pending")
    requested_at = Column(DateTime, default=datetime.utcnow)
    completed_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)
