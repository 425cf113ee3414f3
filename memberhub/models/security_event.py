"""Security audit event model."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String, Text

from memberhub.database import Base

EVENT_CATEGORIES = ("auth", "admin", "csrf", "error", "session")


class SecurityEvent(Base):
    """Audit trail entry for authentication and admin activity."""

    __tablename__ = "security_event"

    id = Column(Integer, primary_key=True, autoincrement=True)
    category = Column(String(16), nullable=False, default="auth", index=True)
    action = Column(String(64), nullable=False, index=True)
    status = Column(String(32), nullable=True)
    user_id = Column(Integer, nullable=True, index=True)
    user_email = Column(String(256), nullable=True)
    target_user_id = Column(Integer, nullable=True)
    details = Column(Text, nullable=True)
    ref_id = Column(String(64), nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    severity = Column(String(16), nullable=False, default="low")  # low, medium, high, critical
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
