"""Security event logger. Never raises: a failed audit write must not mask the operation it describes."""

import logging

from sqlalchemy.orm import Session

from memberhub.models.security_event import EVENT_CATEGORIES, SecurityEvent

logger = logging.getLogger("memberhub.security")


class SecurityLogger:
    """Persists security events to the ``security_event`` table."""

    def log_event(
        self,
        db: Session,
        *,
        action: str,
        category: str = "auth",
        status: str | None = None,
        user_id: int | None = None,
        user_email: str | None = None,
        target_user_id: int | None = None,
        details: str = "",
        ref_id: str | None = None,
        ip: str | None = None,
        user_agent: str | None = None,
        severity: str = "low",
    ) -> None:
        if category not in EVENT_CATEGORIES:
            logger.warning("Unknown security event category %r for action %s", category, action)
            return
        try:
            db.add(
                SecurityEvent(
                    category=category,
                    action=action,
                    status=status,
                    user_id=user_id,
                    user_email=user_email,
                    target_user_id=target_user_id,
                    details=details,
                    ref_id=ref_id,
                    ip_address=ip,
                    user_agent=(user_agent or "")[:512],
                    severity=severity,
                )
            )
            db.commit()
        except Exception:
            logger.exception("Failed to record security event %s (ref %s)", action, ref_id)
            db.rollback()

    def list_events(
        self,
        db: Session,
        category: str | None = None,
        search: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> tuple[list[SecurityEvent], int]:
        """Newest-first page of events, optionally filtered by category and free text."""
        query = db.query(SecurityEvent)
        if category:
            query = query.filter(SecurityEvent.category == category)
        if search:
            pattern = f"%{search}%"
            query = query.filter(
                SecurityEvent.action.ilike(pattern)
                | SecurityEvent.details.ilike(pattern)
                | SecurityEvent.user_email.ilike(pattern)
            )
        total = query.count()
        items = query.order_by(SecurityEvent.created_at.desc(), SecurityEvent.id.desc()).offset(offset).limit(limit).all()
        return items, total


_security_logger: SecurityLogger | None = None


def get_security_logger() -> SecurityLogger:
    """Get singleton security logger instance."""
    global _security_logger
    if _security_logger is None:
        _security_logger = SecurityLogger()
    return _security_logger
