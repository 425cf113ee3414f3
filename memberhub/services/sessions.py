"""Session registry: opaque server-side session tokens, at most one live per user."""

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from memberhub.config import get_settings
from memberhub.models.auth import SessionToken
from memberhub.models.user import User


@dataclass
class SessionInfo:
    """Live session joined with its owner."""

    token: str
    user_id: int
    email: str
    name: str
    role: str
    account_status: str
    ip: str | None
    user_agent: str | None
    expires_at: datetime


def generate_session_token() -> str:
    """512 random bits, hex encoded."""
    return secrets.token_hex(64)


class SessionRegistry:
    """Issues, looks up, extends and revokes session tokens."""

    def __init__(self) -> None:
        self.ttl = timedelta(minutes=get_settings().SESSION_TTL_MINUTES)

    def issue(self, db: Session, user_id: int, role: str, ip: str | None, user_agent: str | None) -> str:
        """Create a session for the user after deleting every prior one."""
        db.query(SessionToken).filter(SessionToken.user_id == user_id).delete(synchronize_session=False)
        token = generate_session_token()
        db.add(
            SessionToken(
                token=token,
                user_id=user_id,
                role=role,
                ip=ip,
                user_agent=(user_agent or "")[:512],
                expires_at=datetime.utcnow() + self.ttl,
            )
        )
        db.commit()
        return token

    def lookup(self, db: Session, token: str | None) -> SessionInfo | None:
        """Return the session for ``token``, or None if absent or expired."""
        if not token:
            return None
        row = (
            db.query(SessionToken, User)
            .join(User, SessionToken.user_id == User.id)
            .filter(SessionToken.token == token, SessionToken.expires_at > datetime.utcnow())
            .first()
        )
        if not row:
            return None
        session, user = row
        return SessionInfo(
            token=session.token,
            user_id=user.id,
            email=user.email,
            name=user.name,
            role=session.role,
            account_status=user.account_status,
            ip=session.ip,
            user_agent=session.user_agent,
            expires_at=session.expires_at,
        )

    def extend(self, db: Session, token: str, duration: timedelta | None = None) -> datetime | None:
        """Move the expiry to now + duration. Returns the new expiry, or None if the token is gone."""
        session = db.query(SessionToken).filter(SessionToken.token == token).first()
        if not session:
            return None
        session.expires_at = datetime.utcnow() + (duration or self.ttl)
        db.commit()
        return session.expires_at

    def revoke(self, db: Session, token: str | None) -> None:
        """Delete the session. Unknown tokens are a no-op."""
        if not token:
            return
        db.query(SessionToken).filter(SessionToken.token == token).delete(synchronize_session=False)
        db.commit()

    def revoke_all_for_user(self, db: Session, user_id: int) -> int:
        count = db.query(SessionToken).filter(SessionToken.user_id == user_id).delete(synchronize_session=False)
        db.commit()
        return count

    def count_for_user(self, db: Session, user_id: int) -> int:
        return db.query(SessionToken).filter(SessionToken.user_id == user_id).count()

    def purge_expired(self, db: Session) -> int:
        """Delete expired rows. Lookups already ignore them, so this is housekeeping only."""
        count = (
            db.query(SessionToken)
            .filter(SessionToken.expires_at <= datetime.utcnow())
            .delete(synchronize_session=False)
        )
        db.commit()
        return count


_session_registry: SessionRegistry | None = None


def get_session_registry() -> SessionRegistry:
    """Get singleton session registry instance."""
    global _session_registry
    if _session_registry is None:
        _session_registry = SessionRegistry()
    return _session_registry
