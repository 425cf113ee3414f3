"""OTP ledger and the attempt ledgers used for rate limiting and lockout.

Counting failures and recording a new failure are separate steps taken by the
caller. Two racing requests can both pass the count before either insert is
visible, so the thresholds are approximate.
"""

import hmac
import secrets
from datetime import datetime, timedelta

from sqlalchemy import func
from sqlalchemy.orm import Session

from memberhub.config import get_settings
from memberhub.models.auth import LoginAttempt, LoginOtp, OtpAttempt


def generate_otp() -> str:
    """Uniform 6-digit code in [100000, 999999]."""
    return str(100000 + secrets.randbelow(900000))


class OtpLedger:
    """One current login code per email, plus failed verification rows per (email, ip)."""

    def __init__(self) -> None:
        self.ttl = timedelta(minutes=get_settings().OTP_TTL_MINUTES)

    def issue_otp(self, db: Session, email: str) -> str:
        """Create or replace the code for ``email``."""
        code = generate_otp()
        now = datetime.utcnow()
        record = db.get(LoginOtp, email)
        if record is None:
            record = LoginOtp(email=email)
            db.add(record)
        record.code = code
        record.expires_at = now + self.ttl
        record.created_at = now
        db.commit()
        return code

    def verify_otp(self, db: Session, email: str, code: str) -> bool:
        """True if a code exists for ``email``, matches, and has not expired."""
        record = db.get(LoginOtp, email)
        if record is None or not code:
            return False
        if not hmac.compare_digest(record.code, code):
            return False
        return datetime.utcnow() <= record.expires_at

    def consume(self, db: Session, email: str) -> None:
        db.query(LoginOtp).filter(LoginOtp.email == email).delete(synchronize_session=False)
        db.commit()

    def record_failure(self, db: Session, email: str, ip: str | None) -> None:
        db.add(OtpAttempt(email=email, ip_address=ip, attempt_time=datetime.utcnow()))
        db.commit()

    def count_recent_failures(self, db: Session, email: str, ip: str | None, window_seconds: int) -> int:
        since = datetime.utcnow() - timedelta(seconds=window_seconds)
        return (
            db.query(OtpAttempt)
            .filter(OtpAttempt.email == email, OtpAttempt.ip_address == ip, OtpAttempt.attempt_time > since)
            .count()
        )

    def clear_attempts(self, db: Session, email: str, ip: str | None) -> None:
        db.query(OtpAttempt).filter(OtpAttempt.email == email, OtpAttempt.ip_address == ip).delete(
            synchronize_session=False
        )
        db.commit()


class LoginAttemptLedger:
    """Append-only record of password-step attempts.

    A successful row ends a failure streak. Admin unlocks write one too, so an
    unlocked account starts again from zero.
    """

    UNLOCK_USER_AGENT = "admin-unlock"

    def record(self, db: Session, email: str, ip: str | None, user_agent: str | None, success: bool) -> None:
        db.add(
            LoginAttempt(
                email=email,
                ip_address=ip,
                user_agent=(user_agent or "")[:512],
                success=success,
                attempted_at=datetime.utcnow(),
            )
        )
        db.commit()

    def record_unlock(self, db: Session, email: str) -> None:
        self.record(db, email, None, self.UNLOCK_USER_AGENT, success=True)

    def count_consecutive_failures(self, db: Session, email: str, window_seconds: int) -> int:
        """Failures for ``email`` inside the window that came after its last success."""
        since = datetime.utcnow() - timedelta(seconds=window_seconds)
        last_success_id = (
            db.query(func.max(LoginAttempt.id))
            .filter(LoginAttempt.email == email, LoginAttempt.success.is_(True))
            .scalar()
        )
        query = db.query(LoginAttempt).filter(
            LoginAttempt.email == email, LoginAttempt.success.is_(False), LoginAttempt.attempted_at > since
        )
        if last_success_id is not None:
            query = query.filter(LoginAttempt.id > last_success_id)
        return query.count()


_otp_ledger: OtpLedger | None = None
_login_attempts: LoginAttemptLedger | None = None


def get_otp_ledger() -> OtpLedger:
    """Get singleton OTP ledger instance."""
    global _otp_ledger
    if _otp_ledger is None:
        _otp_ledger = OtpLedger()
    return _otp_ledger


def get_login_attempt_ledger() -> LoginAttemptLedger:
    """Get singleton login attempt ledger instance."""
    global _login_attempts
    if _login_attempts is None:
        _login_attempts = LoginAttemptLedger()
    return _login_attempts
