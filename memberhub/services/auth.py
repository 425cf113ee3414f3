"""Authentication service: signup, activation, password + OTP login, sessions and password reset.

Account states: pending -> inactive (email confirmed) -> active (documents
approved by an admin). Accounts can also be locked or soft-deleted. Only
inactive and active accounts may complete a login.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

import bcrypt
from sqlalchemy.orm import Session

from memberhub.config import get_settings
from memberhub.errors import (
    AccountLocked,
    AccountNotPermitted,
    InternalError,
    InvalidCredentials,
    InvalidOrExpiredOtp,
    InvalidResetToken,
    InvalidToken,
    RateLimited,
    SessionInvalid,
    TokenAlreadyUsed,
    TokenExpired,
    new_trace_id,
)
from memberhub.models.auth import ActivationToken
from memberhub.models.user import LOGIN_ALLOWED_STATUSES, User
from memberhub.services.email import Mailer, MailDeliveryError, get_mailer
from memberhub.services.jwt import JWTService, get_jwt_service
from memberhub.services.otp import LoginAttemptLedger, OtpLedger, get_login_attempt_ledger, get_otp_ledger
from memberhub.services.security_log import SecurityLogger, get_security_logger
from memberhub.services.sessions import SessionRegistry, get_session_registry

logger = logging.getLogger("memberhub.auth")

SIGNUP_MESSAGE = "Signup successful. Please check your email to activate."
RESET_REQUEST_MESSAGE = "If an account with this email exists, a reset link has been sent."
# Statuses for which the password step is evaluated; locked answers 403 before the password is checked.
PASSWORD_STEP_STATUSES = ("inactive", "active", "locked")


@dataclass
class RequestContext:
    """Caller metadata recorded with attempts, sessions and audit events."""

    ip: str | None = None
    user_agent: str | None = None


@dataclass
class LoginResult:
    """Outcome of a successful OTP verification."""

    token: str
    expires_at: datetime
    user: dict


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def hash_password(password: str) -> str:
    rounds = get_settings().BCRYPT_ROUNDS
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


class AuthService:
    """Orchestrates the account and session lifecycle."""

    def __init__(
        self,
        sessions: SessionRegistry | None = None,
        otps: OtpLedger | None = None,
        attempts: LoginAttemptLedger | None = None,
        mailer: Mailer | None = None,
        security_log: SecurityLogger | None = None,
        jwt_service: JWTService | None = None,
    ) -> None:
        self.settings = get_settings()
        self.sessions = sessions or get_session_registry()
        self.otps = otps or get_otp_ledger()
        self.attempts = attempts or get_login_attempt_ledger()
        self.mailer = mailer or get_mailer()
        self.security_log = security_log or get_security_logger()
        self.jwt = jwt_service or get_jwt_service()

    # --- lookups ---

    def get_user_by_email(self, db: Session, email: str) -> User | None:
        # Stored addresses are already normalized; exact match, no LIKE patterns
        return db.query(User).filter(User.email == normalize_email(email)).first()

    def _issue_activation_token(self, db: Session, user_id: int) -> str:
        token = secrets.token_hex(32)
        db.add(
            ActivationToken(
                user_id=user_id,
                token=token,
                expires_at=datetime.utcnow() + timedelta(minutes=self.settings.ACTIVATION_TOKEN_MINUTES),
            )
        )
        db.commit()
        return token

    # --- signup / activation ---

    def signup(
        self,
        db: Session,
        ctx: RequestContext,
        name: str,
        email: str,
        password: str,
        contact: str | None = None,
        address: str | None = None,
        member_type: str | None = None,
        organization: str | None = None,
    ) -> str:
        """Create or reactivate a pending account. Always answers with the same message."""
        trace_id = new_trace_id("SIGNUP")
        email = normalize_email(email)
        existing = self.get_user_by_email(db, email)

        if existing and existing.account_status != "deleted":
            self.security_log.log_event(
                db,
                action="signup_request",
                status="duplicate",
                user_id=existing.id,
                user_email=email,
                details="Duplicate signup attempt - account exists",
                ref_id=trace_id,
                ip=ctx.ip,
                user_agent=ctx.user_agent,
                severity="medium",
            )
            return SIGNUP_MESSAGE

        if existing:
            user = existing
            user.name = name.strip()
            user.password_hash = hash_password(password)
            user.contact = contact
            user.address = address
            user.member_type = member_type
            user.organization = organization
            user.account_status = "pending"
            kind = "reactivation"
        else:
            user = User(
                name=name.strip(),
                email=email,
                password_hash=hash_password(password),
                contact=contact,
                address=address,
                member_type=member_type,
                organization=organization,
                user_role="member",
                account_status="pending",
            )
            db.add(user)
            kind = "activation"
        db.commit()
        db.refresh(user)

        token = self._issue_activation_token(db, user.id)
        try:
            self.mailer.send_activation_email(email, token, user.name, kind=kind)
        except MailDeliveryError as e:
            logger.error("Activation email failed (Ref: %s): %s", trace_id, e)
            self.security_log.log_event(
                db,
                action="signup_email_failed",
                status="error",
                user_id=user.id,
                user_email=email,
                details=f"Activation email failed: {e}",
                ref_id=trace_id,
                ip=ctx.ip,
                user_agent=ctx.user_agent,
                severity="medium",
            )

        self.security_log.log_event(
            db,
            action="signup_request",
            status="success",
            user_id=user.id,
            user_email=email,
            details="Account reactivation triggered" if kind == "reactivation" else "New signup and activation link issued",
            ref_id=trace_id,
            ip=ctx.ip,
            user_agent=ctx.user_agent,
        )
        return SIGNUP_MESSAGE

    def activate(self, db: Session, ctx: RequestContext, token: str | None) -> None:
        """Redeem an activation token. A used token reports as used even when it has also expired."""
        trace_id = new_trace_id("ACTIVATE")
        if not token:
            self._log_activation(db, ctx, trace_id, None, "Missing activation token")
            raise InvalidToken(trace_id=trace_id)

        record = db.query(ActivationToken).filter(ActivationToken.token == token).first()
        if not record:
            self._log_activation(db, ctx, trace_id, None, "Invalid token")
            raise InvalidToken(trace_id=trace_id)
        if record.used:
            self._log_activation(db, ctx, trace_id, record.user_id, "Token already used")
            raise TokenAlreadyUsed(trace_id=trace_id)
        if datetime.utcnow() >= record.expires_at:
            self._log_activation(db, ctx, trace_id, record.user_id, "Expired token")
            raise TokenExpired(trace_id=trace_id)

        user = db.get(User, record.user_id)
        if user and user.account_status == "pending":
            user.account_status = "inactive"
        record.used = True
        db.commit()
        self._log_activation(db, ctx, trace_id, record.user_id, "Account activated successfully", status="success")

    def _log_activation(
        self, db: Session, ctx: RequestContext, trace_id: str, user_id: int | None, details: str, status: str = "failed"
    ) -> None:
        self.security_log.log_event(
            db,
            action="activate_account",
            status=status,
            user_id=user_id,
            details=details,
            ref_id=trace_id,
            ip=ctx.ip,
            user_agent=ctx.user_agent,
        )

    # --- login ---

    def login_request(self, db: Session, ctx: RequestContext, email: str, password: str) -> str:
        """Check the password and email a fresh OTP. Repeated failures lock the account."""
        trace_id = new_trace_id("LOGIN-REQ")
        email = normalize_email(email)
        user = self.get_user_by_email(db, email)

        if user and user.account_status == "locked":
            self.attempts.record(db, email, ctx.ip, ctx.user_agent, success=False)
            self._log_login(db, ctx, trace_id, email, "login_request", "locked", "Login attempt on locked account")
            raise AccountLocked(trace_id=trace_id)

        if (
            not user
            or user.account_status not in PASSWORD_STEP_STATUSES
            or not verify_password(password, user.password_hash)
        ):
            self.attempts.record(db, email, ctx.ip, ctx.user_agent, success=False)
            failures = self.attempts.count_consecutive_failures(db, email, self.settings.LOGIN_LOCK_WINDOW_MINUTES * 60)
            if user and user.account_status in LOGIN_ALLOWED_STATUSES and failures >= self.settings.LOGIN_LOCK_THRESHOLD:
                user.account_status = "locked"
                db.commit()
                logger.warning("Account %s locked after %d failed logins", user.id, failures)
                self._log_login(
                    db, ctx, trace_id, email, "account_locked", "locked",
                    f"Locked after {failures} failed attempts", severity="high",
                )
                raise AccountLocked(trace_id=trace_id)
            self._log_login(db, ctx, trace_id, email, "login_request", "invalid", "Invalid credentials")
            raise InvalidCredentials(trace_id=trace_id)

        self.attempts.record(db, email, ctx.ip, ctx.user_agent, success=True)
        code = self.otps.issue_otp(db, email)
        try:
            self.mailer.send_otp_email(user.email, code, user.name)
        except MailDeliveryError as e:
            logger.error("OTP email failed (Ref: %s): %s", trace_id, e)
            self._log_login(db, ctx, trace_id, email, "login_request", "error", f"OTP email failed: {e}", "medium")
            raise InternalError("Failed to send login code. Please try again.", trace_id=trace_id) from e

        self._log_login(db, ctx, trace_id, email, "login_request", "otp_sent", "OTP sent")
        return "OTP sent to email"

    def login_verify(self, db: Session, ctx: RequestContext, email: str, otp: str) -> LoginResult:
        """Redeem an OTP and open a session, replacing any session the user already had."""
        trace_id = new_trace_id("LOGIN-VER")
        email = normalize_email(email)

        window = self.settings.OTP_ATTEMPT_WINDOW_MINUTES * 60
        if self.otps.count_recent_failures(db, email, ctx.ip, window) >= self.settings.OTP_MAX_ATTEMPTS:
            self._log_login(db, ctx, trace_id, email, "login_verify", "rate_limited", "Too many OTP attempts", "medium")
            raise RateLimited(trace_id=trace_id)

        if not self.otps.verify_otp(db, email, otp):
            self.otps.record_failure(db, email, ctx.ip)
            self._log_login(db, ctx, trace_id, email, "login_verify", "fail", "Invalid/expired OTP")
            raise InvalidOrExpiredOtp(trace_id=trace_id)

        user = self.get_user_by_email(db, email)
        if not user or user.account_status not in LOGIN_ALLOWED_STATUSES:
            self._log_login(db, ctx, trace_id, email, "login_verify", "fail", "Account status invalid", "medium")
            raise AccountNotPermitted(trace_id=trace_id)

        self.otps.consume(db, email)
        self.otps.clear_attempts(db, email, ctx.ip)
        token = self.sessions.issue(db, user.id, user.user_role, ctx.ip, ctx.user_agent)
        session = self.sessions.lookup(db, token)

        self._log_login(db, ctx, trace_id, email, "login_verify", "success", "OTP verified, session token issued")
        self.security_log.log_event(
            db, category="session", action="session_created", user_id=user.id, ip=ctx.ip, user_agent=ctx.user_agent
        )
        return LoginResult(token=token, expires_at=session.expires_at, user=user.public_profile())

    def _log_login(
        self,
        db: Session,
        ctx: RequestContext,
        trace_id: str,
        email: str,
        action: str,
        status: str,
        details: str,
        severity: str = "low",
    ) -> None:
        self.security_log.log_event(
            db,
            action=action,
            status=status,
            user_email=email,
            details=details,
            ref_id=trace_id,
            ip=ctx.ip,
            user_agent=ctx.user_agent,
            severity=severity,
        )

    # --- session ---

    def refresh(self, db: Session, ctx: RequestContext, token: str) -> datetime:
        """Extend the session by one TTL without rotating the token."""
        expires_at = self.sessions.extend(db, token)
        if expires_at is None:
            raise SessionInvalid()
        return expires_at

    def logout(self, db: Session, ctx: RequestContext, token: str | None) -> None:
        """Revoke the session if possible. Never raises."""
        if not token:
            return
        try:
            session = self.sessions.lookup(db, token)
            self.sessions.revoke(db, token)
        except Exception:
            logger.exception("Session revoke failed during logout")
            db.rollback()
            return
        if session:
            self.security_log.log_event(
                db,
                category="session",
                action="logout",
                user_id=session.user_id,
                ip=ctx.ip,
                user_agent=ctx.user_agent,
            )

    # --- password reset ---

    def request_reset(self, db: Session, ctx: RequestContext, email: str) -> str:
        """Email a signed reset link. The answer is the same whether or not the account exists."""
        trace_id = new_trace_id("PWD-REQ")
        email = normalize_email(email)
        user = self.get_user_by_email(db, email)
        if not user or user.account_status == "deleted":
            self._log_login(db, ctx, trace_id, email, "password_reset_request", "not_found", "Email not found")
            return RESET_REQUEST_MESSAGE

        token = self.jwt.create_reset_token(user.email)
        try:
            self.mailer.send_reset_password_email(user.email, token, user.name)
        except MailDeliveryError as e:
            logger.error("Reset email failed (Ref: %s): %s", trace_id, e)
            self._log_login(db, ctx, trace_id, email, "password_reset_request", "error", str(e), "medium")
            return RESET_REQUEST_MESSAGE

        self._log_login(db, ctx, trace_id, email, "password_reset_request", "success", "Reset email sent")
        return RESET_REQUEST_MESSAGE

    def validate_reset_token(self, token: str) -> bool:
        if not self.jwt.is_reset_token_valid(token):
            raise InvalidResetToken(trace_id=new_trace_id("TOKEN-CHECK"))
        return True

    def reset_password(self, db: Session, ctx: RequestContext, token: str, password: str) -> None:
        """Set a new password from a reset token and sign out the user's current session."""
        trace_id = new_trace_id("PWD-RESET")
        payload = self.jwt.decode_reset_token(token)
        if not payload:
            self._log_login(db, ctx, trace_id, "", "password_reset", "failed", "Invalid or expired token")
            raise InvalidResetToken(trace_id=trace_id)

        user = self.get_user_by_email(db, payload["email"])
        if not user or user.account_status == "deleted":
            self._log_login(db, ctx, trace_id, payload["email"], "password_reset", "failed", "Email not found")
            raise InvalidResetToken(trace_id=trace_id)

        user.password_hash = hash_password(password)
        db.commit()
        self.sessions.revoke_all_for_user(db, user.id)
        self.security_log.log_event(
            db,
            action="password_reset",
            status="success",
            user_id=user.id,
            user_email=user.email,
            details="Password updated via reset",
            ref_id=trace_id,
            ip=ctx.ip,
            user_agent=ctx.user_agent,
        )


_auth_service: AuthService | None = None


def get_auth_service() -> AuthService:
    """Get singleton auth service instance."""
    global _auth_service
    if _auth_service is None:
        _auth_service = AuthService()
    return _auth_service
