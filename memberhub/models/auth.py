"""Authentication ledger models: activation tokens, OTPs, attempts and sessions."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String

from memberhub.database import Base


class ActivationToken(Base):
    """One-time email ownership proof. Kept after use as an audit trail."""

    __tablename__ = "activation_token"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("user.id"), nullable=False, index=True)
    token = Column(String(128), nullable=False, unique=True, index=True)
    expires_at = Column(DateTime, nullable=False)
    used = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class LoginOtp(Base):
    """Current login code for an email. Replaced on every login request."""

    __tablename__ = "login_otp"

    email = Column(String(256), primary_key=True)
    code = Column(String(6), nullable=False)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class OtpAttempt(Base):
    """Failed OTP verification, counted per (email, ip) for rate limiting."""

    __tablename__ = "otp_attempt"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(256), nullable=False, index=True)
    ip_address = Column(String(64), nullable=True)
    attempt_time = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)


class LoginAttempt(Base):
    """Password step attempt, successful or not. Append-only."""

    __tablename__ = "login_attempt"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(256), nullable=False, index=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    success = Column(Boolean, nullable=False, default=False)
    attempted_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)


class SessionToken(Base):
    """Server-side session mirrored in the auth_token cookie."""

    __tablename__ = "session_token"

    token = Column(String(128), primary_key=True)
    user_id = Column(Integer, ForeignKey("user.id"), nullable=False, index=True)
    role = Column(String(16), nullable=False)
    ip = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
