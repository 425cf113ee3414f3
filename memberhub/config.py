"""Configuration settings for MemberHub."""

import os
import secrets
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./memberhub.db")

    # Password reset tokens (signed JWT)
    RESET_PASSWORD_SECRET: str = os.getenv("RESET_PASSWORD_SECRET", secrets.token_urlsafe(32))
    JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
    RESET_TOKEN_MINUTES: int = int(os.getenv("RESET_TOKEN_MINUTES", "15"))

    # Sessions and one-time codes
    SESSION_TTL_MINUTES: int = int(os.getenv("SESSION_TTL_MINUTES", "60"))
    ACTIVATION_TOKEN_MINUTES: int = int(os.getenv("ACTIVATION_TOKEN_MINUTES", "15"))
    OTP_TTL_MINUTES: int = int(os.getenv("OTP_TTL_MINUTES", "5"))
    OTP_MAX_ATTEMPTS: int = int(os.getenv("OTP_MAX_ATTEMPTS", "5"))
    OTP_ATTEMPT_WINDOW_MINUTES: int = int(os.getenv("OTP_ATTEMPT_WINDOW_MINUTES", "10"))
    LOGIN_LOCK_THRESHOLD: int = int(os.getenv("LOGIN_LOCK_THRESHOLD", "5"))
    LOGIN_LOCK_WINDOW_MINUTES: int = int(os.getenv("LOGIN_LOCK_WINDOW_MINUTES", "10"))
    BCRYPT_ROUNDS: int = max(10, int(os.getenv("BCRYPT_ROUNDS", "12")))

    # Mail
    MAIL_SERVER: str = os.getenv("MAIL_SERVER", "smtp.gmail.com")
    MAIL_PORT: int = int(os.getenv("MAIL_PORT", "587"))
    MAIL_USER: str = os.getenv("MAIL_USER", "")
    MAIL_PASS: str = os.getenv("MAIL_PASS", "")
    MAIL_FROM: str = os.getenv("MAIL_FROM", "MemberHub Admin <no-reply@memberhub.local>")
    FRONTEND_BASE_URL: str = os.getenv("FRONTEND_BASE_URL", "http://localhost:5173")

    # Request protection
    RECAPTCHA_SECRET_KEY: str = os.getenv("RECAPTCHA_SECRET_KEY", "")
    CSRF_SECRET: str = os.getenv("CSRF_SECRET", secrets.token_urlsafe(32))
    CORS_ORIGINS: list[str] = [
        o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",") if o.strip()
    ]

    # Committee snapshots
    DEFAULT_TERM_YEARS: int = int(os.getenv("DEFAULT_TERM_YEARS", "2"))
    SNAPSHOT_SCHEDULER_ENABLED: bool = os.getenv("SNAPSHOT_SCHEDULER_ENABLED", "true").lower() == "true"

    # Application
    APP_ENV: str = os.getenv("APP_ENV", "development")
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
    COOKIE_SECURE: bool = os.getenv("COOKIE_SECURE", "true" if APP_ENV == "production" else "false").lower() == "true"

    def validate(self) -> list[str]:
        """Validate settings and return list of warnings."""
        errors = []
        if not os.getenv("RESET_PASSWORD_SECRET"):
            errors.append("RESET_PASSWORD_SECRET is not set - using auto-generated key (not persistent across restarts)")
        if not os.getenv("CSRF_SECRET"):
            errors.append("CSRF_SECRET is not set - using auto-generated key (not persistent across restarts)")
        if not self.MAIL_USER or not self.MAIL_PASS:
            errors.append("MAIL_USER/MAIL_PASS not set - outgoing email will only be logged")
        if not self.RECAPTCHA_SECRET_KEY:
            errors.append("RECAPTCHA_SECRET_KEY not set - CAPTCHA verification is disabled")
        if self.APP_ENV == "production" and not self.COOKIE_SECURE:
            errors.append("COOKIE_SECURE is off in production")
        return errors


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
