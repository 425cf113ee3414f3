"""Signed password reset tokens (JWT). Self-contained: nothing is stored server-side."""

from datetime import datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from memberhub.config import get_settings

RESET_PURPOSE = "password_reset"


class JWTService:
    """Creates and validates password reset tokens."""

    def __init__(self) -> None:
        settings = get_settings()
        self.secret_key = settings.RESET_PASSWORD_SECRET
        self.algorithm = settings.JWT_ALGORITHM
        self.expire_minutes = settings.RESET_TOKEN_MINUTES

    def create_reset_token(self, email: str, expires_delta: timedelta | None = None) -> str:
        """Create a reset token for the given email."""
        expire = datetime.utcnow() + (expires_delta or timedelta(minutes=self.expire_minutes))
        payload = {
            "email": email,
            "purpose": RESET_PURPOSE,
            "exp": expire,
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def decode_reset_token(self, token: str) -> dict[str, Any] | None:
        """Decode and validate a reset token. Returns None if invalid, expired or not a reset token."""
        if not token:
            return None
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError:
            return None
        if payload.get("purpose") != RESET_PURPOSE or not payload.get("email"):
            return None
        return payload

    def is_reset_token_valid(self, token: str) -> bool:
        return self.decode_reset_token(token) is not None


_jwt_service: JWTService | None = None


def get_jwt_service() -> JWTService:
    """Get singleton JWT service instance."""
    global _jwt_service
    if _jwt_service is None:
        _jwt_service = JWTService()
    return _jwt_service
