"""Double-submit CSRF tokens bound to the session token.

The token is ``<nonce>.<hmac(secret, session_token + nonce)>``. It is sent back
both as the ``csrf_token`` cookie and the ``X-CSRF-Token`` header; the two must
match and the signature must verify for the caller's current session.
"""

import hashlib
import hmac
import secrets

from memberhub.config import get_settings

CSRF_COOKIE_NAME = "csrf_token"
CSRF_HEADER_NAME = "X-CSRF-Token"


class CsrfProtector:
    """Issues and validates session-bound CSRF tokens."""

    def __init__(self, secret: str | None = None) -> None:
        self.secret = (secret or get_settings().CSRF_SECRET).encode("utf-8")

    def _sign(self, session_token: str, nonce: str) -> str:
        return hmac.new(self.secret, f"{session_token}:{nonce}".encode(), hashlib.sha256).hexdigest()

    def generate(self, session_token: str) -> str:
        nonce = secrets.token_urlsafe(16)
        return f"{nonce}.{self._sign(session_token, nonce)}"

    def validate(self, session_token: str | None, cookie_value: str | None, header_value: str | None) -> bool:
        if not session_token or not cookie_value or not header_value:
            return False
        if not hmac.compare_digest(cookie_value, header_value):
            return False
        nonce, _, signature = header_value.partition(".")
        if not nonce or not signature:
            return False
        return hmac.compare_digest(signature, self._sign(session_token, nonce))


_csrf_protector: CsrfProtector | None = None


def get_csrf_protector() -> CsrfProtector:
    """Get singleton CSRF protector instance."""
    global _csrf_protector
    if _csrf_protector is None:
        _csrf_protector = CsrfProtector()
    return _csrf_protector
