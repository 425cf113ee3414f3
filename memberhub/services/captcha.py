"""reCAPTCHA verification gate for signup, login and reset requests."""

import logging

import httpx

from memberhub.config import get_settings

logger = logging.getLogger("memberhub.captcha")

VERIFY_URL = "https://www.google.com/recaptcha/api/siteverify"


class CaptchaUnavailable(Exception):
    """The verification endpoint could not be reached."""


class CaptchaVerifier:
    """Checks client CAPTCHA tokens against the provider. Disabled when no secret is configured."""

    def __init__(self, secret: str | None = None, transport: httpx.BaseTransport | None = None) -> None:
        self.secret = get_settings().RECAPTCHA_SECRET_KEY if secret is None else secret
        self.transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.secret)

    def verify(self, token: str | None, remote_ip: str | None = None) -> bool:
        if not self.enabled:
            return True
        if not token:
            return False
        data = {"secret": self.secret, "response": token}
        if remote_ip:
            data["remoteip"] = remote_ip
        try:
            with httpx.Client(timeout=10.0, transport=self.transport) as client:
                response = client.post(VERIFY_URL, data=data)
                response.raise_for_status()
                result = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise CaptchaUnavailable(str(e)) from e
        if not result.get("success"):
            logger.info("CAPTCHA rejected: %s", result.get("error-codes"))
            return False
        return True


_captcha_verifier: CaptchaVerifier | None = None


def get_captcha_verifier() -> CaptchaVerifier:
    """Get singleton CAPTCHA verifier instance."""
    global _captcha_verifier
    if _captcha_verifier is None:
        _captcha_verifier = CaptchaVerifier()
    return _captcha_verifier
