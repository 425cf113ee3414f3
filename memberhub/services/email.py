"""Outgoing email: activation links, login codes and password reset links.

Sending is blocking and happens inside the request that triggered it. Without
SMTP credentials the message is logged instead of sent, which is what local
development and the test suite rely on.
"""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from urllib.parse import quote

from jinja2 import Environment, FileSystemLoader, select_autoescape

from memberhub.config import get_settings

logger = logging.getLogger("memberhub.email")

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"


class MailDeliveryError(Exception):
    """Raised when the SMTP server rejects or cannot take a message."""


class Mailer:
    """Renders email templates and delivers them over SMTP."""

    def __init__(self) -> None:
        self.settings = get_settings()
        self.env = Environment(
            loader=FileSystemLoader(str(TEMPLATE_DIR)),
            autoescape=select_autoescape(["html"]),
        )

    def render(self, template: str, **context) -> str:
        return self.env.get_template(f"email/{template}").render(**context)

    def send(self, to_email: str, subject: str, html: str) -> None:
        """Send one HTML message. Raises MailDeliveryError on SMTP failure."""
        settings = self.settings
        if not settings.MAIL_USER or not settings.MAIL_PASS:
            logger.warning("SMTP credentials not set. Email to %s not sent: %s", to_email, subject)
            logger.debug("Email body for %s:\n%s", to_email, html)
            return

        msg = MIMEMultipart()
        msg["From"] = settings.MAIL_FROM
        msg["To"] = to_email
        msg["Subject"] = subject
        msg.attach(MIMEText(html, "html"))

        try:
            with smtplib.SMTP(settings.MAIL_SERVER, settings.MAIL_PORT, timeout=15) as server:
                server.starttls()
                server.login(settings.MAIL_USER, settings.MAIL_PASS)
                server.sendmail(settings.MAIL_FROM, to_email, msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            raise MailDeliveryError(f"Failed to send email to {to_email}: {e}") from e

        logger.info("Email sent to %s: %s", to_email, subject)

    def send_activation_email(self, to_email: str, token: str, name: str = "", kind: str = "activation") -> None:
        reactivation = kind == "reactivation"
        html = self.render(
            "reactivation.html" if reactivation else "activation.html",
            name=name or "Member",
            link=f"{self.settings.FRONTEND_BASE_URL}/activate?token={quote(token)}",
            minutes=self.settings.ACTIVATION_TOKEN_MINUTES,
        )
        subject = "Activate Your Account Again" if reactivation else "Activate Your Account"
        self.send(to_email, subject, html)

    def send_otp_email(self, to_email: str, otp: str, name: str = "") -> None:
        html = self.render("otp.html", name=name or "Member", otp=otp, minutes=self.settings.OTP_TTL_MINUTES)
        self.send(to_email, "Your Login Code", html)

    def send_reset_password_email(self, to_email: str, token: str, name: str = "") -> None:
        html = self.render(
            "reset_password.html",
            name=name or "Member",
            link=f"{self.settings.FRONTEND_BASE_URL}/reset-password?token={quote(token)}",
            minutes=self.settings.RESET_TOKEN_MINUTES,
        )
        self.send(to_email, "Reset Your Password", html)


_mailer: Mailer | None = None


def get_mailer() -> Mailer:
    """Get singleton mailer instance."""
    global _mailer
    if _mailer is None:
        _mailer = Mailer()
    return _mailer
