"""Authentication dependencies for FastAPI routes."""

from dataclasses import dataclass
from datetime import datetime

from fastapi import Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from memberhub.config import get_settings
from memberhub.database import get_db
from memberhub.services.auth import RequestContext
from memberhub.services.captcha import CaptchaUnavailable, get_captcha_verifier
from memberhub.services.csrf import CSRF_COOKIE_NAME, CSRF_HEADER_NAME, get_csrf_protector
from memberhub.services.security_log import get_security_logger
from memberhub.services.sessions import get_session_registry

AUTH_COOKIE_NAME = "auth_token"
COOKIE_MAX_AGE = 60 * 60  # 1 hour


@dataclass
class CurrentUser:
    """Authenticated user context."""

    user_id: int
    email: str
    name: str
    role: str
    account_status: str
    token: str
    expires_at: datetime

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def get_client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def get_request_context(request: Request) -> RequestContext:
    return RequestContext(ip=get_client_ip(request), user_agent=request.headers.get("user-agent"))


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
) -> CurrentUser:
    """Resolve the session cookie to a live session. Raises 401 if missing, unknown or expired."""
    token = request.cookies.get(AUTH_COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated (no token)")

    session = get_session_registry().lookup(db, token)
    if not session:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    return CurrentUser(
        user_id=session.user_id,
        email=session.email,
        name=session.name,
        role=session.role,
        account_status=session.account_status,
        token=session.token,
        expires_at=session.expires_at,
    )


def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access only")
    return user


def require_csrf(
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> CurrentUser:
    """Double-submit check for state-changing routes that run under a session."""
    protector = get_csrf_protector()
    if not protector.validate(user.token, request.cookies.get(CSRF_COOKIE_NAME), request.headers.get(CSRF_HEADER_NAME)):
        ctx = get_request_context(request)
        get_security_logger().log_event(
            db,
            category="csrf",
            action="csrf_rejected",
            user_id=user.user_id,
            details=f"{request.method} {request.url.path}",
            ip=ctx.ip,
            user_agent=ctx.user_agent,
            severity="medium",
        )
        raise HTTPException(status_code=403, detail="Invalid CSRF token")
    return user


async def verify_captcha(request: Request) -> None:
    """Reject the request before it reaches the auth service if the CAPTCHA token is bad."""
    verifier = get_captcha_verifier()
    if not verifier.enabled:
        return
    token = None
    try:
        body = await request.json()
        if isinstance(body, dict):
            token = body.get("recaptchaToken")
    except ValueError:
        pass
    if not token:
        raise HTTPException(status_code=400, detail="CAPTCHA token missing.")
    try:
        ok = await run_in_threadpool(verifier.verify, token, get_client_ip(request))
    except CaptchaUnavailable as e:
        raise HTTPException(status_code=502, detail="CAPTCHA verification unavailable.") from e
    if not ok:
        raise HTTPException(status_code=400, detail="CAPTCHA verification failed.")


def set_auth_cookie(response: Response, token: str) -> None:
    """Set the session cookie."""
    response.set_cookie(
        key=AUTH_COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="lax",
        secure=get_settings().COOKIE_SECURE,
        max_age=COOKIE_MAX_AGE,
        path="/",
    )


def clear_auth_cookie(response: Response) -> None:
    """Clear the session cookie."""
    response.delete_cookie(key=AUTH_COOKIE_NAME, path="/")


def set_csrf_cookie(response: Response, csrf_token: str) -> None:
    # Readable by the frontend so it can echo it in the header
    response.set_cookie(
        key=CSRF_COOKIE_NAME,
        value=csrf_token,
        httponly=False,
        samesite="lax",
        secure=get_settings().COOKIE_SECURE,
        path="/",
    )
