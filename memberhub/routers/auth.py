"""Authentication API endpoints."""

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from memberhub.database import get_db
from memberhub.dependencies import (
    AUTH_COOKIE_NAME,
    CurrentUser,
    clear_auth_cookie,
    get_current_user,
    get_request_context,
    set_auth_cookie,
    set_csrf_cookie,
    verify_captcha,
)
from memberhub.rate_limit import AUTH_LIMIT, LOGIN_LIMIT, limiter
from memberhub.schemas.auth import (
    CsrfTokenResponse,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RefreshResponse,
    ResetPasswordRequest,
    ResetRequest,
    SignupRequest,
    ValidateResetTokenRequest,
    VerifyOtpRequest,
)
from memberhub.services.auth import get_auth_service
from memberhub.services.csrf import get_csrf_protector

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


@router.post("/signup", status_code=201, response_model=MessageResponse, dependencies=[Depends(verify_captcha)])
@limiter.limit(AUTH_LIMIT)
def signup(request: Request, body: SignupRequest, db: Session = Depends(get_db)) -> MessageResponse:
    """Create a pending account, or reactivate a deleted one, and email an activation link."""
    message = get_auth_service().signup(
        db,
        get_request_context(request),
        name=body.name,
        email=body.email,
        password=body.password,
        contact=body.contact,
        address=body.address,
        member_type=body.member_type,
        organization=body.organization,
    )
    return MessageResponse(message=message)


@router.get("/activate", response_model=MessageResponse)
def activate(request: Request, token: str | None = None, db: Session = Depends(get_db)) -> MessageResponse:
    """Redeem an activation link."""
    get_auth_service().activate(db, get_request_context(request), token)
    return MessageResponse(message="Account activated.")


@router.post("/login", dependencies=[Depends(verify_captcha)])
@limiter.limit(LOGIN_LIMIT)
def login(request: Request, body: LoginRequest, db: Session = Depends(get_db)) -> dict:
    """Check email and password, then email a one-time login code."""
    message = get_auth_service().login_request(db, get_request_context(request), body.email, body.password)
    return {"message": message, "success": True}


@router.post("/verify-otp", response_model=LoginResponse)
def verify_otp(request: Request, response: Response, body: VerifyOtpRequest, db: Session = Depends(get_db)) -> dict:
    """Redeem the login code and start a session."""
    result = get_auth_service().login_verify(db, get_request_context(request), body.email, body.otp)
    set_auth_cookie(response, result.token)
    return {"message": "Login successful", "user": result.user}


@router.post("/reset-request", response_model=MessageResponse, dependencies=[Depends(verify_captcha)])
@limiter.limit(AUTH_LIMIT)
def reset_request(request: Request, body: ResetRequest, db: Session = Depends(get_db)) -> MessageResponse:
    """Email a password reset link. Same answer whether or not the account exists."""
    message = get_auth_service().request_reset(db, get_request_context(request), body.email)
    return MessageResponse(message=message)


@router.post("/validate-reset-token")
def validate_reset_token(body: ValidateResetTokenRequest) -> dict:
    """Tell the reset form whether its token is still usable."""
    get_auth_service().validate_reset_token(body.token)
    return {"valid": True}


@router.post("/reset-password")
def reset_password(request: Request, body: ResetPasswordRequest, db: Session = Depends(get_db)) -> dict:
    """Set a new password using a reset token."""
    get_auth_service().reset_password(db, get_request_context(request), body.token, body.password)
    return {"success": True, "message": "Password reset successful."}


@router.get("/me")
def me(user: CurrentUser = Depends(get_current_user)) -> dict:
    """Identity behind the current session cookie."""
    return {
        "user": {
            "id": user.user_id,
            "name": user.name,
            "email": user.email,
            "user_role": user.role,
            "account_status": user.account_status,
        }
    }


@router.post("/refresh", response_model=RefreshResponse)
def refresh(
    request: Request,
    response: Response,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> RefreshResponse:
    """Extend the current session by one hour. The token value does not change."""
    expires_at = get_auth_service().refresh(db, get_request_context(request), user.token)
    set_auth_cookie(response, user.token)
    return RefreshResponse(message="Session refreshed", expires_at=expires_at.isoformat())


@router.post("/logout", response_model=MessageResponse)
def logout(request: Request, response: Response, db: Session = Depends(get_db)) -> MessageResponse:
    """Revoke the session if there is one and clear the cookie. Always succeeds."""
    get_auth_service().logout(db, get_request_context(request), request.cookies.get(AUTH_COOKIE_NAME))
    clear_auth_cookie(response)
    return MessageResponse(message="Logged out successfully.")


@router.get("/csrf-token", response_model=CsrfTokenResponse)
def csrf_token(response: Response, user: CurrentUser = Depends(get_current_user)) -> CsrfTokenResponse:
    """Issue a double-submit CSRF token bound to the current session."""
    token = get_csrf_protector().generate(user.token)
    set_csrf_cookie(response, token)
    return CsrfTokenResponse(csrfToken=token)
