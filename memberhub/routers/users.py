"""Member self-service endpoints."""

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from memberhub.database import get_db
from memberhub.dependencies import CurrentUser, clear_auth_cookie, get_request_context, require_csrf
from memberhub.schemas.auth import DeleteAccountRequest, MessageResponse
from memberhub.services.security_log import get_security_logger
from memberhub.services.users import get_user_service

router = APIRouter(prefix="/api/user", tags=["User"])


@router.delete("/me", response_model=MessageResponse)
def delete_account(
    request: Request,
    response: Response,
    body: DeleteAccountRequest,
    user: CurrentUser = Depends(require_csrf),
    db: Session = Depends(get_db),
) -> MessageResponse:
    """Close the caller's own account. Signing up again with the same email reactivates it."""
    get_user_service().delete_own_account(db, user.user_id, body.password)
    ctx = get_request_context(request)
    get_security_logger().log_event(
        db,
        action="delete_account",
        status="success",
        user_id=user.user_id,
        user_email=user.email,
        details="Self-service account deletion",
        ip=ctx.ip,
        user_agent=ctx.user_agent,
    )
    clear_auth_cookie(response)
    return MessageResponse(message="Account deleted.")
