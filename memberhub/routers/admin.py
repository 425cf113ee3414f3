"""Admin back office: user moderation and the security audit log."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from memberhub.database import get_db
from memberhub.dependencies import CurrentUser, get_request_context, require_admin, require_csrf
from memberhub.schemas.admin import AdminUserResponse, SecurityEventListResponse, SecurityEventResponse
from memberhub.services.security_log import get_security_logger
from memberhub.services.users import get_user_service

router = APIRouter(prefix="/api/admin", tags=["Admin"], dependencies=[Depends(require_admin)])


def _audit(db: Session, request: Request, admin: CurrentUser, action: str, target_id: int) -> None:
    ctx = get_request_context(request)
    get_security_logger().log_event(
        db,
        category="admin",
        action=action,
        status="success",
        user_id=admin.user_id,
        target_user_id=target_id,
        details=f"{action} user {target_id}",
        ip=ctx.ip,
        user_agent=ctx.user_agent,
        severity="medium",
    )


@router.get("/users", response_model=list[AdminUserResponse])
def list_users(status: str | None = None, db: Session = Depends(get_db)) -> list[AdminUserResponse]:
    return [AdminUserResponse.model_validate(u) for u in get_user_service().list_users(db, status)]


@router.post("/users/{user_id}/approve", response_model=AdminUserResponse)
def approve_user(
    request: Request,
    user_id: int,
    admin: CurrentUser = Depends(require_csrf),
    db: Session = Depends(get_db),
) -> AdminUserResponse:
    """Accept a member's verification documents."""
    user = get_user_service().approve(db, user_id)
    _audit(db, request, admin, "approve_user", user_id)
    return AdminUserResponse.model_validate(user)


@router.post("/users/{user_id}/lock", response_model=AdminUserResponse)
def lock_user(
    request: Request,
    user_id: int,
    admin: CurrentUser = Depends(require_csrf),
    db: Session = Depends(get_db),
) -> AdminUserResponse:
    user = get_user_service().lock(db, user_id, acting_user_id=admin.user_id)
    _audit(db, request, admin, "lock_user", user_id)
    return AdminUserResponse.model_validate(user)


@router.post("/users/{user_id}/unlock", response_model=AdminUserResponse)
def unlock_user(
    request: Request,
    user_id: int,
    admin: CurrentUser = Depends(require_csrf),
    db: Session = Depends(get_db),
) -> AdminUserResponse:
    user = get_user_service().unlock(db, user_id)
    _audit(db, request, admin, "unlock_user", user_id)
    return AdminUserResponse.model_validate(user)


@router.delete("/users/{user_id}")
def delete_user(
    request: Request,
    user_id: int,
    admin: CurrentUser = Depends(require_csrf),
    db: Session = Depends(get_db),
) -> dict:
    get_user_service().soft_delete(db, user_id, acting_user_id=admin.user_id)
    _audit(db, request, admin, "soft_delete_user", user_id)
    return {"detail": "User deleted"}


@router.get("/logs", response_model=SecurityEventListResponse)
def list_logs(
    category: str | None = None,
    search: str | None = None,
    limit: int = 100,
    offset: int = 0,
    db: Session = Depends(get_db),
) -> SecurityEventListResponse:
    """Security audit events, newest first."""
    limit = max(1, min(limit, 500))
    items, total = get_security_logger().list_events(db, category=category, search=search, limit=limit, offset=max(0, offset))
    return SecurityEventListResponse(items=[SecurityEventResponse.model_validate(e) for e in items], total=total)
