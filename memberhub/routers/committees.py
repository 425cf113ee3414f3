"""Committee roster and snapshot endpoints (public reads and admin management)."""

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from memberhub.database import get_db
from memberhub.dependencies import CurrentUser, get_request_context, require_admin, require_csrf
from memberhub.rate_limit import SNAPSHOT_READ_LIMIT, limiter
from memberhub.schemas.committee import (
    AssignRoleRequest,
    CommitteeRoster,
    CommitteeSettingsRequest,
    CommitteeSettingsResponse,
    MemberSearchResult,
    RemoveRoleRequest,
    SnapshotDetail,
    SnapshotSummary,
)
from memberhub.services.committee import get_committee_service
from memberhub.services.scheduler import get_snapshot_scheduler
from memberhub.services.security_log import get_security_logger

router = APIRouter(prefix="/api/committees", tags=["Committees"])
admin_router = APIRouter(
    prefix="/api/admin/committees",
    tags=["Committee Admin"],
    dependencies=[Depends(require_admin)],
)


def _log_admin(db: Session, request: Request, user: CurrentUser, action: str, details: str, target: int | None = None) -> None:
    ctx = get_request_context(request)
    get_security_logger().log_event(
        db,
        category="admin",
        action=action,
        status="success",
        user_id=user.user_id,
        target_user_id=target,
        details=details,
        ip=ctx.ip,
        user_agent=ctx.user_agent,
    )


# --- public ---


@router.get("", response_model=CommitteeRoster)
def get_committees(db: Session = Depends(get_db)) -> dict:
    """Current committee, leadership in canonical order."""
    return get_committee_service().current_committees(db)


@router.get("/snapshots", response_model=list[SnapshotSummary])
@limiter.limit(SNAPSHOT_READ_LIMIT)
def list_snapshots(request: Request, db: Session = Depends(get_db)) -> list[SnapshotSummary]:
    """Snapshot history, newest first."""
    return [SnapshotSummary.model_validate(s) for s in get_committee_service().list_snapshots(db)]


@router.get("/snapshots/{snapshot_id}", response_model=SnapshotDetail)
@limiter.limit(SNAPSHOT_READ_LIMIT)
def get_snapshot(request: Request, snapshot_id: int, db: Session = Depends(get_db)) -> dict:
    """Roster as it was captured in one snapshot."""
    return get_committee_service().get_snapshot(db, snapshot_id)


# --- admin ---


@admin_router.post("/snapshots", status_code=201, response_model=SnapshotSummary)
def create_snapshot(
    request: Request,
    user: CurrentUser = Depends(require_csrf),
    db: Session = Depends(get_db),
) -> SnapshotSummary:
    """Take an out-of-cycle snapshot now."""
    snapshot = get_snapshot_scheduler().take_manual_snapshot(db)
    _log_admin(db, request, user, "manual_snapshot", f"Snapshot {snapshot.id} taken")
    return SnapshotSummary.model_validate(snapshot)


@admin_router.get("/settings", response_model=CommitteeSettingsResponse)
def get_settings(db: Session = Depends(get_db)) -> CommitteeSettingsResponse:
    settings = get_committee_service().get_settings(db)
    return CommitteeSettingsResponse(term_years=settings.term_years, next_snapshot_at=get_snapshot_scheduler().next_run)


@admin_router.post("/settings", response_model=CommitteeSettingsResponse)
def update_settings(
    request: Request,
    body: CommitteeSettingsRequest,
    user: CurrentUser = Depends(require_csrf),
    db: Session = Depends(get_db),
) -> CommitteeSettingsResponse:
    """Change the term length. May take a snapshot now and always re-arms the schedule."""
    next_run = get_snapshot_scheduler().update_term(db, body.term_years)
    _log_admin(db, request, user, "update_committee_settings", f"term_years={body.term_years}")
    return CommitteeSettingsResponse(term_years=body.term_years, next_snapshot_at=next_run)


@admin_router.get("/members", response_model=list[MemberSearchResult])
def search_members(search: str, db: Session = Depends(get_db)) -> list[dict]:
    """Member lookup for the "add to role" form."""
    return get_committee_service().search_members(db, search)


@admin_router.post("/leadership", status_code=204)
def assign_role(
    request: Request,
    body: AssignRoleRequest,
    user: CurrentUser = Depends(require_csrf),
    db: Session = Depends(get_db),
) -> Response:
    get_committee_service().assign_role(db, body.member_id, body.role)
    _log_admin(db, request, user, "update_leadership", f"set {body.member_id} -> {body.role}", body.member_id)
    return Response(status_code=204)


@admin_router.delete("/leadership", status_code=204)
def remove_role(
    request: Request,
    body: RemoveRoleRequest,
    user: CurrentUser = Depends(require_csrf),
    db: Session = Depends(get_db),
) -> Response:
    get_committee_service().remove_role(db, body.member_id)
    _log_admin(db, request, user, "delete_leadership", f"removed {body.member_id}", body.member_id)
    return Response(status_code=204)
