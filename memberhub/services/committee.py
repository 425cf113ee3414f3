"""Committee roster, snapshot history and term settings."""

import logging
from collections.abc import Iterable
from datetime import datetime

from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from memberhub.config import get_settings
from memberhub.errors import NotFoundError, ValidationError
from memberhub.models.committee import CommitteeSettings, CommitteeSnapshot
from memberhub.models.user import User
from memberhub.services.sanitize import clean_image_path, strip_markup

logger = logging.getLogger("memberhub.committee")

LEADERSHIP_ORDER = [
    "President",
    "Vice President",
    "Secretary",
    "Assistant Secretary",
    "Treasurer",
    "Assistant Treasurer",
    "Club Manager",
]
MEMBER_ROLE = "Committee Member"
ALLOWED_ROLES = [*LEADERSHIP_ORDER, MEMBER_ROLE]
MIN_TERM_YEARS = 1
MAX_TERM_YEARS = 10
SETTINGS_ROW_ID = 1


def sanitize_member(member: dict, include_email: bool = True) -> dict:
    cleaned = {
        "id": member.get("id"),
        "name": strip_markup(member.get("name")),
        "organization": strip_markup(member.get("organization")),
        "profile_image_path": clean_image_path(member.get("profile_image_path")),
    }
    if "role" in member:
        cleaned["role"] = strip_markup(member["role"])
    if include_email:
        cleaned["email"] = strip_markup(member.get("email"))
    return cleaned


def build_roster(users: Iterable[User], include_email: bool = True) -> dict:
    """Partition users holding a committee role into ordered leadership slots and plain members."""
    rows = [
        sanitize_member(
            {
                "id": u.id,
                "name": u.name,
                "role": u.committee_role,
                "email": u.email,
                "organization": u.organization,
                "profile_image_path": u.profile_image_path,
            },
            include_email=include_email,
        )
        for u in users
        if u.committee_role
    ]

    leaders = sorted(
        (r for r in rows if r["role"] in LEADERSHIP_ORDER),
        key=lambda r: (LEADERSHIP_ORDER.index(r["role"]), r["id"] or 0),
    )
    leadership = [{"role": r["role"], "member": {k: v for k, v in r.items() if k != "role"}} for r in leaders]
    member = [{k: v for k, v in r.items() if k != "role"} for r in rows if r["role"] == MEMBER_ROLE]
    return {"leadership": leadership, "member": member}


def add_term(start: datetime, term_years: int) -> datetime:
    return start + relativedelta(years=term_years)


class CommitteeService:
    """Reads the live roster and maintains the immutable snapshot history."""

    # --- settings ---

    def get_settings(self, db: Session) -> CommitteeSettings:
        settings = db.get(CommitteeSettings, SETTINGS_ROW_ID)
        if settings is None:
            settings = CommitteeSettings(id=SETTINGS_ROW_ID, term_years=get_settings().DEFAULT_TERM_YEARS)
            db.add(settings)
            db.commit()
            db.refresh(settings)
        return settings

    def set_term_years(self, db: Session, term_years: int) -> CommitteeSettings:
        if not MIN_TERM_YEARS <= term_years <= MAX_TERM_YEARS:
            raise ValidationError(f"Term must be between {MIN_TERM_YEARS} and {MAX_TERM_YEARS} years")
        settings = self.get_settings(db)
        settings.term_years = term_years
        db.commit()
        db.refresh(settings)
        return settings

    # --- roster ---

    def committee_users(self, db: Session) -> list[User]:
        return (
            db.query(User)
            .filter(User.committee_role.isnot(None), User.account_status != "deleted")
            .order_by(User.id)
            .all()
        )

    def current_committees(self, db: Session) -> dict:
        """Live roster for public display (no email addresses)."""
        return build_roster(self.committee_users(db), include_email=False)

    def search_members(self, db: Session, query: str, limit: int = 10) -> list[dict]:
        pattern = f"%{query.strip().lower()}%"
        users = (
            db.query(User)
            .filter(User.account_status != "deleted")
            .filter(User.name.ilike(pattern) | User.email.ilike(pattern))
            .order_by(User.name)
            .limit(limit)
            .all()
        )
        return [
            sanitize_member(
                {"id": u.id, "name": u.name, "role": u.committee_role, "email": u.email, "organization": u.organization}
            )
            for u in users
        ]

    def assign_role(self, db: Session, member_id: int, role: str) -> User:
        if role not in ALLOWED_ROLES:
            raise ValidationError("invalid role")
        user = db.get(User, member_id)
        if not user or user.account_status == "deleted":
            raise NotFoundError("Member not found")
        user.committee_role = role
        db.commit()
        return user

    def remove_role(self, db: Session, member_id: int) -> User:
        user = db.get(User, member_id)
        if not user:
            raise NotFoundError("Member not found")
        user.committee_role = None
        db.commit()
        return user

    # --- snapshots ---

    def latest_snapshot(self, db: Session) -> CommitteeSnapshot | None:
        return db.query(CommitteeSnapshot).order_by(CommitteeSnapshot.period_end.desc()).first()

    def snapshot_count(self, db: Session) -> int:
        return db.query(CommitteeSnapshot).count()

    def take_snapshot(self, db: Session, now: datetime | None = None) -> CommitteeSnapshot:
        """Persist the current roster as a new snapshot. Every call creates a row."""
        now = now or datetime.utcnow()
        term_years = self.get_settings(db).term_years
        previous = self.latest_snapshot(db)
        period_start = previous.period_end if previous else now
        snapshot = CommitteeSnapshot(
            data=build_roster(self.committee_users(db)),
            period_start=period_start,
            period_end=add_term(period_start, term_years),
            taken_at=now,
        )
        db.add(snapshot)
        db.commit()
        db.refresh(snapshot)
        logger.info(
            "Committee snapshot %s taken for %s - %s",
            snapshot.id,
            snapshot.period_start.isoformat(),
            snapshot.period_end.isoformat(),
        )
        return snapshot

    def snapshot_if_due(self, db: Session, now: datetime | None = None) -> CommitteeSnapshot | None:
        """Take a snapshot only when none exists or the current period is over."""
        now = now or datetime.utcnow()
        latest = self.latest_snapshot(db)
        if latest is not None and latest.period_end > now:
            logger.info("Snapshot not due until %s, skipping", latest.period_end.isoformat())
            return None
        return self.take_snapshot(db, now=now)

    def list_snapshots(self, db: Session) -> list[CommitteeSnapshot]:
        return db.query(CommitteeSnapshot).order_by(CommitteeSnapshot.taken_at.desc(), CommitteeSnapshot.id.desc()).all()

    def get_snapshot(self, db: Session, snapshot_id: int) -> dict:
        """Snapshot roster, sanitized again on the way out."""
        snapshot = db.get(CommitteeSnapshot, snapshot_id)
        if not snapshot:
            raise NotFoundError("Snapshot not found")
        data = snapshot.data or {}
        return {
            "id": snapshot.id,
            "period_start": snapshot.period_start,
            "period_end": snapshot.period_end,
            "taken_at": snapshot.taken_at,
            "leadership": [
                {"role": strip_markup(slot.get("role")), "member": sanitize_member(slot.get("member") or {})}
                for slot in data.get("leadership", [])
            ],
            "member": [sanitize_member(m) for m in data.get("member", [])],
        }


_committee_service: CommitteeService | None = None


def get_committee_service() -> CommitteeService:
    """Get singleton committee service instance."""
    global _committee_service
    if _committee_service is None:
        _committee_service = CommitteeService()
    return _committee_service
