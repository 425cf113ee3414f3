"""Pydantic schemas for committee endpoints."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from memberhub.services.committee import ALLOWED_ROLES, MAX_TERM_YEARS, MIN_TERM_YEARS


class CommitteeMember(BaseModel):
    id: int | None = None
    name: str
    email: str | None = None
    organization: str | None = None
    profile_image_path: str | None = None


class LeadershipSlot(BaseModel):
    role: str
    member: CommitteeMember


class CommitteeRoster(BaseModel):
    leadership: list[LeadershipSlot]
    member: list[CommitteeMember]


class SnapshotSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    period_start: datetime
    period_end: datetime
    taken_at: datetime


class SnapshotDetail(CommitteeRoster):
    id: int
    period_start: datetime
    period_end: datetime
    taken_at: datetime


class MemberSearchResult(BaseModel):
    id: int
    name: str
    email: str | None = None
    role: str | None = None
    organization: str | None = None


class AssignRoleRequest(BaseModel):
    role: str
    member_id: int = Field(alias="memberId", ge=1)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: str) -> str:
        if v not in ALLOWED_ROLES:
            raise ValueError("invalid role")
        return v


class RemoveRoleRequest(BaseModel):
    member_id: int = Field(alias="memberId", ge=1)

    model_config = ConfigDict(populate_by_name=True)


class CommitteeSettingsRequest(BaseModel):
    term_years: int = Field(alias="termYears", ge=MIN_TERM_YEARS, le=MAX_TERM_YEARS)

    model_config = ConfigDict(populate_by_name=True)


class CommitteeSettingsResponse(BaseModel):
    term_years: int
    next_snapshot_at: datetime | None = None
