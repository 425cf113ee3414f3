"""Pydantic schemas for admin endpoints."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class AdminUserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    user_role: str
    account_status: str
    member_type: str | None = None
    organization: str | None = None
    committee_role: str | None = None
    created_at: datetime


class SecurityEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    category: str
    action: str
    status: str | None = None
    user_id: int | None = None
    user_email: str | None = None
    target_user_id: int | None = None
    details: str | None = None
    ref_id: str | None = None
    ip_address: str | None = None
    severity: str
    created_at: datetime


class SecurityEventListResponse(BaseModel):
    items: list[SecurityEventResponse]
    total: int
