"""Pydantic schemas for authentication endpoints."""

import re

from pydantic import BaseModel, Field, field_validator

from memberhub.models.user import MEMBER_TYPES

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
NAME_RE = re.compile(r"^[a-zA-Z\s.'-]+$")
TEMP_EMAIL_DOMAINS = {
    "mailinator.com",
    "10minutemail.com",
    "guerrillamail.com",
    "tempmail.com",
    "fakeinbox.com",
    "dispostable.com",
    "maildrop.cc",
    "yopmail.com",
}
MIN_PASSWORD_LENGTH = 6


def check_email(value: str) -> str:
    value = value.strip().lower()
    if not EMAIL_RE.match(value):
        raise ValueError("Valid email is required")
    if value.split("@", 1)[1] in TEMP_EMAIL_DOMAINS:
        raise ValueError("Temporary email addresses are not allowed.")
    return value


class SignupRequest(BaseModel):
    name: str = Field(max_length=50)
    email: str
    password: str = Field(min_length=MIN_PASSWORD_LENGTH, max_length=128)
    contact: str | None = Field(default=None, max_length=64)
    address: str | None = Field(default=None, max_length=512)
    member_type: str | None = Field(default=None, alias="memberType")
    organization: str | None = Field(default=None, max_length=256)
    recaptcha_token: str | None = Field(default=None, alias="recaptchaToken")

    model_config = {"populate_by_name": True}

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        if not NAME_RE.match(v):
            raise ValueError("Invalid characters in name")
        return v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return check_email(v)

    @field_validator("member_type")
    @classmethod
    def validate_member_type(cls, v: str | None) -> str | None:
        if v is not None and v not in MEMBER_TYPES:
            raise ValueError("Invalid member type")
        return v


class LoginRequest(BaseModel):
    email: str
    password: str = Field(min_length=1)
    recaptcha_token: str | None = Field(default=None, alias="recaptchaToken")

    model_config = {"populate_by_name": True}

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return check_email(v)


class VerifyOtpRequest(BaseModel):
    email: str
    otp: str = Field(pattern=r"^\d{6}$")

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return check_email(v)


class ResetRequest(BaseModel):
    email: str
    recaptcha_token: str | None = Field(default=None, alias="recaptchaToken")

    model_config = {"populate_by_name": True}

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return check_email(v)


class ValidateResetTokenRequest(BaseModel):
    token: str


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1)
    password: str = Field(min_length=MIN_PASSWORD_LENGTH, max_length=128)


class DeleteAccountRequest(BaseModel):
    password: str = Field(min_length=1)


class MessageResponse(BaseModel):
    message: str


class UserProfile(BaseModel):
    id: int
    name: str
    email: str
    user_role: str
    account_status: str


class LoginResponse(BaseModel):
    message: str
    user: UserProfile


class RefreshResponse(BaseModel):
    message: str
    expires_at: str


class CsrfTokenResponse(BaseModel):
    csrfToken: str
