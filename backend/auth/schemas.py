# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""Pydantic request / response models for the auth and recovery endpoints."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from core.config import settings
from recovery.dispatcher import RecoveryMethods


# -- Requests --------------------------------------------------------------


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=settings.password_min_length)
    name: str = Field(min_length=1, max_length=255)
    celular: Optional[str] = None
    external_id: Optional[str] = Field(default=None, alias="externalId")

    # the web client sends camelCase; snake_case is accepted too
    model_config = {"populate_by_name": True}

    @field_validator("celular", "external_id", mode="before")
    @classmethod
    def _blank_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RecoveryCheckRequest(BaseModel):
    email: EmailStr


class ForgotPasswordRequest(BaseModel):
    email: EmailStr
    method: Literal["email", "whatsapp"] = "email"


class ResetPasswordRequest(BaseModel):
    token: str
    password: str = Field(min_length=settings.password_min_length)


# -- Responses -------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of a user – never includes the password or reset token."""

    id: str
    email: str
    name: str
    celular: Optional[str] = None
    external_id: Optional[str] = None
    role: str
    avatar: Optional[str] = None
    status: str
    last_active: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class AuthResponse(BaseModel):
    user: UserResponse
    access_token: str
    token_type: str = "bearer"


class MeResponse(BaseModel):
    user: UserResponse


class RecoveryCheckResponse(BaseModel):
    methods: RecoveryMethods
    message: Optional[str] = None


class ActionResponse(BaseModel):
    success: bool
    message: Optional[str] = None


class ValidateTokenResponse(BaseModel):
    valid: bool
