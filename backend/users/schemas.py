# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""Pydantic request / response models for the user-administration endpoints."""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from core.config import settings
from auth.schemas import UserResponse

Role = Literal["admin", "client"]
Status = Literal["active", "inactive"]


# -- Requests --------------------------------------------------------------


class _OptionalContact(BaseModel):
    # the web client sends camelCase externalId; snake_case is accepted too
    model_config = {"populate_by_name": True}

    @field_validator("celular", "external_id", mode="before", check_fields=False)
    @classmethod
    def _blank_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class CreateUserRequest(_OptionalContact):
    email: EmailStr
    password: str = Field(min_length=settings.password_min_length)
    name: str = Field(min_length=1, max_length=255)
    celular: Optional[str] = None
    external_id: Optional[str] = Field(default=None, alias="externalId")
    role: Role = "client"
    status: Status = "active"
    avatar: Optional[str] = None


class UpdateUserRequest(_OptionalContact):
    """Every field optional; only the ones sent are applied."""

    email: Optional[EmailStr] = None
    password: Optional[str] = Field(default=None, min_length=settings.password_min_length)
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    celular: Optional[str] = None
    external_id: Optional[str] = Field(default=None, alias="externalId")
    role: Optional[Role] = None
    status: Optional[Status] = None
    avatar: Optional[str] = None


# -- Responses -------------------------------------------------------------


class UserListResponse(BaseModel):
    users: List[UserResponse]
    total: int
    page: int
    page_size: int


# -- Audit log responses ---------------------------------------------------


class AuditLogRow(BaseModel):
    id: int
    actor_email: Optional[str] = None       # resolved from actor_id
    target_email: Optional[str] = None      # resolved from target_user_id
    action: str
    detail: Optional[str] = None
    request_ip: Optional[str] = None
    created_at: datetime


class AuditLogListResponse(BaseModel):
    logs: List[AuditLogRow]
