"""Pydantic schemas for user and profile endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from gatehouse.users.roles import Role


class UserResponse(BaseModel):
    id: str
    tenant_id: str
    email: str
    name: str
    role: str
    is_active: bool
    last_login_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class UserCreate(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str
    name: str = Field("", max_length=255)
    role: Role = Role.AGENT
    is_active: bool = True


class UserUpdate(BaseModel):
    email: Optional[str] = Field(None, max_length=255)
    name: Optional[str] = Field(None, max_length=255)
    role: Optional[Role] = None
    is_active: Optional[bool] = None


class UserListResponse(BaseModel):
    items: list[UserResponse]
    total: int
    limit: int
    offset: int


class UserStatsResponse(BaseModel):
    total: int
    active: int
    inactive: int
    by_role: dict[str, int]
    limit: int
    remaining: int


class AdminPasswordReset(BaseModel):
    new_password: str


class ProfileUpdate(BaseModel):
    """Self-service profile edits; role and status are not self-editable."""

    name: Optional[str] = Field(None, max_length=255)
    email: Optional[str] = Field(None, max_length=255)


class PasswordChange(BaseModel):
    current_password: str
    new_password: str
