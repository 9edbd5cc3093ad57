"""Pydantic schemas for authentication endpoints."""

from pydantic import BaseModel, Field

from gatehouse.tenants.schemas import TenantResponse
from gatehouse.users.schemas import UserResponse


class RegisterRequest(BaseModel):
    tenant_name: str = Field(..., min_length=1, max_length=255)
    tenant_slug: str = Field(..., min_length=1, max_length=63)
    email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1)
    name: str = Field("", max_length=255)


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    tenant_slug: str = Field(..., min_length=1)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class ForgotPasswordRequest(BaseModel):
    email: str = Field(..., min_length=1)
    tenant_slug: str = Field(..., min_length=1)


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1)
    new_password: str


class AuthResponse(BaseModel):
    """Token pair plus the caller's user and tenant."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserResponse
    tenant: TenantResponse


class ResetTokenStatus(BaseModel):
    valid: bool = True
