"""Pydantic schemas for tenant endpoints."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class TenantResponse(BaseModel):
    id: str
    name: str
    slug: str
    domain: Optional[str] = None
    settings: dict[str, Any] = {}
    subscription_status: str
    subscription_ends_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class TenantUpdate(BaseModel):
    """Fields a tenant administrator may change. The slug is immutable."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    domain: Optional[str] = Field(None, max_length=255)
    settings: Optional[dict[str, Any]] = None


class TenantStatsResponse(BaseModel):
    user_count: int
    subscription_status: str
    created_at: datetime
    subscription_ends_at: Optional[datetime] = None
    days_remaining: Optional[int] = None


class TenantListResponse(BaseModel):
    items: list[TenantResponse]
    total: int
    limit: int
    offset: int
