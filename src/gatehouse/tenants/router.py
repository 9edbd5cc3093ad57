"""Tenant API routers.

``/tenant`` is the caller's own tenant; ``/tenants`` is the operator surface
guarded by the super-admin key.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Query

from gatehouse.common.security import (
    RequestContext,
    get_request_context,
    require_admin,
    require_super_admin,
)
from gatehouse.tenants.schemas import (
    TenantListResponse,
    TenantResponse,
    TenantStatsResponse,
    TenantUpdate,
)

router = APIRouter(prefix="/tenants", tags=["tenants"])
current_router = APIRouter(prefix="/tenant", tags=["tenant"])


def _get_service():
    from gatehouse.deps import get_tenant_directory
    return get_tenant_directory()


def _get_guard():
    from gatehouse.deps import get_guard
    return get_guard()


def _get_db():
    from gatehouse.deps import get_db
    return get_db()


# ── Current tenant ──


@current_router.get("", response_model=TenantResponse)
async def get_current_tenant(ctx: RequestContext = Depends(get_request_context)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        return TenantResponse.model_validate(await svc.find_by_id(session, ctx.tenant_id))


@current_router.patch("", response_model=TenantResponse)
async def update_current_tenant(body: TenantUpdate, ctx: RequestContext = Depends(require_admin)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        tenant = await svc.update(session, ctx.tenant_id, **body.model_dump(exclude_unset=True))
        return TenantResponse.model_validate(tenant)


@current_router.get("/stats", response_model=TenantStatsResponse)
async def current_tenant_stats(ctx: RequestContext = Depends(get_request_context)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        return TenantStatsResponse(**await svc.stats(session, ctx.tenant_id))


# ── Operator surface ──


@router.get("/resolve", response_model=TenantResponse)
async def resolve_tenant(
    x_tenant_id: Optional[str] = Header(None, alias="X-Tenant-ID"),
    host: Optional[str] = Header(None),
):
    """Public lookup of the tenant a request addresses (header or host)."""
    guard = _get_guard()
    db = _get_db()
    async with db.get_session() as session:
        tenant = await guard.resolve_tenant(session, header_tenant_id=x_tenant_id, host=host)
        return TenantResponse.model_validate(tenant)


@router.get("", response_model=TenantListResponse)
async def list_tenants(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    _=Depends(require_super_admin),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        tenants = await svc.list_tenants(session, limit=limit, offset=offset)
        return TenantListResponse(
            items=[TenantResponse.model_validate(t) for t in tenants],
            total=await svc.count(session),
            limit=limit,
            offset=offset,
        )


@router.get("/{tenant_id}", response_model=TenantResponse)
async def get_tenant(tenant_id: str, _=Depends(require_super_admin)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        return TenantResponse.model_validate(await svc.find_by_id(session, tenant_id))


@router.delete("/{tenant_id}", status_code=204)
async def delete_tenant(tenant_id: str, _=Depends(require_super_admin)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        await svc.delete(session, tenant_id)
