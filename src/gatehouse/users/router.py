"""User management and self-service profile routers."""

from fastapi import APIRouter, Depends, Query

from gatehouse.common.schemas import MessageResponse
from gatehouse.common.security import RequestContext, get_request_context, require_admin
from gatehouse.users.schemas import (
    AdminPasswordReset,
    PasswordChange,
    ProfileUpdate,
    UserCreate,
    UserListResponse,
    UserResponse,
    UserStatsResponse,
    UserUpdate,
)

router = APIRouter(prefix="/users", tags=["users"])
profile_router = APIRouter(prefix="/profile", tags=["profile"])


def _get_service():
    from gatehouse.deps import get_user_directory
    return get_user_directory()


def _get_db():
    from gatehouse.deps import get_db
    return get_db()


# ── Tenant administration (owner / admin) ──


@router.get("", response_model=UserListResponse)
async def list_users(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    ctx: RequestContext = Depends(require_admin),
):
    svc = _get_service()
    db = _get_db()
    async with db.tenant_session(ctx.tenant_id) as scope:
        users = await svc.list_users(scope, limit=limit, offset=offset)
        total = await svc.count(scope)
        return UserListResponse(
            items=[UserResponse.model_validate(u) for u in users],
            total=total,
            limit=limit,
            offset=offset,
        )


@router.get("/stats", response_model=UserStatsResponse)
async def user_stats(ctx: RequestContext = Depends(require_admin)):
    svc = _get_service()
    db = _get_db()
    async with db.tenant_session(ctx.tenant_id) as scope:
        return UserStatsResponse(**await svc.stats(scope))


@router.post("", response_model=UserResponse, status_code=201)
async def create_user(body: UserCreate, ctx: RequestContext = Depends(require_admin)):
    svc = _get_service()
    db = _get_db()
    async with db.tenant_session(ctx.tenant_id) as scope:
        user = await svc.create(
            scope,
            email=body.email,
            password=body.password,
            name=body.name,
            role=body.role,
            is_active=body.is_active,
        )
        return UserResponse.model_validate(user)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: str, ctx: RequestContext = Depends(require_admin)):
    svc = _get_service()
    db = _get_db()
    async with db.tenant_session(ctx.tenant_id) as scope:
        return UserResponse.model_validate(await svc.get(scope, user_id))


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str, body: UserUpdate, ctx: RequestContext = Depends(require_admin),
):
    svc = _get_service()
    db = _get_db()
    async with db.tenant_session(ctx.tenant_id) as scope:
        user = await svc.update(scope, user_id, **body.model_dump(exclude_none=True))
        return UserResponse.model_validate(user)


@router.delete("/{user_id}", status_code=204)
async def delete_user(user_id: str, ctx: RequestContext = Depends(require_admin)):
    svc = _get_service()
    db = _get_db()
    async with db.tenant_session(ctx.tenant_id) as scope:
        await svc.delete(scope, user_id, acting_user_id=ctx.user_id)


@router.post("/{user_id}/reset-password", response_model=MessageResponse)
async def admin_reset_password(
    user_id: str, body: AdminPasswordReset, ctx: RequestContext = Depends(require_admin),
):
    svc = _get_service()
    db = _get_db()
    async with db.tenant_session(ctx.tenant_id) as scope:
        await svc.reset_password(scope, user_id, body.new_password)
    return MessageResponse(message="Password reset successfully")


# ── Profile (any authenticated user) ──


@profile_router.get("", response_model=UserResponse)
async def get_profile(ctx: RequestContext = Depends(get_request_context)):
    svc = _get_service()
    db = _get_db()
    async with db.tenant_session(ctx.tenant_id) as scope:
        return UserResponse.model_validate(await svc.get(scope, ctx.user_id))


@profile_router.patch("", response_model=UserResponse)
async def update_profile(body: ProfileUpdate, ctx: RequestContext = Depends(get_request_context)):
    svc = _get_service()
    db = _get_db()
    async with db.tenant_session(ctx.tenant_id) as scope:
        user = await svc.update(scope, ctx.user_id, **body.model_dump(exclude_none=True))
        return UserResponse.model_validate(user)


@profile_router.post("/password", response_model=MessageResponse)
async def change_password(body: PasswordChange, ctx: RequestContext = Depends(get_request_context)):
    svc = _get_service()
    db = _get_db()
    async with db.tenant_session(ctx.tenant_id) as scope:
        await svc.change_password(scope, ctx.user_id, body.current_password, body.new_password)
    return MessageResponse(message="Password changed successfully")
