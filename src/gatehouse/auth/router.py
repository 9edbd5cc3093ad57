"""Authentication API router: public endpoints."""

from fastapi import APIRouter, Query

from gatehouse.auth.schemas import (
    AuthResponse,
    ForgotPasswordRequest,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    ResetTokenStatus,
)
from gatehouse.common.schemas import MessageResponse
from gatehouse.notifications.email_delivery import dispatch
from gatehouse.tenants.schemas import TenantResponse
from gatehouse.users.schemas import UserResponse

router = APIRouter(prefix="/auth", tags=["auth"])

# Returned for every forgot-password request so callers cannot probe accounts.
FORGOT_PASSWORD_MESSAGE = "If the email exists in our system, you will receive a password reset link"


def _get_service():
    from gatehouse.deps import get_auth_service
    return get_auth_service()


def _get_reset_flow():
    from gatehouse.deps import get_password_reset_flow
    return get_password_reset_flow()


def _get_db():
    from gatehouse.deps import get_db
    return get_db()


def _auth_response(user, tenant, access_token: str, refresh_token: str) -> AuthResponse:
    return AuthResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        user=UserResponse.model_validate(user),
        tenant=TenantResponse.model_validate(tenant),
    )


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(body: RegisterRequest):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        result = await svc.register(
            session,
            tenant_name=body.tenant_name,
            slug=body.tenant_slug,
            admin_email=body.email,
            admin_password=body.password,
            admin_name=body.name,
        )
    dispatch(result.notification)
    return _auth_response(result.user, result.tenant, result.access_token, result.refresh_token)


@router.post("/login", response_model=AuthResponse)
async def login(body: LoginRequest):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        tenant = await svc.resolve_login_tenant(session, body.tenant_slug)
        result = await svc.login(session, body.email, body.password, tenant.id)
        return _auth_response(result.user, tenant, result.access_token, result.refresh_token)


@router.post("/refresh", response_model=AuthResponse)
async def refresh(body: RefreshRequest):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        result = await svc.refresh(session, body.refresh_token)
        tenant = await svc.tenants.find_by_id(session, result.user.tenant_id)
        return _auth_response(result.user, tenant, result.access_token, result.refresh_token)


@router.post("/logout", response_model=MessageResponse)
async def logout(body: RefreshRequest):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        await svc.logout(session, body.refresh_token)
    return MessageResponse(message="Successfully logged out")


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(body: ForgotPasswordRequest):
    flow = _get_reset_flow()
    db = _get_db()
    async with db.get_session() as session:
        outcome = await flow.request_reset(session, body.email, body.tenant_slug)
    dispatch(outcome.notification)
    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.get("/reset-password/validate", response_model=ResetTokenStatus)
async def validate_reset_token(token: str = Query(..., min_length=1)):
    flow = _get_reset_flow()
    db = _get_db()
    async with db.get_session() as session:
        await flow.validate(session, token)
    return ResetTokenStatus(valid=True)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(body: ResetPasswordRequest):
    flow = _get_reset_flow()
    db = _get_db()
    async with db.get_session() as session:
        await flow.consume(session, body.token, body.new_password)
    return MessageResponse(message="Password has been reset successfully")
