"""Authentication service: login, registration, refresh and logout."""

from dataclasses import dataclass
from functools import partial

from sqlalchemy.ext.asyncio import AsyncSession

from gatehouse.common.config import GatehouseSettings
from gatehouse.common.exceptions import (
    AccountDisabledError,
    EmailInvalidError,
    GatehouseError,
    InvalidCredentialsError,
    SlugExistsError,
    SlugInvalidError,
    TenantNotFoundError,
    UserNotFoundError,
)
from gatehouse.common.logging import get_logger
from gatehouse.common.tenancy import TenantScope
from gatehouse.credentials.hasher import CredentialHasher
from gatehouse.credentials.tokens import TokenCodec
from gatehouse.notifications.email_delivery import EmailSender, Notification
from gatehouse.sessions.service import RotationResult, SessionManager
from gatehouse.tenants.models import TenantModel
from gatehouse.tenants.service import TenantDirectory, is_valid_slug
from gatehouse.users.models import UserModel
from gatehouse.users.roles import Role
from gatehouse.users.service import UserDirectory, is_valid_email

logger = get_logger(__name__)


@dataclass
class LoginResult:
    user: UserModel
    access_token: str
    refresh_token: str


@dataclass
class RegistrationResult:
    tenant: TenantModel
    user: UserModel
    access_token: str
    refresh_token: str
    # Welcome mail for the caller to dispatch after commit.
    notification: Notification | None = None


class AuthenticationService:
    """Orchestrates the directories, the session manager and the token codec."""

    def __init__(
        self,
        settings: GatehouseSettings,
        hasher: CredentialHasher,
        codec: TokenCodec,
        tenants: TenantDirectory,
        users: UserDirectory,
        sessions: SessionManager,
        email_sender: EmailSender | None = None,
    ):
        self.settings = settings
        self.hasher = hasher
        self.codec = codec
        self.tenants = tenants
        self.users = users
        self.sessions = sessions
        self.email_sender = email_sender

    async def resolve_login_tenant(self, session: AsyncSession, slug: str) -> TenantModel:
        """Unknown tenants fail exactly like unknown users."""
        try:
            return await self.tenants.find_by_slug(session, slug)
        except TenantNotFoundError:
            raise InvalidCredentialsError() from None

    async def login(
        self, session: AsyncSession, email: str, password: str, tenant_id: str,
    ) -> LoginResult:
        scope = TenantScope(session, tenant_id)
        try:
            user = await self.users.get_by_email(scope, email)
        except UserNotFoundError:
            await self.hasher.verify_dummy_async(password)
            logger.info("Login failed", extra={"tenant_id": tenant_id, "reason": "unknown_user"})
            raise InvalidCredentialsError() from None

        if not await self.hasher.verify_async(password, user.password_hash):
            logger.info("Login failed", extra={"tenant_id": tenant_id, "user_id": user.id})
            raise InvalidCredentialsError()

        if not user.is_active:
            raise AccountDisabledError()

        if self.hasher.needs_rehash(user.password_hash):
            user.password_hash = await self.hasher.hash_async(password)

        await self.users.update_last_login(scope, user.id)
        refresh = await self.sessions.create(session, user.id)
        access_token = self.codec.issue_for_user(user)
        logger.info("Login succeeded", extra={"tenant_id": tenant_id, "user_id": user.id})
        return LoginResult(user=user, access_token=access_token, refresh_token=refresh.token)

    async def register(
        self,
        session: AsyncSession,
        tenant_name: str,
        slug: str,
        admin_email: str,
        admin_password: str,
        admin_name: str = "",
    ) -> RegistrationResult:
        """Create a tenant with its first administrator as one unit.

        Inputs are validated before anything is written; if a write still
        fails, the transaction is rolled back so neither row survives. The
        welcome mail is returned unsent; dispatch it once the session commits.
        """
        if not is_valid_slug(slug):
            raise SlugInvalidError()
        if await self.tenants.slug_exists(session, slug):
            raise SlugExistsError()
        if not is_valid_email(admin_email):
            raise EmailInvalidError()
        self.users.validate_password(admin_password)

        try:
            tenant = await self.tenants.create(session, tenant_name, slug)
            user = await self.users.create(
                TenantScope(session, tenant.id),
                email=admin_email,
                password=admin_password,
                name=admin_name,
                role=Role.ADMIN,
            )
        except GatehouseError:
            await session.rollback()
            raise

        await self.users.update_last_login(TenantScope(session, tenant.id), user.id)
        refresh = await self.sessions.create(session, user.id)
        access_token = self.codec.issue_for_user(user)
        logger.info("Tenant registered", extra={"tenant_id": tenant.id, "user_id": user.id})

        notification = None
        if self.email_sender is not None:
            notification = Notification(
                partial(self.email_sender.send_welcome, user.email, user.name, tenant.name),
                f"welcome for user {user.id}",
            )
        return RegistrationResult(
            tenant=tenant,
            user=user,
            access_token=access_token,
            refresh_token=refresh.token,
            notification=notification,
        )

    async def refresh(self, session: AsyncSession, refresh_token: str) -> RotationResult:
        return await self.sessions.validate_and_rotate(session, refresh_token)

    async def logout(self, session: AsyncSession, refresh_token: str) -> None:
        await self.sessions.logout(session, refresh_token)
