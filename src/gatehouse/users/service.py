"""User directory: tenant-scoped account management and RBAC invariants.

Every operation receives a ``TenantScope``; users of other tenants are simply
not visible to it.

Last-admin rule: demoting, deactivating or deleting an administrator requires
another active administrator in the same tenant.  The check runs after a
``SELECT ... FOR UPDATE`` on the tenant row, which serializes concurrent
admin-set changes of one tenant on PostgreSQL, and the population is counted
again after the write inside the same transaction so a stale read can never
commit a tenant with no administrator.
"""

from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from gatehouse.common.config import GatehouseSettings
from gatehouse.common.exceptions import (
    CannotDeleteSelfError,
    EmailExistsError,
    EmailInvalidError,
    LastAdminError,
    PasswordInvalidError,
    UserLimitError,
    UserNotFoundError,
    WrongPasswordError,
)
from gatehouse.common.logging import get_logger
from gatehouse.common.models import utcnow
from gatehouse.common.tenancy import TenantScope
from gatehouse.credentials.hasher import CredentialHasher
from gatehouse.sessions.service import SessionManager
from gatehouse.tenants.models import TenantModel
from gatehouse.tenants.service import TenantDirectory
from gatehouse.users.models import UserModel
from gatehouse.users.roles import ADMIN_ROLES, Role

logger = get_logger(__name__)

_ADMIN_ROLE_VALUES = [role.value for role in ADMIN_ROLES]


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def is_valid_email(email: str) -> bool:
    email = normalize_email(email)
    if not 3 <= len(email) <= 255:
        return False
    parts = email.split("@")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        return False
    return "." in parts[1]


class UserDirectory:
    """User management operations."""

    def __init__(
        self,
        settings: GatehouseSettings,
        hasher: CredentialHasher,
        tenants: TenantDirectory,
        sessions: SessionManager,
    ):
        self.settings = settings
        self.hasher = hasher
        self.tenants = tenants
        self.sessions = sessions

    # ── Create ──

    async def create(
        self,
        scope: TenantScope,
        email: str,
        password: str,
        name: str = "",
        role: "Role | str" = Role.AGENT,
        is_active: bool = True,
    ) -> UserModel:
        email = normalize_email(email)
        if not is_valid_email(email):
            raise EmailInvalidError()
        role = Role.parse(role)
        self.validate_password(password)

        if await self._email_taken(scope, email):
            raise EmailExistsError()

        tenant = await self.tenants.find_by_id(scope.session, scope.tenant_id)
        if await self.count(scope) >= self.tenants.user_limit(tenant):
            raise UserLimitError()

        user = UserModel(
            email=email,
            password_hash=await self.hasher.hash_async(password),
            name=name or "",
            role=role.value,
            is_active=is_active,
        )
        scope.add(user)
        await self._flush_email(scope)
        logger.info(
            "User created",
            extra={"tenant_id": scope.tenant_id, "user_id": user.id, "role": role.value},
        )
        return user

    # ── Read ──

    async def get(self, scope: TenantScope, user_id: str) -> UserModel:
        user = await scope.get(UserModel, user_id)
        if user is None:
            raise UserNotFoundError()
        return user

    async def get_by_email(self, scope: TenantScope, email: str) -> UserModel:
        user = await scope.first(UserModel, UserModel.email == normalize_email(email))
        if user is None:
            raise UserNotFoundError()
        return user

    async def list_users(
        self, scope: TenantScope, limit: int | None = None, offset: int = 0,
    ) -> list[UserModel]:
        limit = min(limit or self.settings.default_page_size, self.settings.max_page_size)
        result = await scope.session.execute(
            scope.select(UserModel)
            .order_by(UserModel.created_at.asc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all())

    # ── Update ──

    async def update(self, scope: TenantScope, user_id: str, **updates: Any) -> UserModel:
        """Apply a partial update of name, email, role and/or is_active."""
        user = await self.get(scope, user_id)

        new_email = None
        if updates.get("email") is not None:
            new_email = normalize_email(updates["email"])
            if not is_valid_email(new_email):
                raise EmailInvalidError()
            if new_email != user.email and await self._email_taken(scope, new_email, exclude=user.id):
                raise EmailExistsError()

        new_role = Role.parse(updates["role"]) if updates.get("role") is not None else None
        demoting = new_role is not None and user.is_admin and not new_role.is_admin

        new_active = updates.get("is_active")
        deactivating = new_active is False and user.is_active and user.is_admin

        guarded = demoting or deactivating
        if guarded:
            await self._ensure_other_admin(scope, user)

        if updates.get("name") is not None:
            user.name = updates["name"]
        if new_email is not None:
            user.email = new_email
        if new_role is not None:
            user.role = new_role.value
        if new_active is not None:
            user.is_active = bool(new_active)

        await self._flush_email(scope)
        if guarded:
            await self._verify_admin_remains(scope)
        return user

    async def delete(self, scope: TenantScope, user_id: str, acting_user_id: str) -> None:
        if user_id == acting_user_id:
            raise CannotDeleteSelfError()

        user = await self.get(scope, user_id)
        if user.is_admin:
            await self._ensure_other_admin(scope, user)

        user.mark_deleted()
        await scope.flush()
        if user.is_admin:
            await self._verify_admin_remains(scope)
        await self.sessions.revoke_all_for_user(scope.session, user.id)
        logger.info(
            "User deleted",
            extra={"tenant_id": scope.tenant_id, "user_id": user.id, "actor": acting_user_id},
        )

    # ── Passwords ──

    def validate_password(self, password: str) -> None:
        if password is None or len(password) < self.settings.password_min_length:
            raise PasswordInvalidError(
                f"Password must be at least {self.settings.password_min_length} characters"
            )

    async def change_password(
        self, scope: TenantScope, user_id: str, old_password: str, new_password: str,
    ) -> None:
        user = await self.get(scope, user_id)
        if not await self.hasher.verify_async(old_password, user.password_hash):
            raise WrongPasswordError()
        self.validate_password(new_password)
        await self._set_password(scope, user, new_password)

    async def reset_password(self, scope: TenantScope, user_id: str, new_password: str) -> None:
        """Administrative reset, no knowledge of the old password required."""
        user = await self.get(scope, user_id)
        self.validate_password(new_password)
        await self._set_password(scope, user, new_password)

    async def update_last_login(self, scope: TenantScope, user_id: str) -> None:
        user = await self.get(scope, user_id)
        user.last_login_at = utcnow()
        await scope.flush()

    # ── Statistics ──

    async def count(self, scope: TenantScope) -> int:
        return await scope.count(UserModel)

    async def active_count(self, scope: TenantScope) -> int:
        return await scope.count(UserModel, UserModel.is_active.is_(True))

    async def count_by_role(self, scope: TenantScope) -> dict[str, int]:
        result = await scope.session.execute(
            select(UserModel.role, func.count())
            .where(
                UserModel.tenant_id == scope.tenant_id,
                UserModel.is_deleted.is_(False),
            )
            .group_by(UserModel.role)
        )
        return {role: count for role, count in result.all()}

    async def stats(self, scope: TenantScope) -> dict[str, Any]:
        tenant = await self.tenants.find_by_id(scope.session, scope.tenant_id)
        total = await self.count(scope)
        active = await self.active_count(scope)
        limit = self.tenants.user_limit(tenant)
        return {
            "total": total,
            "active": active,
            "inactive": total - active,
            "by_role": await self.count_by_role(scope),
            "limit": limit,
            "remaining": max(limit - total, 0),
        }

    async def active_admin_count(self, scope: TenantScope, exclude_user_id: str | None = None) -> int:
        criteria = [
            UserModel.role.in_(_ADMIN_ROLE_VALUES),
            UserModel.is_active.is_(True),
        ]
        if exclude_user_id is not None:
            criteria.append(UserModel.id != exclude_user_id)
        return await scope.count(UserModel, *criteria)

    # ── Internal helpers ──

    async def _email_taken(self, scope: TenantScope, email: str, exclude: str | None = None) -> bool:
        criteria = [UserModel.email == email]
        if exclude is not None:
            criteria.append(UserModel.id != exclude)
        return await scope.first(UserModel, *criteria) is not None

    @staticmethod
    async def _flush_email(scope: TenantScope) -> None:
        # The per-tenant email index is the final arbiter when two writers race.
        try:
            await scope.flush()
        except IntegrityError:
            logger.warning("Email taken at write", extra={"tenant_id": scope.tenant_id})
            raise EmailExistsError() from None

    async def _ensure_other_admin(self, scope: TenantScope, user: UserModel) -> None:
        await scope.session.execute(
            select(TenantModel.id)
            .where(TenantModel.id == scope.tenant_id)
            .with_for_update()
        )
        if await self.active_admin_count(scope, exclude_user_id=user.id) == 0:
            logger.warning(
                "Refused change to last administrator",
                extra={"tenant_id": scope.tenant_id, "user_id": user.id},
            )
            raise LastAdminError()

    async def _verify_admin_remains(self, scope: TenantScope) -> None:
        if await self.active_admin_count(scope) == 0:
            raise LastAdminError()

    async def _set_password(self, scope: TenantScope, user: UserModel, new_password: str) -> None:
        user.password_hash = await self.hasher.hash_async(new_password)
        await scope.flush()
        await self.sessions.revoke_all_for_user(scope.session, user.id)
