"""Password reset flow: single-use, time-boxed reset tokens."""

import secrets
from dataclasses import dataclass
from functools import partial

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from gatehouse.common.config import GatehouseSettings
from gatehouse.common.exceptions import (
    InvalidResetTokenError,
    ResetTokenUsedError,
    TenantNotFoundError,
    UserNotFoundError,
)
from gatehouse.common.logging import get_logger
from gatehouse.common.models import utcnow
from gatehouse.common.tenancy import TenantScope
from gatehouse.notifications.email_delivery import EmailSender, Notification
from gatehouse.password_reset.models import PasswordResetTokenModel
from gatehouse.sessions.service import SessionManager
from gatehouse.tenants.service import TenantDirectory
from gatehouse.users.models import UserModel
from gatehouse.users.service import UserDirectory

logger = get_logger(__name__)


@dataclass(frozen=True)
class ResetRequest:
    """Outcome of a reset request.

    ``token`` is ``None`` when no reset was issued; callers must answer the
    client identically either way. ``notification`` is the reset email, to be
    dispatched only after the transaction commits.
    """

    token: str | None = None
    notification: Notification | None = None


class PasswordResetFlow:
    def __init__(
        self,
        settings: GatehouseSettings,
        tenants: TenantDirectory,
        users: UserDirectory,
        sessions: SessionManager,
        email_sender: EmailSender | None = None,
    ):
        self.settings = settings
        self.tenants = tenants
        self.users = users
        self.sessions = sessions
        self.email_sender = email_sender

    async def request_reset(self, session: AsyncSession, email: str, tenant_slug: str) -> ResetRequest:
        try:
            tenant = await self.tenants.find_by_slug(session, tenant_slug)
            user = await self.users.get_by_email(TenantScope(session, tenant.id), email)
        except (TenantNotFoundError, UserNotFoundError):
            logger.info("Password reset requested for unknown account")
            return ResetRequest()
        if not user.is_active:
            logger.info("Password reset requested for disabled account", extra={"user_id": user.id})
            return ResetRequest()

        await self._invalidate_outstanding(session, user.id)
        reset = PasswordResetTokenModel(
            user_id=user.id,
            token=secrets.token_hex(32),
            expires_at=utcnow() + self.settings.reset_token_lifetime,
            used=False,
        )
        session.add(reset)
        await session.flush()
        logger.info("Password reset token issued", extra={"user_id": user.id})

        notification = None
        if self.email_sender is not None:
            notification = Notification(
                partial(self.email_sender.send_password_reset, user.email, user.name, reset.token),
                f"password reset for user {user.id}",
            )
        return ResetRequest(token=reset.token, notification=notification)

    async def validate(self, session: AsyncSession, token_string: str) -> PasswordResetTokenModel:
        """Check a token without consuming it."""
        reset = await self._get_by_token(session, token_string)
        if reset is None:
            raise InvalidResetTokenError()
        if reset.used:
            raise ResetTokenUsedError()
        if reset.is_expired():
            raise InvalidResetTokenError()
        return reset

    async def consume(self, session: AsyncSession, token_string: str, new_password: str) -> None:
        """Set a new password and burn the token.

        Password update, token consumption and refresh-token revocation share
        the caller's transaction; any failure rolls all three back.
        """
        reset = await self.validate(session, token_string)
        self.users.validate_password(new_password)

        user = await session.get(UserModel, reset.user_id)
        if user is None or user.is_deleted:
            raise UserNotFoundError()

        marked = await session.execute(
            update(PasswordResetTokenModel)
            .where(
                PasswordResetTokenModel.id == reset.id,
                PasswordResetTokenModel.used.is_(False),
            )
            .values(used=True)
            .execution_options(synchronize_session=False)
        )
        if marked.rowcount != 1:
            raise ResetTokenUsedError()

        user.password_hash = await self.users.hasher.hash_async(new_password)
        await session.flush()
        await self.sessions.revoke_all_for_user(session, user.id)
        logger.info("Password reset completed", extra={"user_id": user.id})

    async def cleanup_expired(self, session: AsyncSession) -> int:
        result = await session.execute(
            delete(PasswordResetTokenModel)
            .where(PasswordResetTokenModel.expires_at < utcnow())
            .execution_options(synchronize_session=False)
        )
        logger.info("Reset token cleanup", extra={"deleted": result.rowcount})
        return result.rowcount

    # ── Internal helpers ──

    async def _get_by_token(self, session: AsyncSession, token_string: str) -> PasswordResetTokenModel | None:
        if not token_string:
            return None
        result = await session.execute(
            select(PasswordResetTokenModel)
            .where(PasswordResetTokenModel.token == token_string)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _invalidate_outstanding(self, session: AsyncSession, user_id: str) -> None:
        await session.execute(
            update(PasswordResetTokenModel)
            .where(
                PasswordResetTokenModel.user_id == user_id,
                PasswordResetTokenModel.used.is_(False),
                PasswordResetTokenModel.expires_at > utcnow(),
            )
            .values(used=True)
            .execution_options(synchronize_session=False)
        )
