"""Session manager: refresh-token issue, rotation and revocation.

Refresh tokens are single-use.  ``validate_and_rotate`` revokes the presented
token with one conditional ``UPDATE ... WHERE revoked = false`` and only the
caller whose update touched the row gets a new token pair; a concurrent or
repeated rotation of the same string always fails.
"""

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from gatehouse.common.config import GatehouseSettings
from gatehouse.common.exceptions import (
    AccountDisabledError,
    InvalidRefreshTokenError,
    TokenExpiredError,
    UserNotFoundError,
)
from gatehouse.common.logging import get_logger
from gatehouse.common.models import utcnow
from gatehouse.credentials.tokens import TokenCodec
from gatehouse.sessions.models import RefreshTokenModel
from gatehouse.users.models import UserModel

logger = get_logger(__name__)


def generate_refresh_secret() -> str:
    """256 bits of randomness, hex encoded."""
    return secrets.token_hex(32)


@dataclass
class RotationResult:
    user: UserModel
    access_token: str
    refresh_token: str


class SessionManager:
    """Refresh-token state machine: active → revoked | expired."""

    def __init__(self, settings: GatehouseSettings, codec: TokenCodec):
        self.settings = settings
        self.codec = codec

    # ── Issue ──

    async def create(self, session: AsyncSession, user_id: str) -> RefreshTokenModel:
        token = RefreshTokenModel(
            user_id=user_id,
            token=generate_refresh_secret(),
            expires_at=utcnow() + self.settings.refresh_token_lifetime,
        )
        session.add(token)
        await session.flush()
        return token

    # ── Rotate ──

    async def validate_and_rotate(self, session: AsyncSession, token_string: str) -> RotationResult:
        token = await self.get_by_token(session, token_string)
        if token is None:
            raise InvalidRefreshTokenError()

        now = utcnow()
        if not token.is_valid(now):
            if token.revoked:
                logger.warning(
                    "Revoked refresh token presented",
                    extra={"user_id": token.user_id, "token_id": token.id},
                )
            raise TokenExpiredError()

        user = await session.get(UserModel, token.user_id)
        if user is None or user.is_deleted:
            raise UserNotFoundError()

        if not user.is_active:
            await self._revoke_if_active(session, token.id, now)
            # The revocation must survive even though this call fails.
            await session.commit()
            logger.info("Refresh refused for disabled account", extra={"user_id": user.id})
            raise AccountDisabledError()

        if not await self._revoke_if_active(session, token.id, now):
            # Another request rotated or revoked this token first.
            logger.warning(
                "Concurrent refresh token rotation lost",
                extra={"user_id": user.id, "token_id": token.id},
            )
            raise TokenExpiredError()

        new_token = await self.create(session, user.id)
        access_token = self.codec.issue_for_user(user)
        return RotationResult(user=user, access_token=access_token, refresh_token=new_token.token)

    # ── Revoke ──

    async def logout(self, session: AsyncSession, token_string: str) -> None:
        """Revoke a token; an unknown token counts as already logged out."""
        token = await self.get_by_token(session, token_string)
        if token is None:
            return
        await self._revoke_if_active(session, token.id, utcnow())

    async def revoke_all_for_user(self, session: AsyncSession, user_id: str) -> int:
        result = await session.execute(
            update(RefreshTokenModel)
            .where(
                RefreshTokenModel.user_id == user_id,
                RefreshTokenModel.revoked.is_(False),
            )
            .values(revoked=True, revoked_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            logger.info(
                "Revoked refresh tokens for user",
                extra={"user_id": user_id, "count": result.rowcount},
            )
        return result.rowcount

    async def cleanup_expired(self, session: AsyncSession) -> int:
        """Purge expired tokens and tokens revoked past the retention window."""
        now = utcnow()
        cutoff = now - timedelta(days=self.settings.revoked_retention_days)
        result = await session.execute(
            delete(RefreshTokenModel)
            .where(
                or_(
                    RefreshTokenModel.expires_at < now,
                    and_(
                        RefreshTokenModel.revoked.is_(True),
                        RefreshTokenModel.revoked_at < cutoff,
                    ),
                )
            )
            .execution_options(synchronize_session=False)
        )
        logger.info("Refresh token cleanup", extra={"deleted": result.rowcount})
        return result.rowcount

    # ── Read ──

    async def get_by_token(self, session: AsyncSession, token_string: str) -> RefreshTokenModel | None:
        if not token_string:
            return None
        result = await session.execute(
            select(RefreshTokenModel)
            .where(RefreshTokenModel.token == token_string)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def active_for_user(self, session: AsyncSession, user_id: str) -> list[RefreshTokenModel]:
        result = await session.execute(
            select(RefreshTokenModel)
            .where(
                RefreshTokenModel.user_id == user_id,
                RefreshTokenModel.revoked.is_(False),
                RefreshTokenModel.expires_at > utcnow(),
            )
            .order_by(RefreshTokenModel.created_at.desc())
        )
        return list(result.scalars().all())

    # ── Internal helpers ──

    @staticmethod
    async def _revoke_if_active(session: AsyncSession, token_id: str, now: datetime) -> bool:
        """Atomically flip an active token to revoked; True if this call won."""
        result = await session.execute(
            update(RefreshTokenModel)
            .where(
                RefreshTokenModel.id == token_id,
                RefreshTokenModel.revoked.is_(False),
            )
            .values(revoked=True, revoked_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
