"""Tests for refresh-token sessions: rotation, revocation, cleanup."""

from datetime import timedelta

import pytest
from sqlalchemy import select

from gatehouse.common.exceptions import (
    AccountDisabledError,
    InvalidRefreshTokenError,
    TokenExpiredError,
    UserNotFoundError,
)
from gatehouse.common.models import as_utc, utcnow
from gatehouse.sessions.models import RefreshTokenModel
from gatehouse.sessions.service import SessionManager, generate_refresh_secret
from gatehouse.users.roles import Role


@pytest.fixture
async def bob_id(db, services, tenant_id):
    async with db.tenant_session(tenant_id) as scope:
        await services.users.create(scope, "alice@acme.test", "password123", role=Role.ADMIN)
        bob = await services.users.create(scope, "bob@acme.test", "password123")
    return bob.id


async def issue(db, services, user_id) -> str:
    async with db.get_session() as session:
        token = await services.sessions.create(session, user_id)
    return token.token


async def load(db, token_string) -> RefreshTokenModel:
    async with db.get_session() as session:
        result = await session.execute(
            select(RefreshTokenModel).where(RefreshTokenModel.token == token_string)
        )
        return result.scalar_one()


class TestCreate:
    def test_secret_is_256_bit_hex(self):
        secret = generate_refresh_secret()
        assert len(secret) == 64
        int(secret, 16)
        assert secret != generate_refresh_secret()

    async def test_seven_day_expiry(self, db, services, bob_id):
        token = await load(db, await issue(db, services, bob_id))
        assert token.revoked is False
        lifetime = as_utc(token.expires_at) - utcnow()
        assert timedelta(days=6, hours=23) < lifetime <= timedelta(days=7)


class TestRotate:
    async def test_rotation_issues_new_pair(self, db, services, bob_id):
        old = await issue(db, services, bob_id)
        async with db.get_session() as session:
            result = await services.sessions.validate_and_rotate(session, old)
        assert result.user.id == bob_id
        assert result.refresh_token != old
        claims = services.codec.verify(result.access_token)
        assert claims.user_id == bob_id
        assert (await load(db, old)).revoked is True
        assert (await load(db, result.refresh_token)).revoked is False

    async def test_single_use(self, db, services, bob_id):
        token = await issue(db, services, bob_id)
        async with db.get_session() as session:
            await services.sessions.validate_and_rotate(session, token)
        with pytest.raises((TokenExpiredError, InvalidRefreshTokenError)):
            async with db.get_session() as session:
                await services.sessions.validate_and_rotate(session, token)

    async def test_unknown_token(self, db, services, bob_id):
        with pytest.raises(InvalidRefreshTokenError):
            async with db.get_session() as session:
                await services.sessions.validate_and_rotate(session, "f" * 64)

    async def test_empty_token(self, db, services):
        with pytest.raises(InvalidRefreshTokenError):
            async with db.get_session() as session:
                await services.sessions.validate_and_rotate(session, "")

    async def test_expired_token(self, db, services, bob_id):
        token = await issue(db, services, bob_id)
        async with db.get_session() as session:
            stored = await services.sessions.get_by_token(session, token)
            stored.expires_at = utcnow() - timedelta(seconds=1)
        with pytest.raises(TokenExpiredError):
            async with db.get_session() as session:
                await services.sessions.validate_and_rotate(session, token)

    async def test_deleted_owner(self, db, services, tenant_id, bob_id):
        token = await issue(db, services, bob_id)
        async with db.tenant_session(tenant_id) as scope:
            bob = await services.users.get(scope, bob_id)
            bob.mark_deleted()
        with pytest.raises(UserNotFoundError):
            async with db.get_session() as session:
                await services.sessions.validate_and_rotate(session, token)

    async def test_disabled_owner_revocation_sticks(self, db, services, tenant_id, bob_id):
        token = await issue(db, services, bob_id)
        async with db.tenant_session(tenant_id) as scope:
            await services.users.update(scope, bob_id, is_active=False)

        with pytest.raises(AccountDisabledError):
            async with db.get_session() as session:
                await services.sessions.validate_and_rotate(session, token)

        stored = await load(db, token)
        assert stored.revoked is True
        assert stored.revoked_at is not None

    async def test_conditional_revoke_has_one_winner(self, db, services, bob_id):
        token = await issue(db, services, bob_id)
        stored = await load(db, token)
        async with db.get_session() as session:
            first = await SessionManager._revoke_if_active(session, stored.id, utcnow())
            second = await SessionManager._revoke_if_active(session, stored.id, utcnow())
        assert first is True
        assert second is False


class TestRevoke:
    async def test_logout_is_idempotent(self, db, services, bob_id):
        token = await issue(db, services, bob_id)
        async with db.get_session() as session:
            await services.sessions.logout(session, token)
        async with db.get_session() as session:
            await services.sessions.logout(session, token)
            await services.sessions.logout(session, "unknown-token")
        assert (await load(db, token)).revoked is True
        with pytest.raises(TokenExpiredError):
            async with db.get_session() as session:
                await services.sessions.validate_and_rotate(session, token)

    async def test_revoke_all_for_user(self, db, services, bob_id):
        for _ in range(3):
            await issue(db, services, bob_id)
        async with db.get_session() as session:
            assert len(await services.sessions.active_for_user(session, bob_id)) == 3
            assert await services.sessions.revoke_all_for_user(session, bob_id) == 3
        async with db.get_session() as session:
            assert await services.sessions.active_for_user(session, bob_id) == []
            assert await services.sessions.revoke_all_for_user(session, bob_id) == 0


class TestCleanup:
    async def test_purges_expired_and_old_revoked(self, db, services, bob_id):
        live = await issue(db, services, bob_id)
        expired = await issue(db, services, bob_id)
        recently_revoked = await issue(db, services, bob_id)
        long_revoked = await issue(db, services, bob_id)

        async with db.get_session() as session:
            (await services.sessions.get_by_token(session, expired)).expires_at = (
                utcnow() - timedelta(hours=1)
            )
            recent = await services.sessions.get_by_token(session, recently_revoked)
            recent.revoked, recent.revoked_at = True, utcnow() - timedelta(days=1)
            old = await services.sessions.get_by_token(session, long_revoked)
            old.revoked, old.revoked_at = True, utcnow() - timedelta(days=31)

        async with db.get_session() as session:
            deleted = await services.sessions.cleanup_expired(session)
        assert deleted == 2

        async with db.get_session() as session:
            assert await services.sessions.get_by_token(session, live) is not None
            assert await services.sessions.get_by_token(session, recently_revoked) is not None
            assert await services.sessions.get_by_token(session, expired) is None
            assert await services.sessions.get_by_token(session, long_revoked) is None
