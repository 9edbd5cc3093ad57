"""Tests for the password reset flow."""

from datetime import timedelta

import pytest

from gatehouse.common.exceptions import (
    InvalidResetTokenError,
    PasswordInvalidError,
    ResetTokenUsedError,
)
from gatehouse.common.models import utcnow
from gatehouse.notifications.email_delivery import deliver
from gatehouse.users.roles import Role


class RecordingSender:
    def __init__(self):
        self.sent = []

    async def send_password_reset(self, to_email, name, token):
        self.sent.append(("reset", to_email, token))
        return True

    async def send_welcome(self, to_email, name, tenant_name):
        self.sent.append(("welcome", to_email, tenant_name))
        return True


@pytest.fixture
def email_sender():
    return RecordingSender()


@pytest.fixture
async def bob_id(db, services, tenant_id):
    async with db.tenant_session(tenant_id) as scope:
        await services.users.create(scope, "alice@acme.test", "password123", role=Role.ADMIN)
        bob = await services.users.create(scope, "bob@acme.test", "password123", name="Bob")
        await services.users.create(scope, "ghost@acme.test", "password123", is_active=False)
    return bob.id


async def request(db, services, email, slug="acme"):
    async with db.get_session() as session:
        return await services.reset.request_reset(session, email, slug)


class TestRequest:
    async def test_issues_token_and_notifies(self, db, services, bob_id, email_sender):
        outcome = await request(db, services, "Bob@acme.test")
        assert outcome.token is not None
        assert len(outcome.token) == 64
        assert email_sender.sent == []
        assert await deliver(outcome.notification) is True
        assert email_sender.sent == [("reset", "bob@acme.test", outcome.token)]

    @pytest.mark.parametrize(
        "email,slug",
        [
            ("nobody@acme.test", "acme"),
            ("bob@acme.test", "no-such-tenant"),
            ("ghost@acme.test", "acme"),
        ],
    )
    async def test_no_token_for_unknown_or_inactive(self, db, services, bob_id, email_sender, email, slug):
        outcome = await request(db, services, email, slug)
        assert outcome.token is None
        assert outcome.notification is None
        assert email_sender.sent == []

    async def test_second_request_invalidates_first(self, db, services, bob_id):
        first = await request(db, services, "bob@acme.test")
        second = await request(db, services, "bob@acme.test")
        async with db.get_session() as session:
            with pytest.raises(ResetTokenUsedError):
                await services.reset.validate(session, first.token)
            await services.reset.validate(session, second.token)


class TestValidate:
    async def test_unknown_token(self, db, services, bob_id):
        async with db.get_session() as session:
            with pytest.raises(InvalidResetTokenError):
                await services.reset.validate(session, "0" * 64)

    async def test_expired_token(self, db, services, bob_id):
        outcome = await request(db, services, "bob@acme.test")
        async with db.get_session() as session:
            reset = await services.reset.validate(session, outcome.token)
            reset.expires_at = utcnow() - timedelta(minutes=1)
        async with db.get_session() as session:
            with pytest.raises(InvalidResetTokenError):
                await services.reset.validate(session, outcome.token)

    async def test_one_hour_lifetime(self, db, services, bob_id):
        outcome = await request(db, services, "bob@acme.test")
        async with db.get_session() as session:
            reset = await services.reset.validate(session, outcome.token)
            assert reset.is_valid(utcnow() + timedelta(minutes=59)) is True
            assert reset.is_valid(utcnow() + timedelta(minutes=61)) is False


class TestConsume:
    async def test_consume_sets_password_and_revokes_sessions(self, db, services, tenant_id, bob_id):
        async with db.get_session() as session:
            await services.sessions.create(session, bob_id)
        outcome = await request(db, services, "bob@acme.test")

        async with db.get_session() as session:
            await services.reset.consume(session, outcome.token, "brand-new-pass")

        async with db.tenant_session(tenant_id) as scope:
            bob = await services.users.get(scope, bob_id)
            assert services.hasher.verify("brand-new-pass", bob.password_hash)
            assert await services.sessions.active_for_user(scope.session, bob_id) == []

    async def test_double_consume_fails(self, db, services, bob_id):
        outcome = await request(db, services, "bob@acme.test")
        async with db.get_session() as session:
            await services.reset.consume(session, outcome.token, "brand-new-pass")
        with pytest.raises(ResetTokenUsedError):
            async with db.get_session() as session:
                await services.reset.consume(session, outcome.token, "another-pass-1")

    async def test_short_password_leaves_token_usable(self, db, services, bob_id):
        outcome = await request(db, services, "bob@acme.test")
        with pytest.raises(PasswordInvalidError):
            async with db.get_session() as session:
                await services.reset.consume(session, outcome.token, "short")
        async with db.get_session() as session:
            await services.reset.validate(session, outcome.token)


class TestCleanup:
    async def test_removes_only_expired(self, db, services, bob_id):
        stale = await request(db, services, "bob@acme.test")
        async with db.get_session() as session:
            reset = await services.reset.validate(session, stale.token)
            reset.expires_at = utcnow() - timedelta(hours=2)
        fresh = await request(db, services, "bob@acme.test")

        async with db.get_session() as session:
            assert await services.reset.cleanup_expired(session) == 1
        async with db.get_session() as session:
            await services.reset.validate(session, fresh.token)
            with pytest.raises(InvalidResetTokenError):
                await services.reset.validate(session, stale.token)
