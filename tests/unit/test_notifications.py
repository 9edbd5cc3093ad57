"""Tests for notification dispatch and delivery."""

import asyncio

import pytest

from gatehouse.notifications import email_delivery
from gatehouse.notifications.email_delivery import (
    EmailSender,
    Notification,
    deliver,
    dispatch,
    drain,
)


def slow_send(sent, label, delay=0.01):
    async def _send():
        await asyncio.sleep(delay)
        sent.append(label)
        return True
    return _send


class TestDeliver:
    async def test_success(self):
        sent = []
        assert await deliver(Notification(slow_send(sent, "welcome"), "welcome")) is True
        assert sent == ["welcome"]

    async def test_crash_is_logged_not_raised(self):
        async def boom():
            raise RuntimeError("smtp down")

        assert await deliver(Notification(boom, "boom")) is False

    async def test_not_delivered(self):
        async def refused():
            return False

        assert await deliver(Notification(refused, "refused")) is False

    async def test_cancellation_propagates(self):
        sent = []
        task = asyncio.create_task(deliver(Notification(slow_send(sent, "x", delay=1), "x")))
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert sent == []


class TestDispatch:
    async def test_none_is_a_no_op(self):
        assert dispatch(None) is None

    async def test_task_is_held_until_done(self):
        sent = []
        task = dispatch(Notification(slow_send(sent, "reset"), "reset"))
        assert task in email_delivery._pending
        await drain()
        assert sent == ["reset"]
        assert task not in email_delivery._pending
        assert email_delivery.pending_count() == 0

    async def test_drain_with_timeout_abandons_slow_sends(self):
        sent = []
        task = dispatch(Notification(slow_send(sent, "late", delay=5), "late"))
        await drain(timeout=0.01)
        assert sent == []
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task


class TestCliRegister:
    @pytest.fixture
    def cli_env(self, tmp_path, monkeypatch):
        from gatehouse.common.config import get_settings
        from gatehouse.deps import reset_singletons

        monkeypatch.setenv("GATEHOUSE_DB_URL", f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}")
        monkeypatch.setenv("GATEHOUSE_HASH_TIME_COST", "1")
        monkeypatch.setenv("GATEHOUSE_HASH_MEMORY_COST", "1024")
        monkeypatch.setenv("GATEHOUSE_HASH_PARALLELISM", "1")
        get_settings.cache_clear()
        reset_singletons()
        yield
        get_settings.cache_clear()
        reset_singletons()

    def test_welcome_sent_before_loop_closes(self, cli_env, monkeypatch):
        from gatehouse.cli import _register

        sent = []

        async def send_welcome(self, to_email, name, tenant_name):
            await asyncio.sleep(0.01)
            sent.append((to_email, tenant_name))
            return True

        monkeypatch.setattr(EmailSender, "send_welcome", send_welcome)

        tenant_id, user_id = asyncio.run(
            _register("Acme Inc", "acme", "alice@acme.test", "password123", "Alice")
        )
        assert tenant_id and user_id
        assert sent == [("alice@acme.test", "Acme Inc")]
