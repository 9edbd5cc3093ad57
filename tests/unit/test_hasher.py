"""Tests for the argon2id credential hasher."""

import pytest

from gatehouse.common.config import GatehouseSettings
from gatehouse.credentials.hasher import CredentialHasher


def make_settings(**overrides) -> GatehouseSettings:
    defaults = {"hash_time_cost": 1, "hash_memory_cost": 1024, "hash_parallelism": 1}
    defaults.update(overrides)
    return GatehouseSettings(**defaults)


@pytest.fixture
def hasher():
    return CredentialHasher(make_settings())


class TestHash:
    def test_produces_argon2id_digest(self, hasher):
        digest = hasher.hash("password123")
        assert digest.startswith("$argon2id$")
        assert "password123" not in digest

    def test_salted(self, hasher):
        assert hasher.hash("password123") != hasher.hash("password123")

    def test_work_factor_from_settings(self, hasher):
        digest = hasher.hash("password123")
        assert "m=1024,t=1,p=1" in digest


class TestVerify:
    def test_correct_password(self, hasher):
        digest = hasher.hash("password123")
        assert hasher.verify("password123", digest) is True

    def test_wrong_password(self, hasher):
        digest = hasher.hash("password123")
        assert hasher.verify("password124", digest) is False

    def test_garbage_digest(self, hasher):
        assert hasher.verify("password123", "not-a-digest") is False

    def test_dummy_never_matches(self, hasher):
        assert hasher.verify_dummy("gatehouse-dummy-password") is False
        assert hasher.verify_dummy("anything") is False

    def test_dummy_digest_ready_before_first_use(self, hasher, monkeypatch):
        def no_hashing(plaintext):
            raise AssertionError("verify_dummy must not hash")

        monkeypatch.setattr(hasher, "hash", no_hashing)
        assert hasher.verify_dummy("password123") is False
        assert hasher.verify_dummy("password123") is False

    def test_needs_rehash_after_work_factor_change(self, hasher):
        digest = hasher.hash("password123")
        stronger = CredentialHasher(make_settings(hash_time_cost=2))
        assert hasher.needs_rehash(digest) is False
        assert stronger.needs_rehash(digest) is True


class TestAsync:
    async def test_round_trip_off_thread(self, hasher):
        digest = await hasher.hash_async("password123")
        assert await hasher.verify_async("password123", digest) is True
        assert await hasher.verify_async("nope-nope", digest) is False

    async def test_dummy_async(self, hasher):
        assert await hasher.verify_dummy_async("password123") is False
