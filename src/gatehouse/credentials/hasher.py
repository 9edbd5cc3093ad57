"""One-way password hashing (argon2id)."""

import asyncio

from argon2 import PasswordHasher, Type
from argon2.exceptions import HashingError as Argon2HashingError
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

from gatehouse.common.config import GatehouseSettings
from gatehouse.common.exceptions import HashingError
from gatehouse.common.logging import get_logger

logger = get_logger(__name__)


class CredentialHasher:
    """Salted, deliberately slow password hashing with a fixed work factor.

    ``verify_dummy`` checks a password against a digest computed when the
    hasher is built; callers use it when no account exists so that "unknown
    user" and "wrong password" cost the same.
    """

    def __init__(self, settings: GatehouseSettings):
        self._hasher = PasswordHasher(
            time_cost=settings.hash_time_cost,
            memory_cost=settings.hash_memory_cost,
            parallelism=settings.hash_parallelism,
            type=Type.ID,
        )
        self._dummy_digest = self.hash("gatehouse-dummy-password")

    def hash(self, plaintext: str) -> str:
        try:
            return self._hasher.hash(plaintext)
        except Argon2HashingError as exc:
            logger.error("Password hashing failed")
            raise HashingError() from exc

    def verify(self, plaintext: str, digest: str) -> bool:
        try:
            return self._hasher.verify(digest, plaintext)
        except VerifyMismatchError:
            return False
        except (InvalidHashError, VerificationError):
            logger.warning("Stored password digest could not be verified")
            return False

    def verify_dummy(self, plaintext: str) -> bool:
        self.verify(plaintext, self._dummy_digest)
        return False

    def needs_rehash(self, digest: str) -> bool:
        return self._hasher.check_needs_rehash(digest)

    # ── Async helpers (hashing is CPU-bound) ──

    async def hash_async(self, plaintext: str) -> str:
        return await asyncio.to_thread(self.hash, plaintext)

    async def verify_async(self, plaintext: str, digest: str) -> bool:
        return await asyncio.to_thread(self.verify, plaintext, digest)

    async def verify_dummy_async(self, plaintext: str) -> bool:
        return await asyncio.to_thread(self.verify_dummy, plaintext)
