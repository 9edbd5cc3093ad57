"""Gatehouse: multi-tenant identity and access management."""

from gatehouse.common.config import GatehouseSettings, get_settings
from gatehouse.common.exceptions import GatehouseError
from gatehouse.credentials.hasher import CredentialHasher
from gatehouse.credentials.tokens import SessionClaims, TokenCodec
from gatehouse.users.roles import Role

__all__ = [
    "GatehouseSettings",
    "get_settings",
    "GatehouseError",
    "CredentialHasher",
    "SessionClaims",
    "TokenCodec",
    "Role",
]
__version__ = "0.1.0"
