"""Signed, short-lived bearer access tokens (JWT)."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

import jwt

from gatehouse.common.config import GatehouseSettings
from gatehouse.common.exceptions import InvalidTokenError, RoleInvalidError, SigningError
from gatehouse.users.roles import Role

_REQUIRED_CLAIMS = ("user_id", "tenant_id", "email", "role")


@dataclass(frozen=True)
class SessionClaims:
    """Identity carried by a verified access token."""

    user_id: str
    tenant_id: str
    email: str
    role: Role
    issued_at: datetime
    expires_at: datetime


class TokenCodec:
    """Issue and verify access tokens.

    Access tokens are stateless: they cannot be revoked individually and
    simply run out after their TTL.  Rotating the signing secret invalidates
    every outstanding token.
    """

    def __init__(self, settings: GatehouseSettings):
        self._secret = settings.secret_key
        self._algorithm = settings.jwt_algorithm
        self._default_ttl = settings.access_token_lifetime

    def issue(self, claims: Mapping[str, Any], ttl: timedelta | None = None) -> str:
        now = datetime.now(timezone.utc)
        role = claims["role"]
        payload = {
            "user_id": str(claims["user_id"]),
            "tenant_id": str(claims["tenant_id"]),
            "email": claims["email"],
            "role": role.value if isinstance(role, Role) else str(role),
            "iat": now,
            "exp": now + (ttl or self._default_ttl),
        }
        try:
            return jwt.encode(payload, self._secret, algorithm=self._algorithm)
        except (TypeError, ValueError, NotImplementedError, jwt.PyJWTError) as exc:
            raise SigningError() from exc

    def issue_for_user(self, user: Any, ttl: timedelta | None = None) -> str:
        return self.issue(
            {
                "user_id": user.id,
                "tenant_id": user.tenant_id,
                "email": user.email,
                "role": user.role,
            },
            ttl,
        )

    def verify(self, token: str) -> SessionClaims:
        """Decode a token, raising one uniform error for every failure mode."""
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": ["exp", "iat"]},
            )
            if any(not payload.get(name) for name in _REQUIRED_CLAIMS):
                raise InvalidTokenError()
            return SessionClaims(
                user_id=str(payload["user_id"]),
                tenant_id=str(payload["tenant_id"]),
                email=str(payload["email"]),
                role=Role.parse(payload["role"]),
                issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            )
        except (jwt.PyJWTError, RoleInvalidError, TypeError, ValueError):
            raise InvalidTokenError() from None
