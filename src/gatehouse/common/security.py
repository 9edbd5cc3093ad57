"""Bearer-token authentication, role checks and tenant resolution."""

import secrets
from dataclasses import dataclass
from typing import Iterable, Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from gatehouse.common.exceptions import (
    InsufficientRoleError,
    InvalidAdminKeyError,
    InvalidTokenError,
    MissingAuthorizationError,
    TenantNotFoundError,
    TenantRequiredError,
)
from gatehouse.common.logging import get_logger
from gatehouse.credentials.tokens import TokenCodec
from gatehouse.tenants.models import TenantModel
from gatehouse.tenants.service import TenantDirectory
from gatehouse.users.roles import ADMIN_ROLES, Role

logger = get_logger(__name__)

# Subdomains that belong to the product itself, never to a tenant.
_RESERVED_SUBDOMAINS = frozenset({"www", "app"})


@dataclass(frozen=True)
class RequestContext:
    """Authenticated caller, built once per request from a verified token."""

    user_id: str
    tenant_id: str
    email: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role.is_admin


class AuthorizationGuard:
    def __init__(self, codec: TokenCodec, tenants: TenantDirectory):
        self.codec = codec
        self.tenants = tenants

    def authenticate(self, authorization: Optional[str]) -> RequestContext:
        if not authorization:
            raise MissingAuthorizationError()
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            raise InvalidTokenError()
        claims = self.codec.verify(token.strip())
        return RequestContext(
            user_id=claims.user_id,
            tenant_id=claims.tenant_id,
            email=claims.email,
            role=claims.role,
        )

    async def authorize(
        self, session: AsyncSession, authorization: Optional[str],
    ) -> RequestContext:
        """Authenticate the bearer token and confirm its tenant is still live.

        A token outliving its tenant is refused with ``TenantNotFoundError``.
        """
        context = self.authenticate(authorization)
        await self.resolve_tenant(session, context)
        return context

    @staticmethod
    def require_role(context: RequestContext, allowed: Iterable[Role]) -> RequestContext:
        if context.role not in set(allowed):
            logger.info(
                "Role check failed",
                extra={"user_id": context.user_id, "role": context.role.value},
            )
            raise InsufficientRoleError()
        return context

    async def resolve_tenant(
        self,
        session: AsyncSession,
        context: Optional[RequestContext] = None,
        header_tenant_id: Optional[str] = None,
        host: Optional[str] = None,
    ) -> TenantModel:
        """Pick the tenant for a request.

        Precedence: the authenticated token's tenant, then ``X-Tenant-ID``,
        then the request host (a tenant's custom domain, or its slug as the
        leftmost label of a three-or-more label host).  Whatever is chosen
        must name a live tenant.
        """
        if context is not None:
            return await self.tenants.find_by_id(session, context.tenant_id)

        if header_tenant_id:
            return await self.tenants.find_by_id(session, header_tenant_id.strip())

        hostname = _strip_port(host)
        if hostname:
            try:
                return await self.tenants.find_by_domain(session, hostname)
            except TenantNotFoundError:
                pass
            subdomain = extract_subdomain(hostname)
            if subdomain:
                return await self.tenants.find_by_slug(session, subdomain)

        raise TenantRequiredError()


def extract_subdomain(host: str) -> str:
    parts = host.lower().split(".")
    if len(parts) < 3 or parts[0] in _RESERVED_SUBDOMAINS:
        return ""
    return parts[0]


def _strip_port(host: Optional[str]) -> str:
    if not host:
        return ""
    return host.strip().rsplit(":", 1)[0] if ":" in host else host.strip()


# ── FastAPI dependencies ──


async def get_request_context(
    authorization: Optional[str] = Header(None),
) -> RequestContext:
    from gatehouse.deps import get_db, get_guard

    async with get_db().get_session() as session:
        return await get_guard().authorize(session, authorization)


def require_roles(*roles: Role):
    """Dependency factory admitting only callers holding one of ``roles``."""

    async def _check(context: RequestContext = Depends(get_request_context)) -> RequestContext:
        return AuthorizationGuard.require_role(context, roles)

    return _check


require_admin = require_roles(*ADMIN_ROLES)


async def require_super_admin(
    x_gatehouse_admin_key: Optional[str] = Header(None, alias="X-Gatehouse-Admin-Key"),
) -> str:
    """FastAPI dependency that validates the super-admin key from header."""
    from gatehouse.common.config import get_settings

    settings = get_settings()
    if not x_gatehouse_admin_key or not secrets.compare_digest(
        x_gatehouse_admin_key, settings.super_admin_key
    ):
        raise InvalidAdminKeyError()
    return x_gatehouse_admin_key
