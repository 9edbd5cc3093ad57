"""Tenant directory: lookup, validation and lifecycle of tenants."""

import re
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from gatehouse.common.config import GatehouseSettings
from gatehouse.common.exceptions import (
    DomainExistsError,
    DomainInvalidError,
    SlugExistsError,
    SlugInvalidError,
    TenantNotFoundError,
)
from gatehouse.common.logging import get_logger
from gatehouse.common.models import as_utc, utcnow
from gatehouse.tenants.models import TenantModel
from gatehouse.users.models import UserModel

logger = get_logger(__name__)

_SLUG_RE = re.compile(r"^[a-z0-9][a-z0-9-]*[a-z0-9]$")
_DOMAIN_RE = re.compile(r"^([a-zA-Z0-9][a-zA-Z0-9-]{0,61}[a-zA-Z0-9]\.)+[a-zA-Z]{2,}$")

DEFAULT_TENANT_SETTINGS = {
    "onboarding_completed": False,
    "features": {
        "chat_enabled": True,
        "crm_enabled": False,
        "calendar_enabled": False,
    },
}

# Fields an update may touch; id, slug and created_at are never writable.
_UPDATABLE = ("name", "domain", "settings", "subscription_status", "subscription_ends_at")


def is_valid_slug(slug: str) -> bool:
    """Lowercase alphanumerics and hyphens, alphanumeric at both ends, 3-63 chars."""
    if not isinstance(slug, str) or not 3 <= len(slug) <= 63:
        return False
    return _SLUG_RE.fullmatch(slug) is not None


def is_valid_domain(domain: str) -> bool:
    if not isinstance(domain, str) or not 3 <= len(domain) <= 255:
        return False
    if "." not in domain:
        return False
    return _DOMAIN_RE.fullmatch(domain) is not None


class TenantDirectory:
    """Tenant management operations."""

    def __init__(self, settings: GatehouseSettings):
        self.settings = settings

    # ── Create ──

    async def create(self, session: AsyncSession, name: str, slug: str) -> TenantModel:
        if not is_valid_slug(slug):
            raise SlugInvalidError()
        if await self.slug_exists(session, slug):
            raise SlugExistsError()

        tenant = TenantModel(
            name=name,
            slug=slug,
            settings=_copy_settings(DEFAULT_TENANT_SETTINGS),
            subscription_status="trial",
            subscription_ends_at=utcnow() + timedelta(days=self.settings.trial_days),
        )
        session.add(tenant)
        try:
            await session.flush()
        except IntegrityError:
            # Lost a race with a concurrent registration of the same slug.
            logger.warning("Slug taken at insert", extra={"slug": slug})
            raise SlugExistsError() from None
        logger.info("Tenant created", extra={"tenant_id": tenant.id, "slug": slug})
        return tenant

    # ── Lookup ──

    async def find_by_id(self, session: AsyncSession, tenant_id: str) -> TenantModel:
        return await self._one(session, TenantModel.id == tenant_id)

    async def find_by_slug(self, session: AsyncSession, slug: str) -> TenantModel:
        return await self._one(session, TenantModel.slug == slug)

    async def find_by_domain(self, session: AsyncSession, domain: str) -> TenantModel:
        return await self._one(session, TenantModel.domain == domain.lower())

    async def slug_exists(self, session: AsyncSession, slug: str) -> bool:
        # Tombstoned tenants keep their slug reserved.
        result = await session.execute(
            select(TenantModel.id).where(TenantModel.slug == slug).limit(1)
        )
        return result.first() is not None

    async def domain_exists(self, session: AsyncSession, domain: str) -> bool:
        result = await session.execute(
            select(TenantModel.id).where(TenantModel.domain == domain).limit(1)
        )
        return result.first() is not None

    async def list_tenants(
        self, session: AsyncSession, limit: int | None = None, offset: int = 0,
    ) -> list[TenantModel]:
        limit = min(limit or self.settings.default_page_size, self.settings.max_page_size)
        result = await session.execute(
            select(TenantModel)
            .where(TenantModel.is_deleted.is_(False))
            .order_by(TenantModel.created_at.asc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def count(self, session: AsyncSession) -> int:
        result = await session.execute(
            select(func.count()).select_from(TenantModel).where(TenantModel.is_deleted.is_(False))
        )
        return result.scalar_one()

    # ── Update / delete ──

    async def update(self, session: AsyncSession, tenant_id: str, **updates: Any) -> TenantModel:
        """Apply a partial update.

        ``settings`` is merged key by key into the stored map.  A ``domain`` of
        ``None`` or ``""`` clears it; any other value is re-validated.
        """
        tenant = await self.find_by_id(session, tenant_id)
        ignored = set(updates) - set(_UPDATABLE)
        if ignored:
            logger.warning(
                "Ignoring non-updatable tenant fields",
                extra={"tenant_id": tenant_id, "fields": sorted(ignored)},
            )

        if "domain" in updates:
            domain = updates["domain"]
            if not domain:
                tenant.domain = None
            else:
                domain = domain.strip().lower()
                if not is_valid_domain(domain):
                    raise DomainInvalidError()
                if domain != tenant.domain and await self.domain_exists(session, domain):
                    raise DomainExistsError()
                tenant.domain = domain

        if updates.get("name"):
            tenant.name = updates["name"]

        if updates.get("settings"):
            merged = _copy_settings(tenant.settings or {})
            merged.update(updates["settings"])
            tenant.settings = merged

        if updates.get("subscription_status"):
            tenant.subscription_status = updates["subscription_status"]

        if "subscription_ends_at" in updates:
            tenant.subscription_ends_at = updates["subscription_ends_at"]

        try:
            await session.flush()
        except IntegrityError:
            logger.warning("Domain taken at update", extra={"tenant_id": tenant_id})
            raise DomainExistsError() from None
        return tenant

    async def delete(self, session: AsyncSession, tenant_id: str) -> None:
        """Soft delete. Users are left in place for a later purge."""
        tenant = await self.find_by_id(session, tenant_id)
        tenant.mark_deleted()
        await session.flush()
        logger.info("Tenant deleted", extra={"tenant_id": tenant_id})

    # ── Policy / stats ──

    def user_limit(self, tenant: TenantModel) -> int:
        return self.settings.user_limit_for(tenant.subscription_status)

    async def stats(self, session: AsyncSession, tenant_id: str) -> dict[str, Any]:
        tenant = await self.find_by_id(session, tenant_id)
        result = await session.execute(
            select(func.count()).select_from(UserModel).where(
                UserModel.tenant_id == tenant_id,
                UserModel.is_deleted.is_(False),
            )
        )
        stats: dict[str, Any] = {
            "user_count": result.scalar_one(),
            "subscription_status": tenant.subscription_status,
            "created_at": tenant.created_at,
        }
        ends_at = as_utc(tenant.subscription_ends_at)
        if ends_at is not None:
            stats["subscription_ends_at"] = ends_at
            stats["days_remaining"] = _days_until(ends_at)
        return stats

    # ── Internal helpers ──

    async def _one(self, session: AsyncSession, *criteria) -> TenantModel:
        result = await session.execute(
            select(TenantModel).where(*criteria, TenantModel.is_deleted.is_(False))
        )
        tenant = result.scalar_one_or_none()
        if tenant is None:
            raise TenantNotFoundError()
        return tenant


def _copy_settings(settings: dict) -> dict:
    return {k: dict(v) if isinstance(v, dict) else v for k, v in settings.items()}


def _days_until(moment: datetime) -> int:
    return int((moment - utcnow()).total_seconds() // 86400)
