"""Tenant-scoped data access.

A ``TenantScope`` is the capability handed to every tenant-partitioned
operation.  Its query helpers always add ``tenant_id == scope.tenant_id`` (and
hide tombstoned rows unless asked), so a caller cannot forget the filter.  On
PostgreSQL the same tenant id is also bound to ``app.current_tenant`` for the
transaction, which row-level security policies read.
"""

from typing import Any, TypeVar

from sqlalchemy import Select, func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from gatehouse.common.exceptions import TenantRequiredError

M = TypeVar("M")


async def bind_tenant(session: AsyncSession, tenant_id: str) -> None:
    """Set the transaction-local tenant for row-level security policies."""
    if session.bind is not None and session.bind.dialect.name == "postgresql":
        await session.execute(
            text("SELECT set_config('app.current_tenant', :tenant_id, true)"),
            {"tenant_id": tenant_id},
        )


class TenantScope:
    """Data access pre-filtered to a single tenant."""

    def __init__(self, session: AsyncSession, tenant_id: str):
        if not tenant_id:
            raise TenantRequiredError()
        self._session = session
        self._tenant_id = tenant_id

    @property
    def tenant_id(self) -> str:
        return self._tenant_id

    @property
    def session(self) -> AsyncSession:
        """Underlying session, for tables keyed by user rather than tenant."""
        return self._session

    def _criteria(self, model: Any, include_deleted: bool) -> list:
        criteria = [model.tenant_id == self._tenant_id]
        if not include_deleted and hasattr(model, "is_deleted"):
            criteria.append(model.is_deleted.is_(False))
        return criteria

    def select(self, model: type[M], *, include_deleted: bool = False) -> Select:
        return select(model).where(*self._criteria(model, include_deleted))

    async def get(self, model: type[M], entity_id: str, *, include_deleted: bool = False) -> M | None:
        result = await self._session.execute(
            self.select(model, include_deleted=include_deleted).where(model.id == entity_id)
        )
        return result.scalar_one_or_none()

    async def first(self, model: type[M], *criteria: Any) -> M | None:
        result = await self._session.execute(self.select(model).where(*criteria).limit(1))
        return result.scalar_one_or_none()

    async def all(
        self, model: type[M], *criteria: Any, limit: int | None = None, offset: int = 0,
    ) -> list[M]:
        query = self.select(model).where(*criteria).offset(offset)
        if limit is not None:
            query = query.limit(limit)
        result = await self._session.execute(query)
        return list(result.scalars().all())

    async def count(self, model: Any, *criteria: Any) -> int:
        result = await self._session.execute(
            select(func.count()).select_from(model).where(
                *self._criteria(model, False), *criteria
            )
        )
        return result.scalar_one()

    def add(self, entity: Any) -> None:
        if getattr(entity, "tenant_id", None) is None:
            entity.tenant_id = self._tenant_id
        elif entity.tenant_id != self._tenant_id:
            raise ValueError("Entity belongs to a different tenant")
        self._session.add(entity)

    async def flush(self) -> None:
        await self._session.flush()
