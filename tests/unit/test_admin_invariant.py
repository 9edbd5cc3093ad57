"""Randomized operation sequences must never leave a tenant without an admin."""

import random

import pytest

from gatehouse.common.exceptions import GatehouseError
from gatehouse.users.roles import Role

ROLES = list(Role)


async def active_admins(db, services, tenant_id) -> int:
    async with db.tenant_session(tenant_id) as scope:
        return await services.users.active_admin_count(scope)


@pytest.mark.parametrize("seed", range(6))
async def test_random_sequences_keep_an_active_admin(db, services, tenant_id, seed):
    rng = random.Random(seed)

    user_ids = []
    async with db.tenant_session(tenant_id) as scope:
        founder = await services.users.create(scope, "founder@acme.test", "password123", role=Role.ADMIN)
        user_ids.append(founder.id)
        for i in range(4):
            user = await services.users.create(
                scope, f"seed{i}@acme.test", "password123", role=rng.choice(ROLES),
            )
            user_ids.append(user.id)

    for step in range(60):
        op = rng.choice(["role", "active", "delete", "create"])
        target = rng.choice(user_ids)
        actor = rng.choice(user_ids)
        try:
            async with db.tenant_session(tenant_id) as scope:
                if op == "role":
                    await services.users.update(scope, target, role=rng.choice(ROLES))
                elif op == "active":
                    await services.users.update(scope, target, is_active=rng.random() < 0.5)
                elif op == "delete":
                    await services.users.delete(scope, target, acting_user_id=actor)
                else:
                    user = await services.users.create(
                        scope, f"step{step}@acme.test", "password123", role=rng.choice(ROLES),
                    )
                    user_ids.append(user.id)
        except GatehouseError:
            pass

        assert await active_admins(db, services, tenant_id) >= 1, f"seed={seed} step={step} op={op}"
