"""Shared test fixtures for Gatehouse."""

import os
from dataclasses import dataclass

import pytest
from httpx import ASGITransport, AsyncClient

from gatehouse.auth.service import AuthenticationService
from gatehouse.common.config import GatehouseSettings
from gatehouse.common.database import DatabaseManager
from gatehouse.common.security import AuthorizationGuard
from gatehouse.credentials.hasher import CredentialHasher
from gatehouse.credentials.tokens import TokenCodec
from gatehouse.password_reset.service import PasswordResetFlow
from gatehouse.sessions.service import SessionManager
from gatehouse.tenants.service import TenantDirectory
from gatehouse.users.service import UserDirectory


SECRET_KEY = "test-secret-key-for-unit-tests"
SUPER_ADMIN_KEY = "test-super-admin-key"

# Cheap argon2 parameters keep the suite fast.
FAST_HASHING = {"hash_time_cost": 1, "hash_memory_cost": 1024, "hash_parallelism": 1}


def make_settings(**overrides) -> GatehouseSettings:
    defaults = {
        "secret_key": SECRET_KEY,
        "super_admin_key": SUPER_ADMIN_KEY,
        "db_url": "sqlite+aiosqlite://",
        **FAST_HASHING,
    }
    defaults.update(overrides)
    return GatehouseSettings(**defaults)


@dataclass
class Services:
    settings: GatehouseSettings
    hasher: CredentialHasher
    codec: TokenCodec
    tenants: TenantDirectory
    sessions: SessionManager
    users: UserDirectory
    reset: PasswordResetFlow
    auth: AuthenticationService
    guard: AuthorizationGuard


def build_services(settings: GatehouseSettings, email_sender=None) -> Services:
    hasher = CredentialHasher(settings)
    codec = TokenCodec(settings)
    tenants = TenantDirectory(settings)
    sessions = SessionManager(settings, codec)
    users = UserDirectory(settings, hasher, tenants, sessions)
    return Services(
        settings=settings,
        hasher=hasher,
        codec=codec,
        tenants=tenants,
        sessions=sessions,
        users=users,
        reset=PasswordResetFlow(settings, tenants, users, sessions, email_sender=email_sender),
        auth=AuthenticationService(
            settings, hasher, codec, tenants, users, sessions, email_sender=email_sender,
        ),
        guard=AuthorizationGuard(codec, tenants),
    )


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def email_sender():
    """Notification sender handed to the services; None disables delivery."""
    return None


@pytest.fixture
def services(settings, email_sender):
    return build_services(settings, email_sender=email_sender)


@pytest.fixture
async def db(settings):
    manager = DatabaseManager(settings)
    await manager.init()
    await manager.create_all()
    yield manager
    await manager.close()


@pytest.fixture
async def tenant_id(db, services):
    """A freshly created tenant ``acme`` with no users yet."""
    async with db.get_session() as session:
        tenant = await services.tenants.create(session, "Acme Inc", "acme")
    return tenant.id


@pytest.fixture
def app():
    """Create a test app with in-memory DB."""
    os.environ["GATEHOUSE_DB_URL"] = "sqlite+aiosqlite://"
    os.environ["GATEHOUSE_SECRET_KEY"] = SECRET_KEY
    os.environ["GATEHOUSE_SUPER_ADMIN_KEY"] = SUPER_ADMIN_KEY
    for name, value in FAST_HASHING.items():
        os.environ[f"GATEHOUSE_{name.upper()}"] = str(value)

    # Clear caches and singletons so new env vars take effect
    from gatehouse.common.config import get_settings
    get_settings.cache_clear()

    from gatehouse.deps import reset_singletons
    reset_singletons()

    from gatehouse.app import create_app
    return create_app()


@pytest.fixture
async def client(app):
    # Manually init DB since ASGITransport doesn't run lifespan
    from gatehouse.deps import get_db
    db = get_db()
    await db.init()
    await db.create_all()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await db.close()


@pytest.fixture
def super_admin_headers():
    return {"X-Gatehouse-Admin-Key": SUPER_ADMIN_KEY}


@pytest.fixture
async def acme(client):
    """Register tenant ``acme`` with admin alice; returns the auth response body."""
    resp = await client.post("/auth/register", json={
        "tenant_name": "Acme Inc",
        "tenant_slug": "acme",
        "email": "alice@acme.test",
        "password": "password123",
        "name": "Alice",
    })
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.fixture
def alice_headers(acme):
    return {"Authorization": f"Bearer {acme['access_token']}"}
