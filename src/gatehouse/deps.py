"""Dependency injection singletons for Gatehouse."""

from gatehouse.auth.service import AuthenticationService
from gatehouse.common.config import get_settings
from gatehouse.common.database import DatabaseManager
from gatehouse.common.security import AuthorizationGuard
from gatehouse.credentials.hasher import CredentialHasher
from gatehouse.credentials.tokens import TokenCodec
from gatehouse.notifications.email_delivery import EmailSender
from gatehouse.password_reset.service import PasswordResetFlow
from gatehouse.sessions.service import SessionManager
from gatehouse.tenants.service import TenantDirectory
from gatehouse.users.service import UserDirectory

_db: DatabaseManager | None = None
_hasher: CredentialHasher | None = None
_codec: TokenCodec | None = None
_email: EmailSender | None = None
_tenants: TenantDirectory | None = None
_sessions: SessionManager | None = None
_users: UserDirectory | None = None
_reset: PasswordResetFlow | None = None
_auth: AuthenticationService | None = None
_guard: AuthorizationGuard | None = None


def get_db() -> DatabaseManager:
    global _db
    if _db is None:
        _db = DatabaseManager(get_settings())
    return _db


def get_hasher() -> CredentialHasher:
    global _hasher
    if _hasher is None:
        _hasher = CredentialHasher(get_settings())
    return _hasher


def get_codec() -> TokenCodec:
    global _codec
    if _codec is None:
        _codec = TokenCodec(get_settings())
    return _codec


def get_email_sender() -> EmailSender:
    global _email
    if _email is None:
        settings = get_settings()
        _email = EmailSender(
            provider=settings.email_provider,
            api_key=settings.email_api_key,
            from_email=settings.email_from,
            from_name=settings.email_from_name,
            frontend_url=settings.frontend_url,
        )
    return _email


def get_tenant_directory() -> TenantDirectory:
    global _tenants
    if _tenants is None:
        _tenants = TenantDirectory(get_settings())
    return _tenants


def get_session_manager() -> SessionManager:
    global _sessions
    if _sessions is None:
        _sessions = SessionManager(get_settings(), get_codec())
    return _sessions


def get_user_directory() -> UserDirectory:
    global _users
    if _users is None:
        _users = UserDirectory(
            get_settings(),
            get_hasher(),
            get_tenant_directory(),
            get_session_manager(),
        )
    return _users


def get_password_reset_flow() -> PasswordResetFlow:
    global _reset
    if _reset is None:
        _reset = PasswordResetFlow(
            get_settings(),
            get_tenant_directory(),
            get_user_directory(),
            get_session_manager(),
            email_sender=get_email_sender(),
        )
    return _reset


def get_auth_service() -> AuthenticationService:
    global _auth
    if _auth is None:
        _auth = AuthenticationService(
            get_settings(),
            get_hasher(),
            get_codec(),
            get_tenant_directory(),
            get_user_directory(),
            get_session_manager(),
            email_sender=get_email_sender(),
        )
    return _auth


def get_guard() -> AuthorizationGuard:
    global _guard
    if _guard is None:
        _guard = AuthorizationGuard(get_codec(), get_tenant_directory())
    return _guard


def reset_singletons() -> None:
    """Reset all singletons (for testing)."""
    global _db, _hasher, _codec, _email, _tenants, _sessions, _users, _reset, _auth, _guard
    _db = None
    _hasher = None
    _codec = None
    _email = None
    _tenants = None
    _sessions = None
    _users = None
    _reset = None
    _auth = None
    _guard = None
