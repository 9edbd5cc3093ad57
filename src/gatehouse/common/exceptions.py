"""Gatehouse exception hierarchy.

Every error raised by the identity core derives from ``GatehouseError`` and
belongs to exactly one family (validation, conflict, not-found,
authentication, authorization, invariant, internal).  The family decides the
HTTP status the API layer answers with.
"""


class GatehouseError(Exception):
    """Base exception for all Gatehouse errors."""

    status_code = 500

    def __init__(self, message: str = "", code: str = "GATEHOUSE_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


# ── Families ──


class ValidationError(GatehouseError):
    """Malformed user input; never reaches persistence."""

    status_code = 422

    def __init__(self, message: str = "Invalid input", code: str = "VALIDATION_ERROR"):
        super().__init__(message, code)


class ConflictError(GatehouseError):
    """Uniqueness violation or reuse of a consumed credential."""

    status_code = 409

    def __init__(self, message: str = "Conflict", code: str = "CONFLICT"):
        super().__init__(message, code)


class NotFoundError(GatehouseError):
    status_code = 404

    def __init__(self, message: str = "Not found", code: str = "NOT_FOUND"):
        super().__init__(message, code)


class AuthenticationError(GatehouseError):
    """Bad credentials or an unusable token.

    Messages are deliberately coarse so callers cannot enumerate accounts.
    """

    status_code = 401

    def __init__(self, message: str = "Authentication failed", code: str = "UNAUTHENTICATED"):
        super().__init__(message, code)


class AuthorizationError(GatehouseError):
    """Caller is authenticated but lacks the role or tenant for the operation."""

    status_code = 403

    def __init__(self, message: str = "Insufficient permissions", code: str = "FORBIDDEN"):
        super().__init__(message, code)


class InvariantViolation(GatehouseError):
    status_code = 409

    def __init__(self, message: str = "Operation violates an invariant", code: str = "INVARIANT_VIOLATION"):
        super().__init__(message, code)


class InternalError(GatehouseError):
    status_code = 500

    def __init__(self, message: str = "Internal error", code: str = "INTERNAL_ERROR"):
        super().__init__(message, code)


# ── Validation ──


class SlugInvalidError(ValidationError):
    def __init__(
        self,
        message: str = "Invalid slug format. Must be lowercase, alphanumeric with hyphens, 3-63 characters",
    ):
        super().__init__(message, code="SLUG_INVALID")


class DomainInvalidError(ValidationError):
    def __init__(self, message: str = "Invalid domain format"):
        super().__init__(message, code="DOMAIN_INVALID")


class EmailInvalidError(ValidationError):
    def __init__(self, message: str = "Invalid email format"):
        super().__init__(message, code="EMAIL_INVALID")


class PasswordInvalidError(ValidationError):
    def __init__(self, message: str = "Password must be at least 8 characters"):
        super().__init__(message, code="INVALID_PASSWORD")


class RoleInvalidError(ValidationError):
    def __init__(self, message: str = "Invalid role"):
        super().__init__(message, code="ROLE_INVALID")


class TenantRequiredError(ValidationError):
    status_code = 400

    def __init__(self, message: str = "Tenant identification required"):
        super().__init__(message, code="TENANT_REQUIRED")


# ── Conflicts ──


class SlugExistsError(ConflictError):
    def __init__(self, message: str = "Tenant slug already exists"):
        super().__init__(message, code="SLUG_EXISTS")


class DomainExistsError(ConflictError):
    def __init__(self, message: str = "Tenant domain already exists"):
        super().__init__(message, code="DOMAIN_EXISTS")


class EmailExistsError(ConflictError):
    def __init__(self, message: str = "Email already exists for this tenant"):
        super().__init__(message, code="EMAIL_EXISTS")


class UserLimitError(ConflictError):
    def __init__(self, message: str = "User limit reached for current plan"):
        super().__init__(message, code="USER_LIMIT_REACHED")


class ResetTokenUsedError(ConflictError):
    def __init__(self, message: str = "Reset token already used"):
        super().__init__(message, code="RESET_TOKEN_USED")


# ── Not found ──


class TenantNotFoundError(NotFoundError):
    def __init__(self, message: str = "Tenant not found"):
        super().__init__(message, code="TENANT_NOT_FOUND")


class UserNotFoundError(NotFoundError):
    def __init__(self, message: str = "User not found"):
        super().__init__(message, code="USER_NOT_FOUND")


# ── Authentication ──


class InvalidCredentialsError(AuthenticationError):
    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message, code="INVALID_CREDENTIALS")


class MissingAuthorizationError(AuthenticationError):
    def __init__(self, message: str = "Missing authorization header"):
        super().__init__(message, code="MISSING_AUTHORIZATION")


class InvalidTokenError(AuthenticationError):
    def __init__(self, message: str = "Invalid or expired token"):
        super().__init__(message, code="INVALID_TOKEN")


class InvalidRefreshTokenError(AuthenticationError):
    def __init__(self, message: str = "Invalid refresh token"):
        super().__init__(message, code="INVALID_REFRESH_TOKEN")


class TokenExpiredError(AuthenticationError):
    def __init__(self, message: str = "Refresh token expired"):
        super().__init__(message, code="TOKEN_EXPIRED")


class InvalidResetTokenError(AuthenticationError):
    def __init__(self, message: str = "Invalid or expired reset token"):
        super().__init__(message, code="INVALID_RESET_TOKEN")


class AccountDisabledError(AuthenticationError):
    status_code = 403

    def __init__(self, message: str = "User account is disabled"):
        super().__init__(message, code="ACCOUNT_DISABLED")


class WrongPasswordError(AuthenticationError):
    status_code = 400

    def __init__(self, message: str = "Incorrect password"):
        super().__init__(message, code="WRONG_PASSWORD")


# ── Authorization ──


class InsufficientRoleError(AuthorizationError):
    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message, code="INSUFFICIENT_ROLE")


class InvalidAdminKeyError(AuthorizationError):
    def __init__(self, message: str = "Invalid super-admin key"):
        super().__init__(message, code="INVALID_ADMIN_KEY")


# ── Invariants ──


class LastAdminError(InvariantViolation):
    def __init__(self, message: str = "Cannot delete or deactivate the last admin"):
        super().__init__(message, code="LAST_ADMIN")


class CannotDeleteSelfError(InvariantViolation):
    def __init__(self, message: str = "Cannot delete your own account"):
        super().__init__(message, code="CANNOT_DELETE_SELF")


# ── Internal ──


class HashingError(InternalError):
    def __init__(self, message: str = "Failed to hash password"):
        super().__init__(message, code="HASHING_FAILED")


class SigningError(InternalError):
    def __init__(self, message: str = "Failed to sign token"):
        super().__init__(message, code="SIGNING_FAILED")
