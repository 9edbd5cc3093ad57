"""User roles."""

from enum import Enum

from gatehouse.common.exceptions import RoleInvalidError


class Role(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    AGENT = "agent"
    VIEWER = "viewer"

    @classmethod
    def parse(cls, value: "str | Role") -> "Role":
        """Validate a role once at the boundary."""
        if isinstance(value, Role):
            return value
        try:
            return cls(value)
        except ValueError:
            raise RoleInvalidError(f"Invalid role: {value!r}") from None

    @property
    def is_admin(self) -> bool:
        return self in ADMIN_ROLES


# Roles that count towards a tenant's administrator population.
ADMIN_ROLES = frozenset({Role.OWNER, Role.ADMIN})
