"""
Roles and the per-request caller identity.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Role(str, Enum):
    """Closed role set, declared in descending privilege order."""

    ADMINISTRATOR = "administrator"
    GLOBAL_MANAGER = "global_manager"
    LOCAL_MANAGER = "local_manager"
    USER = "user"

    @classmethod
    def parse(cls, value: Any) -> Role | None:
        """Return the matching role, or ``None`` for anything outside the set."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


# Roles that see every city and manage users
ELEVATED_ROLES = frozenset({Role.ADMINISTRATOR, Role.GLOBAL_MANAGER})


def is_elevated(role: Role | str | None) -> bool:
    return Role.parse(role) in ELEVATED_ROLES


@dataclass(frozen=True)
class Identity:
    """The authenticated caller, rebuilt from storage on every request."""

    id: int
    name: str
    email: str
    role: Role
    city_ids: frozenset[int] = field(default_factory=frozenset)

    @property
    def is_elevated(self) -> bool:
        return self.role in ELEVATED_ROLES

    @classmethod
    def from_user(cls, user: Any) -> Identity:
        """Build an identity from a ``User`` row.

        Raises ``ValueError`` when the stored role is not a known role.
        """
        role = Role.parse(user.role)
        if role is None:
            raise ValueError(f"Invalid role: {user.role}")
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            role=role,
            city_ids=frozenset(c.id for c in user.cities),
        )
