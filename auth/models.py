"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and the guard
do the work; these types only fix the shape.

Roles are a closed tagged variant rather than a list of role strings:

    Diner                 -- default grant, no scope
    Franchisee(scope)     -- administers the franchise ids in ``scope``
    Admin                 -- global, satisfies every scoped check

The permission engine dispatches on the variant type, so a scoped check can
never forget to look at the scope.

Layer rule: no imports from api/, franchise/, or orders/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union


@dataclass(frozen=True)
class Diner:
    name = "diner"


@dataclass(frozen=True)
class Franchisee:
    scope: frozenset[int] = frozenset()
    name = "franchisee"


@dataclass(frozen=True)
class Admin:
    name = "admin"


Role = Union[Diner, Franchisee, Admin]


@dataclass
class User:
    """A registered account.

    hashed_password is never serialized to clients. roles is filled in by
    UserStore from the user_roles table on every read, so it always reflects
    the current grants.
    """

    name: str
    email: str
    id: int | None = None
    hashed_password: str | None = None
    roles: list[Role] = field(default_factory=list)
    created_at: str | None = None


@dataclass(frozen=True)
class VerifiedCredential:
    """What a valid signature proves: who the token was issued to and which token it is."""

    user_id: int
    token_id: str
    issued_at: int


@dataclass(frozen=True)
class Identity:
    """The authenticated caller attached to a request by the guard.

    Downstream code reads user id and roles from here and never re-derives
    them from the raw credential.
    """

    user: User
    roles: tuple[Role, ...]
    token_id: str

    @property
    def user_id(self) -> int:
        return self.user.id

    def has(self, role_type: type) -> bool:
        return any(isinstance(r, role_type) for r in self.roles)

    @property
    def is_admin(self) -> bool:
        return self.has(Admin)
