"""
auth/permissions.py -- Role-scoped permission checks.

Requirements are small frozen dataclasses:

    Public                     -- no identity needed
    Authenticated              -- any valid, non-revoked identity
    GlobalAdminRequired        -- Admin grant
    FranchiseAdminOf(id)       -- Admin, or a Franchisee whose scope holds id

check() evaluates one requirement and returns Allow or Deny. authorize()
looks an Action up in ACTION_RULES and returns Deny carrying that action's own
message, so every protected route owns its denial text.

Scoped checks dispatch on the role variant type. A Franchisee grant is
evaluated against its scope first; the hierarchy's live admin set is then
consulted for any identity, so a grant written after the guard resolved the
identity still counts within the same request.

Layer rule: no imports from api/, franchise/, or orders/. The hierarchy is
passed in as anything with a franchise_admins(franchise_id) method.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol, Union

from auth.models import Franchisee, Identity

# ---------------------------------------------------------------------------
# Decisions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Allow:
    pass


@dataclass(frozen=True)
class Deny:
    reason: str


Decision = Union[Allow, Deny]

ALLOW = Allow()

# ---------------------------------------------------------------------------
# Requirements
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Public:
    pass


@dataclass(frozen=True)
class Authenticated:
    pass


@dataclass(frozen=True)
class GlobalAdminRequired:
    pass


@dataclass(frozen=True)
class FranchiseAdminOf:
    franchise_id: int


Requirement = Union[Public, Authenticated, GlobalAdminRequired, FranchiseAdminOf]


class Action(str, Enum):
    CREATE_FRANCHISE = "create_franchise"
    DELETE_FRANCHISE = "delete_franchise"
    LIST_FRANCHISES = "list_franchises"
    LIST_USER_FRANCHISES = "list_user_franchises"
    CREATE_STORE = "create_store"
    DELETE_STORE = "delete_store"
    ADD_MENU_ITEM = "add_menu_item"
    CREATE_ORDER = "create_order"


# Scoped requirements (FranchiseAdminOf) are built with the franchise id at check time.
ACTION_RULES: dict[Action, tuple[type, str]] = {
    Action.CREATE_FRANCHISE: (GlobalAdminRequired, "unable to create a franchise"),
    Action.DELETE_FRANCHISE: (GlobalAdminRequired, "unable to delete a franchise"),
    Action.LIST_FRANCHISES: (Public, "unauthorized"),
    Action.LIST_USER_FRANCHISES: (Authenticated, "unauthorized"),
    Action.CREATE_STORE: (FranchiseAdminOf, "unable to create a store"),
    Action.DELETE_STORE: (FranchiseAdminOf, "unable to delete a store"),
    Action.ADD_MENU_ITEM: (GlobalAdminRequired, "unable to add menu item"),
    Action.CREATE_ORDER: (Authenticated, "unauthorized"),
}


class FranchiseAdmins(Protocol):
    def franchise_admins(self, franchise_id: int) -> set[int]: ...


def requirement_for(action: Action, franchise_id: int | None = None) -> Requirement:
    requirement_type, _ = ACTION_RULES[action]
    if requirement_type is not FranchiseAdminOf:
        return requirement_type()
    if franchise_id is None:
        raise ValueError(f"{action.value} requires a franchise id")
    return FranchiseAdminOf(franchise_id)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class PermissionEngine:
    """Evaluates requirements against an identity.

    Usage:
        engine = PermissionEngine(hierarchy)
        decision = engine.authorize(identity, Action.CREATE_STORE, franchise_id=7)
        if isinstance(decision, Deny): ...   # decision.reason == "unable to create a store"
    """

    def __init__(self, hierarchy: FranchiseAdmins | None = None) -> None:
        self._hierarchy = hierarchy

    def check(self, identity: Identity | None, requirement: Requirement) -> Decision:
        if isinstance(requirement, Public):
            return ALLOW
        if identity is None:
            return Deny("unauthorized")
        if isinstance(requirement, Authenticated):
            return ALLOW
        if identity.is_admin:
            return ALLOW
        if isinstance(requirement, GlobalAdminRequired):
            return Deny("admin role required")
        if isinstance(requirement, FranchiseAdminOf):
            return self._check_franchise_admin(identity, requirement.franchise_id)
        raise TypeError(f"Unknown requirement: {requirement!r}")

    def authorize(self, identity: Identity | None, action: Action, franchise_id: int | None = None) -> Decision:
        """check() the action's requirement and replace the reason with the action's message."""
        decision = self.check(identity, requirement_for(action, franchise_id))
        if isinstance(decision, Deny):
            return Deny(ACTION_RULES[action][1])
        return decision

    def _check_franchise_admin(self, identity: Identity, franchise_id: int) -> Decision:
        for role in identity.roles:
            if isinstance(role, Franchisee) and franchise_id in role.scope:
                return ALLOW
        if self._hierarchy is not None and identity.user_id in self._hierarchy.franchise_admins(franchise_id):
            return ALLOW
        return Deny("franchise scope required")

