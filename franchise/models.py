"""
franchise/models.py -- Domain dataclasses for the franchise hierarchy.

Pure data containers. All hierarchy rules (cascade deletes, admin resolution,
store parentage) live in franchise/store.py.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class FranchiseAdmin:
    """A user who administers a franchise, as shown in franchise responses."""

    id: int
    name: str
    email: str


@dataclass
class Store:
    """An ordering location. Its lifetime is bounded by its franchise."""

    franchise_id: int
    name: str
    id: int | None = None


@dataclass
class Franchise:
    """A named tenant owning an ordered list of stores.

    id is None before the record is written to the database.
    """

    name: str
    id: int | None = None
    admins: list[FranchiseAdmin] = field(default_factory=list)
    stores: list[Store] = field(default_factory=list)
