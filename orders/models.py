"""
orders/models.py -- Domain dataclasses for the menu and diner orders.

Pure data containers with zero logic. Persistence rules live in
orders/store.py; the factory hand-off lives in orders/factory.py.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class MenuItem:
    title: str
    description: str
    price: float
    image: str
    id: int | None = None


@dataclass
class OrderItem:
    """One line of an order. description and price are copied at order time."""

    menu_id: int
    description: str
    price: float
    id: int | None = None


@dataclass
class Order:
    """A diner's order against one store.

    id and date are None until the order is written to the database.
    """

    diner_id: int
    franchise_id: int
    store_id: int
    items: list[OrderItem] = field(default_factory=list)
    id: int | None = None
    date: str | None = None


@dataclass(frozen=True)
class FactoryReceipt:
    """What the factory returns for an accepted order.

    jwt is the factory's signed proof of the order; report_url is only present
    when the factory wants the caller to follow up on a problem.
    """

    jwt: str
    report_url: str | None = None
