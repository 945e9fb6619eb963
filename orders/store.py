"""
orders/store.py -- SQLAlchemy-backed persistence for the menu and diner orders.

Pattern: Repository + Data Mapper (same as auth/store.py and
franchise/store.py). OrderStore is the repository; _row_to_* are the mappers.

Orders reference franchise and store ids without a foreign key: an order is
a historical record and must survive the deletion of the store it was placed
at. Order items keep a copy of the description and price they were sold at.

Security: all queries use bound parameters. No f-strings in SQL.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import Column, Float, ForeignKey, Integer, String, Table, Text, func, select
from sqlalchemy.engine import Engine

from core.db import metadata
from core.errors import NotFoundError
from orders.models import MenuItem, Order, OrderItem

logger = logging.getLogger("jwtpizza.orders")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_menu = Table(
    "menu",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(255), nullable=False),
    Column("description", Text, nullable=False),
    Column("image", String(1024), nullable=False),
    Column("price", Float, nullable=False),
)

_orders = Table(
    "diner_orders",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("diner_id", Integer, nullable=False, index=True),
    Column("franchise_id", Integer, nullable=False),
    Column("store_id", Integer, nullable=False, index=True),
    Column("date", String(32), nullable=False),
)

_order_items = Table(
    "order_items",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("order_id", Integer, ForeignKey("diner_orders.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("menu_id", Integer, nullable=False),
    Column("description", Text, nullable=False),
    Column("price", Float, nullable=False),
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class OrderStore:
    """Repository for MenuItem and Order entities.

    Usage:
        store = OrderStore(engine)
        menu = store.add_menu_item(MenuItem(title="Veggie", description="A garden of delight", price=0.0038, image="pizza1.png"))
        order = store.create_order(Order(diner_id=3, franchise_id=1, store_id=1, items=[...]))
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        metadata.create_all(self.engine, tables=[_menu, _orders, _order_items])

    # ------------------------------------------------------------------
    # Menu
    # ------------------------------------------------------------------

    def get_menu(self) -> list[MenuItem]:
        """Return the whole menu in insertion order."""
        with self.engine.connect() as conn:
            rows = conn.execute(_menu.select().order_by(_menu.c.id)).fetchall()
        return [_row_to_menu_item(r) for r in rows]

    def add_menu_item(self, item: MenuItem) -> list[MenuItem]:
        """Append an item and return the full updated menu."""
        with self.engine.begin() as conn:
            conn.execute(
                _menu.insert().values(
                    title=item.title,
                    description=item.description,
                    image=item.image,
                    price=item.price,
                )
            )
        return self.get_menu()

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def create_order(self, order: Order) -> Order:
        """Insert an order with its items in one transaction.

        Raises NotFoundError if any item references a menu id that does not
        exist; nothing is written in that case.
        """
        menu_ids = {i.menu_id for i in order.items}
        date = _now_iso()
        with self.engine.begin() as conn:
            known = {
                r.id for r in conn.execute(select(_menu.c.id).where(_menu.c.id.in_(list(menu_ids)))).fetchall()
            }
            missing = menu_ids - known
            if missing:
                raise NotFoundError(f"menu item {min(missing)} not found")
            result = conn.execute(
                _orders.insert().values(
                    diner_id=order.diner_id,
                    franchise_id=order.franchise_id,
                    store_id=order.store_id,
                    date=date,
                )
            )
            order_id = result.inserted_primary_key[0]
            if order.items:
                conn.execute(
                    _order_items.insert(),
                    [
                        {"order_id": order_id, "menu_id": i.menu_id, "description": i.description, "price": i.price}
                        for i in order.items
                    ],
                )
        return Order(
            id=order_id,
            diner_id=order.diner_id,
            franchise_id=order.franchise_id,
            store_id=order.store_id,
            date=date,
            items=list(order.items),
        )

    def delete_order(self, order_id: int) -> bool:
        """Remove an order and its items. Used to undo an order the factory refused."""
        with self.engine.begin() as conn:
            conn.execute(_order_items.delete().where(_order_items.c.order_id == order_id))
            result = conn.execute(_orders.delete().where(_orders.c.id == order_id))
        return result.rowcount > 0

    def get_order(self, order_id: int) -> Order | None:
        with self.engine.connect() as conn:
            row = conn.execute(_orders.select().where(_orders.c.id == order_id)).fetchone()
            if row is None:
                return None
            items = conn.execute(
                _order_items.select().where(_order_items.c.order_id == order_id).order_by(_order_items.c.id)
            ).fetchall()
        return _row_to_order(row, items)

    def list_orders(self, diner_id: int, page: int = 0, limit: int = 10) -> tuple[list[Order], bool]:
        """Return one page of a diner's orders (oldest first) and whether more exist."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _orders.select()
                .where(_orders.c.diner_id == diner_id)
                .order_by(_orders.c.id)
                .limit(limit + 1)
                .offset(page * limit)
            ).fetchall()
            more = len(rows) > limit
            rows = rows[:limit]
            items_by_order: dict[int, list] = {r.id: [] for r in rows}
            if items_by_order:
                for item in conn.execute(
                    _order_items.select()
                    .where(_order_items.c.order_id.in_(list(items_by_order)))
                    .order_by(_order_items.c.id)
                ).fetchall():
                    items_by_order[item.order_id].append(item)
        return [_row_to_order(r, items_by_order[r.id]) for r in rows], more

    def revenue_by_store(self, store_ids: list[int]) -> dict[int, float]:
        """Sum of item prices sold at each store. Stores with no sales map to 0.0."""
        revenue = {sid: 0.0 for sid in store_ids}
        if not store_ids:
            return revenue
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(_orders.c.store_id, func.sum(_order_items.c.price).label("total"))
                .join(_order_items, _order_items.c.order_id == _orders.c.id)
                .where(_orders.c.store_id.in_(list(store_ids)))
                .group_by(_orders.c.store_id)
            ).fetchall()
        for row in rows:
            revenue[row.store_id] = float(row.total or 0.0)
        return revenue

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_menu_item(row) -> MenuItem:
    return MenuItem(
        id=row.id,
        title=row.title,
        description=row.description,
        image=row.image,
        price=row.price,
    )


def _row_to_order(row, item_rows) -> Order:
    return Order(
        id=row.id,
        diner_id=row.diner_id,
        franchise_id=row.franchise_id,
        store_id=row.store_id,
        date=row.date,
        items=[OrderItem(id=i.id, menu_id=i.menu_id, description=i.description, price=i.price) for i in item_rows],
    )
