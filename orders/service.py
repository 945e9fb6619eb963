"""
orders/service.py -- Order placement: persistence plus factory submission.

An order is either persisted AND accepted by the factory, or it does not
exist. place_order writes the order, submits it, and deletes it again if the
factory refuses, then re-raises. There is no "confirmed but untracked" state
and no background retry.

The delete is a compensating action rather than a rollback because the
factory call must not run while a database write transaction is open.
"""

from __future__ import annotations

import logging
from typing import Protocol

from core.errors import UpstreamError
from orders.models import FactoryReceipt, Order
from orders.store import OrderStore

logger = logging.getLogger("jwtpizza.orders")


class OrderSubmitter(Protocol):
    def submit(self, order: Order, diner: dict) -> FactoryReceipt: ...


def place_order(store: OrderStore, factory: OrderSubmitter, order: Order, diner: dict) -> tuple[Order, FactoryReceipt]:
    """Persist order, submit it to the factory, and return both.

    Raises NotFoundError (from the store) for unknown menu items and
    UpstreamError when the factory fails; in the latter case the order has
    already been removed when the exception reaches the caller.
    """
    saved = store.create_order(order)
    try:
        receipt = factory.submit(saved, diner)
    except UpstreamError:
        store.delete_order(saved.id)
        logger.warning("Order %d withdrawn after factory failure", saved.id)
        raise
    logger.info("Order %d for diner %d accepted by factory", saved.id, saved.diner_id)
    return saved, receipt
