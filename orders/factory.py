"""
orders/factory.py -- Client for the external pizza factory.

The factory accepts a persisted order and answers with a signed JWT that
proves the order was accepted for fulfilment. Everything about the factory
beyond this one call is external.

Contract:
  POST {factory_url}/api/order
  Authorization: Bearer {factory_api_key}
  {"diner": {"id", "name", "email"}, "order": {...}}
  -> 200 {"jwt": "...", "reportUrl": "..."?}

Every call is bounded by factory_timeout_seconds so a slow factory cannot pin
a request thread. Any transport error, non-2xx status, or response without a
jwt raises UpstreamError; nothing here returns a partial result.
"""

from __future__ import annotations

import logging

import requests

from core.errors import UpstreamError
from orders.models import FactoryReceipt, Order

logger = logging.getLogger("jwtpizza.factory")

FACTORY_FAILURE_MESSAGE = "Failed to fulfill order at factory"


class OrderFactoryClient:
    """HTTP client for order submission.

    A requests.Session is held per client for connection pooling.
    max_redirects=3 replaces the requests default of 30 -- the factory is a
    known endpoint and has no reason to bounce us around.
    """

    def __init__(self, base_url: str, api_key: str, timeout: float = 10.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._session = requests.Session()
        self._session.max_redirects = 3

    def submit(self, order: Order, diner: dict) -> FactoryReceipt:
        """Send order to the factory and return its receipt.

        Args:
            order: The persisted order (must have an id).
            diner: {"id", "name", "email"} of the ordering user.

        Raises UpstreamError when the factory cannot be reached, refuses the
        order, or answers without a jwt.
        """
        body = {"diner": diner, "order": order_payload(order)}
        try:
            resp = self._session.post(
                f"{self.base_url}/api/order",
                json=body,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning("Factory unreachable for order %s: %s", order.id, e)
            raise UpstreamError(FACTORY_FAILURE_MESSAGE) from e

        try:
            data = resp.json()
        except ValueError:
            data = {}
        report_url = data.get("reportUrl") if isinstance(data, dict) else None

        if not resp.ok:
            logger.warning("Factory rejected order %s with status %d", order.id, resp.status_code)
            raise UpstreamError(FACTORY_FAILURE_MESSAGE, report_url=report_url)

        jwt = data.get("jwt") if isinstance(data, dict) else None
        if not isinstance(jwt, str) or not jwt:
            logger.warning("Factory response for order %s carried no jwt", order.id)
            raise UpstreamError(FACTORY_FAILURE_MESSAGE, report_url=report_url)
        return FactoryReceipt(jwt=jwt, report_url=report_url)

    def close(self) -> None:
        self._session.close()


def order_payload(order: Order) -> dict:
    """Serialize an order in the camelCase shape the factory and clients share."""
    return {
        "id": order.id,
        "dinerId": order.diner_id,
        "franchiseId": order.franchise_id,
        "storeId": order.store_id,
        "date": order.date,
        "items": [{"menuId": i.menu_id, "description": i.description, "price": i.price} for i in order.items],
    }
