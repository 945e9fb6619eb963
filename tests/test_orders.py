"""Unit tests for orders/ -- menu and order persistence, factory client, placement.

Covers:
- add_menu_item() returns the whole menu in insertion order
- create_order() rejects unknown menu ids and writes nothing
- list_orders() pagination and revenue_by_store() totals
- OrderFactoryClient.submit() with requests mocked at the session level
- place_order() keeps the order on success and withdraws it on factory failure
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
import requests
from sqlalchemy.engine import Engine

from core.errors import NotFoundError, UpstreamError
from orders.factory import FACTORY_FAILURE_MESSAGE, OrderFactoryClient, order_payload
from orders.models import FactoryReceipt, MenuItem, Order, OrderItem
from orders.service import place_order
from orders.store import OrderStore


@pytest.fixture
def orders(engine: Engine) -> OrderStore:
    store = OrderStore(engine)
    store.add_menu_item(MenuItem(title="Veggie", description="A garden of delight", price=0.0038, image="pizza1.png"))
    store.add_menu_item(MenuItem(title="Pepperoni", description="Spicy treat", price=0.0042, image="pizza2.png"))
    return store


def _order(diner_id: int = 1, store_id: int = 1, menu_id: int = 1, price: float = 0.05) -> Order:
    return Order(
        diner_id=diner_id,
        franchise_id=1,
        store_id=store_id,
        items=[OrderItem(menu_id=menu_id, description="Veggie", price=price)],
    )


def _response(status: int, body) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.ok = 200 <= status < 400
    resp.json.return_value = body
    return resp


# ---------------------------------------------------------------------------
# OrderStore
# ---------------------------------------------------------------------------


class TestMenu:
    def test_menu_order(self, orders: OrderStore) -> None:
        menu = orders.get_menu()
        assert [m.title for m in menu] == ["Veggie", "Pepperoni"]
        assert all(m.id is not None for m in menu)

    def test_add_returns_full_menu(self, orders: OrderStore) -> None:
        menu = orders.add_menu_item(MenuItem(title="Student", description="No topping", price=0.0001, image="p.png"))
        assert len(menu) == 3
        assert menu[-1].title == "Student"


class TestOrderStore:
    def test_create(self, orders: OrderStore) -> None:
        saved = orders.create_order(_order())
        assert saved.id is not None
        assert saved.date
        fetched = orders.get_order(saved.id)
        assert fetched.items[0].menu_id == 1
        assert fetched.items[0].price == 0.05

    def test_unknown_menu_item(self, orders: OrderStore) -> None:
        with pytest.raises(NotFoundError, match="menu item 99 not found"):
            orders.create_order(_order(menu_id=99))
        found, _more = orders.list_orders(1)
        assert found == []

    def test_delete(self, orders: OrderStore) -> None:
        saved = orders.create_order(_order())
        assert orders.delete_order(saved.id) is True
        assert orders.get_order(saved.id) is None
        assert orders.delete_order(saved.id) is False

    def test_list_pagination(self, orders: OrderStore) -> None:
        for _ in range(3):
            orders.create_order(_order(diner_id=7))
        orders.create_order(_order(diner_id=8))
        page0, more0 = orders.list_orders(7, page=0, limit=2)
        page1, more1 = orders.list_orders(7, page=1, limit=2)
        assert len(page0) == 2 and more0 is True
        assert len(page1) == 1 and more1 is False
        assert all(o.diner_id == 7 for o in page0 + page1)

    def test_revenue(self, orders: OrderStore) -> None:
        orders.create_order(_order(store_id=1, price=0.05))
        orders.create_order(_order(store_id=1, price=0.10))
        revenue = orders.revenue_by_store([1, 2])
        assert revenue[1] == pytest.approx(0.15)
        assert revenue[2] == 0.0


# ---------------------------------------------------------------------------
# OrderFactoryClient
# ---------------------------------------------------------------------------


class TestFactoryClient:
    def _saved(self) -> Order:
        order = _order()
        order.id = 12
        order.date = "2024-01-01T00:00:00+00:00"
        return order

    def test_submit_success(self) -> None:
        client = OrderFactoryClient("https://factory.test/", "key123", timeout=2.0)
        with patch.object(client._session, "post", return_value=_response(200, {"jwt": "a.b.c"})) as post:
            receipt = client.submit(self._saved(), {"id": 1, "name": "d", "email": "d@jwt.com"})

        assert receipt == FactoryReceipt(jwt="a.b.c")
        args, kwargs = post.call_args
        assert args[0] == "https://factory.test/api/order"
        assert kwargs["headers"]["Authorization"] == "Bearer key123"
        assert kwargs["timeout"] == 2.0
        assert kwargs["json"]["order"]["id"] == 12
        assert kwargs["json"]["diner"]["email"] == "d@jwt.com"

    def test_rejection_carries_report_url(self) -> None:
        client = OrderFactoryClient("https://factory.test", "key")
        body = {"message": "nope", "reportUrl": "https://factory.test/report/9"}
        with patch.object(client._session, "post", return_value=_response(500, body)):
            with pytest.raises(UpstreamError) as exc_info:
                client.submit(self._saved(), {})
        assert exc_info.value.message == FACTORY_FAILURE_MESSAGE
        assert exc_info.value.report_url == "https://factory.test/report/9"

    def test_transport_error(self) -> None:
        client = OrderFactoryClient("https://factory.test", "key")
        with patch.object(client._session, "post", side_effect=requests.Timeout("slow")):
            with pytest.raises(UpstreamError):
                client.submit(self._saved(), {})

    def test_missing_jwt(self) -> None:
        client = OrderFactoryClient("https://factory.test", "key")
        with patch.object(client._session, "post", return_value=_response(200, {"ok": True})):
            with pytest.raises(UpstreamError):
                client.submit(self._saved(), {})

    def test_payload_is_camel_case(self) -> None:
        payload = order_payload(self._saved())
        assert payload["dinerId"] == 1
        assert payload["storeId"] == 1
        assert payload["items"][0]["menuId"] == 1


# ---------------------------------------------------------------------------
# place_order
# ---------------------------------------------------------------------------


class TestPlaceOrder:
    def test_success_keeps_order(self, orders: OrderStore) -> None:
        factory = MagicMock()
        factory.submit.return_value = FactoryReceipt(jwt="a.b.c")
        saved, receipt = place_order(orders, factory, _order(), {"id": 1})
        assert receipt.jwt == "a.b.c"
        assert orders.get_order(saved.id) is not None
        submitted = factory.submit.call_args.args[0]
        assert submitted.id == saved.id

    def test_factory_failure_withdraws_order(self, orders: OrderStore) -> None:
        factory = MagicMock()
        factory.submit.side_effect = UpstreamError(FACTORY_FAILURE_MESSAGE, report_url="https://r")
        with pytest.raises(UpstreamError):
            place_order(orders, factory, _order(diner_id=3), {"id": 3})
        found, _more = orders.list_orders(3)
        assert found == []

    def test_unknown_menu_never_reaches_factory(self, orders: OrderStore) -> None:
        factory = MagicMock()
        with pytest.raises(NotFoundError):
            place_order(orders, factory, _order(menu_id=42), {"id": 1})
        factory.submit.assert_not_called()
