"""
api/routes/order.py -- Menu and diner order endpoints.

Routes:
  GET  /api/order/menu  -- public menu
  PUT  /api/order/menu  -- add a menu item (Admin); returns the full menu
  GET  /api/order       -- the caller's orders, paginated
  POST /api/order       -- place an order; returns {order, jwt}

Order placement is all-or-nothing with respect to the factory: see
orders/service.py. A factory failure surfaces as a 500 with the factory's
report URL when it provided one, and the order is not kept.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from api.models import MenuItemIn, MenuItemOut, OrderCreate, OrderListResponse, OrderOut, OrderResponse
from auth.dependencies import get_identity, require_permission
from auth.models import Identity
from auth.permissions import Action
from core.errors import NotFoundError
from franchise.store import FranchiseStore
from orders.factory import OrderFactoryClient
from orders.models import MenuItem, Order, OrderItem
from orders.service import place_order
from orders.store import OrderStore

router = APIRouter()


# ---------------------------------------------------------------------------
# Menu
# ---------------------------------------------------------------------------


@router.get("/order/menu", response_model=list[MenuItemOut])
def get_menu(request: Request) -> list[MenuItemOut]:
    orders: OrderStore = request.app.state.orders
    return [MenuItemOut.from_item(i) for i in orders.get_menu()]


@router.put("/order/menu", response_model=list[MenuItemOut])
def add_menu_item(
    request: Request,
    body: MenuItemIn,
    identity: Identity = Depends(get_identity),
) -> list[MenuItemOut]:
    """Append an item to the menu and return the whole menu."""
    require_permission(request, identity, Action.ADD_MENU_ITEM)
    orders: OrderStore = request.app.state.orders
    menu = orders.add_menu_item(
        MenuItem(title=body.title, description=body.description, price=body.price, image=body.image)
    )
    return [MenuItemOut.from_item(i) for i in menu]


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


@router.get("/order", response_model=OrderListResponse)
def list_orders(
    request: Request,
    page: int = Query(default=0, ge=0),
    identity: Identity = Depends(get_identity),
) -> OrderListResponse:
    orders: OrderStore = request.app.state.orders
    found, more = orders.list_orders(
        identity.user_id, page=page, limit=request.app.state.settings.order_page_limit
    )
    return OrderListResponse(
        diner_id=identity.user_id,
        orders=[OrderOut.from_order(o) for o in found],
        page=page,
        more=more,
    )


@router.post("/order", response_model=OrderResponse)
def create_order(
    request: Request,
    body: OrderCreate,
    identity: Identity = Depends(get_identity),
) -> JSONResponse:
    """Persist an order for the caller and submit it to the factory."""
    require_permission(request, identity, Action.CREATE_ORDER)
    hierarchy: FranchiseStore = request.app.state.franchises
    orders: OrderStore = request.app.state.orders
    factory: OrderFactoryClient = request.app.state.factory

    if hierarchy.get_store(body.franchise_id, body.store_id) is None:
        raise NotFoundError("store not found")

    order = Order(
        diner_id=identity.user_id,
        franchise_id=body.franchise_id,
        store_id=body.store_id,
        items=[OrderItem(menu_id=i.menu_id, description=i.description, price=i.price) for i in body.items],
    )
    diner = {"id": identity.user.id, "name": identity.user.name, "email": identity.user.email}
    saved, receipt = place_order(orders, factory, order, diner)
    return JSONResponse(
        content=OrderResponse(
            order=OrderOut.from_order(saved),
            jwt=receipt.jwt,
            report_url=receipt.report_url,
        ).model_dump(by_alias=True, exclude_none=True)
    )
