"""
api/routes/franchise.py -- Franchise and store management.

Routes:
  GET    /api/franchise                          -- public, paginated listing
  GET    /api/franchise/{user_id}                -- franchises a user administers
  POST   /api/franchise                          -- create franchise (Admin)
  DELETE /api/franchise/{franchise_id}           -- delete franchise + stores (Admin)
  POST   /api/franchise/{franchise_id}/store     -- create store (Admin or franchisee of id)
  DELETE /api/franchise/{franchise_id}/store/{store_id}  -- delete store (same)

Check order on every mutating route: authenticate (get_identity) ->
authorize (require_permission) -> touch the hierarchy. A caller without scope
gets 403 before the store can answer 404.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from api.models import FranchiseCreate, FranchiseListResponse, FranchiseOut, MessageResponse, StoreCreate, StoreOut
from auth.dependencies import get_identity, require_permission, try_get_identity
from auth.models import Identity
from auth.permissions import Action
from franchise.store import FranchiseStore
from orders.store import OrderStore

router = APIRouter()


# ---------------------------------------------------------------------------
# GET /franchise -- public listing
# ---------------------------------------------------------------------------


@router.get("/franchise", response_model=FranchiseListResponse, response_model_exclude_none=True)
def list_franchises(
    request: Request,
    page: int = Query(default=0, ge=0),
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    name: str = Query(default="*", max_length=255),
    identity: Optional[Identity] = Depends(try_get_identity),
) -> FranchiseListResponse:
    """Return one page of franchises with their stores.

    Anyone may list. Admins additionally see each franchise's admins.
    """
    require_permission(request, identity, Action.LIST_FRANCHISES)
    hierarchy: FranchiseStore = request.app.state.franchises
    page_size = limit or request.app.state.settings.franchise_page_limit
    is_admin = identity is not None and identity.is_admin
    franchises, more = hierarchy.list_franchises(
        page=page, limit=page_size, name_filter=name, include_admins=is_admin
    )
    return FranchiseListResponse(
        franchises=[FranchiseOut.from_franchise(f, with_admins=is_admin) for f in franchises],
        more=more,
    )


# ---------------------------------------------------------------------------
# GET /franchise/{user_id} -- franchises administered by a user
# ---------------------------------------------------------------------------


@router.get("/franchise/{user_id}", response_model=list[FranchiseOut], response_model_exclude_none=True)
def list_user_franchises(
    request: Request,
    user_id: int,
    identity: Identity = Depends(get_identity),
) -> list[FranchiseOut]:
    """Return the franchises user_id administers, with store revenue.

    Only the user themself or an Admin sees anything; everyone else gets an
    empty list rather than an error.
    """
    require_permission(request, identity, Action.LIST_USER_FRANCHISES)
    if identity.user_id != user_id and not identity.is_admin:
        return []
    hierarchy: FranchiseStore = request.app.state.franchises
    orders: OrderStore = request.app.state.orders
    franchises = hierarchy.user_franchises(user_id)
    revenue = orders.revenue_by_store([s.id for f in franchises for s in f.stores])
    return [FranchiseOut.from_franchise(f, revenue=revenue) for f in franchises]


# ---------------------------------------------------------------------------
# POST /franchise -- create a franchise
# ---------------------------------------------------------------------------


@router.post("/franchise", response_model=FranchiseOut, response_model_exclude_none=True)
def create_franchise(
    request: Request,
    body: FranchiseCreate,
    identity: Identity = Depends(get_identity),
) -> FranchiseOut:
    """Create a franchise and make each listed email a franchisee of it."""
    require_permission(request, identity, Action.CREATE_FRANCHISE)
    hierarchy: FranchiseStore = request.app.state.franchises
    franchise = hierarchy.create_franchise(body.name, [a.email for a in body.admins])
    return FranchiseOut.from_franchise(franchise)


# ---------------------------------------------------------------------------
# DELETE /franchise/{franchise_id}
# ---------------------------------------------------------------------------


@router.delete("/franchise/{franchise_id}", response_model=MessageResponse)
def delete_franchise(
    request: Request,
    franchise_id: int,
    identity: Identity = Depends(get_identity),
) -> MessageResponse:
    """Delete a franchise together with all of its stores."""
    require_permission(request, identity, Action.DELETE_FRANCHISE)
    hierarchy: FranchiseStore = request.app.state.franchises
    hierarchy.delete_franchise(franchise_id)
    return MessageResponse(message="franchise deleted")


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


@router.post("/franchise/{franchise_id}/store", response_model=StoreOut, response_model_exclude_none=True)
def create_store(
    request: Request,
    franchise_id: int,
    body: StoreCreate,
    identity: Identity = Depends(get_identity),
) -> StoreOut:
    require_permission(request, identity, Action.CREATE_STORE, franchise_id=franchise_id)
    hierarchy: FranchiseStore = request.app.state.franchises
    store = hierarchy.create_store(franchise_id, body.name)
    return StoreOut.from_store(store, with_franchise=True)


@router.delete("/franchise/{franchise_id}/store/{store_id}", response_model=MessageResponse)
def delete_store(
    request: Request,
    franchise_id: int,
    store_id: int,
    identity: Identity = Depends(get_identity),
) -> MessageResponse:
    require_permission(request, identity, Action.DELETE_STORE, franchise_id=franchise_id)
    hierarchy: FranchiseStore = request.app.state.franchises
    hierarchy.delete_store(franchise_id, store_id)
    return MessageResponse(message="store deleted")
