"""
API request and response models for the JWT Pizza REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are separate from the dataclasses in auth/models.py,
franchise/models.py and orders/models.py, which own the internal domain
representation. Route handlers map between the two.

The wire format is camelCase (franchiseId, menuId, ...). Fields are
snake_case in Python with a camelCase alias; FastAPI serializes response
models by alias, and populate_by_name lets tests and handlers build models
with either spelling.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import Admin, Diner, Franchisee, User
from auth.tokens import MAX_PASSWORD_BYTES
from franchise.models import Franchise, Store
from orders.models import MenuItem, Order

# ---------------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Error envelope returned on 4xx/5xx responses.

    message is the client-facing text the tests and frontend match on;
    code is the machine-readable category.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    code: str
    message: str
    detail: Optional[str] = None
    report_url: Optional[str] = Field(default=None, alias="reportUrl")


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Auth -- requests
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/auth.

    Every field is optional at the schema level so a missing field reaches the
    route and gets the documented 400 message rather than a generic schema
    error.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, max_length=255)
    email: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=255)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"password must be at most {MAX_PASSWORD_BYTES} bytes")
        return value


class LoginRequest(BaseModel):
    """Request body for PUT /api/auth."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=255)


# ---------------------------------------------------------------------------
# Auth -- responses
# ---------------------------------------------------------------------------


class RoleOut(BaseModel):
    """One role grant. objectId is the franchise id for franchisee grants."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    role: str
    object_id: Optional[int] = Field(default=None, alias="objectId")


class UserOut(BaseModel):
    """Public view of a user. Never carries the password hash."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str
    roles: list[RoleOut]

    @classmethod
    def from_user(cls, user: User) -> "UserOut":
        roles: list[RoleOut] = []
        for role in user.roles:
            if isinstance(role, Franchisee):
                if role.scope:
                    roles.extend(RoleOut(role=role.name, object_id=fid) for fid in sorted(role.scope))
                else:
                    roles.append(RoleOut(role=role.name))
            elif isinstance(role, (Diner, Admin)):
                roles.append(RoleOut(role=role.name))
        return cls(id=user.id, name=user.name, email=user.email, roles=roles)


class AuthResponse(BaseModel):
    """Response for register and login."""

    model_config = ConfigDict(frozen=True)

    user: UserOut
    token: str


# ---------------------------------------------------------------------------
# Franchises and stores
# ---------------------------------------------------------------------------


class FranchiseAdminIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(min_length=1, max_length=255)


class FranchiseCreate(BaseModel):
    """Request body for POST /api/franchise."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    admins: list[FranchiseAdminIn] = Field(default_factory=list, max_length=50)


class StoreCreate(BaseModel):
    """Request body for POST /api/franchise/{id}/store."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)


class AdminOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str


class StoreOut(BaseModel):
    """A store. franchiseId is set on create responses; totalRevenue only for franchise owners."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int
    name: str
    franchise_id: Optional[int] = Field(default=None, alias="franchiseId")
    total_revenue: Optional[float] = Field(default=None, alias="totalRevenue")

    @classmethod
    def from_store(cls, store: Store, with_franchise: bool = False, revenue: Optional[float] = None) -> "StoreOut":
        return cls(
            id=store.id,
            name=store.name,
            franchise_id=store.franchise_id if with_franchise else None,
            total_revenue=revenue,
        )


class FranchiseOut(BaseModel):
    """A franchise with its stores. admins is omitted for anonymous listings."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    admins: Optional[list[AdminOut]] = None
    stores: list[StoreOut] = Field(default_factory=list)

    @classmethod
    def from_franchise(
        cls,
        franchise: Franchise,
        with_admins: bool = True,
        revenue: Optional[dict[int, float]] = None,
    ) -> "FranchiseOut":
        """Factory Method: the domain -> wire mapping lives next to the output model."""
        return cls(
            id=franchise.id,
            name=franchise.name,
            admins=[AdminOut(id=a.id, name=a.name, email=a.email) for a in franchise.admins] if with_admins else None,
            stores=[
                StoreOut.from_store(s, revenue=(revenue.get(s.id, 0.0) if revenue is not None else None))
                for s in franchise.stores
            ],
        )


class FranchiseListResponse(BaseModel):
    """Response for GET /api/franchise."""

    model_config = ConfigDict(frozen=True)

    franchises: list[FranchiseOut]
    more: bool


# ---------------------------------------------------------------------------
# Menu and orders
# ---------------------------------------------------------------------------


class MenuItemIn(BaseModel):
    """Request body for PUT /api/order/menu."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=255)
    description: str = Field(default="", max_length=1000)
    price: float = Field(ge=0)
    image: str = Field(default="", max_length=1024)


class MenuItemOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    description: str
    price: float
    image: str

    @classmethod
    def from_item(cls, item: MenuItem) -> "MenuItemOut":
        return cls(id=item.id, title=item.title, description=item.description, price=item.price, image=item.image)


class OrderItemIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    menu_id: int = Field(alias="menuId")
    description: str = Field(max_length=1000)
    price: float = Field(ge=0)


class OrderCreate(BaseModel):
    """Request body for POST /api/order."""

    model_config = ConfigDict(populate_by_name=True)

    franchise_id: int = Field(alias="franchiseId")
    store_id: int = Field(alias="storeId")
    items: list[OrderItemIn] = Field(min_length=1, max_length=50)


class OrderItemOut(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    menu_id: int = Field(alias="menuId")
    description: str
    price: float


class OrderOut(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int
    diner_id: Optional[int] = Field(default=None, alias="dinerId")
    franchise_id: int = Field(alias="franchiseId")
    store_id: int = Field(alias="storeId")
    date: Optional[str] = None
    items: list[OrderItemOut]

    @classmethod
    def from_order(cls, order: Order) -> "OrderOut":
        return cls(
            id=order.id,
            diner_id=order.diner_id,
            franchise_id=order.franchise_id,
            store_id=order.store_id,
            date=order.date,
            items=[OrderItemOut(menu_id=i.menu_id, description=i.description, price=i.price) for i in order.items],
        )


class OrderResponse(BaseModel):
    """Response for POST /api/order: the stored order plus the factory's jwt."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    order: OrderOut
    jwt: str
    report_url: Optional[str] = Field(default=None, alias="reportUrl")


class OrderListResponse(BaseModel):
    """Response for GET /api/order."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    diner_id: int = Field(alias="dinerId")
    orders: list[OrderOut]
    page: int
    more: bool
