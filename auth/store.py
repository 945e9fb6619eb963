"""
auth/store.py -- SQLAlchemy Core persistence layer for users and role grants.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
and _rows_to_roles are the mappers. Route and guard code never touches SQL
directly.

Role grants are stored one row per grant in user_roles:

    role="diner"       object_id NULL
    role="admin"       object_id NULL
    role="franchisee"  object_id = franchise id   (one row per franchise)

_rows_to_roles folds the franchisee rows into a single Franchisee(scope)
variant. franchise/store.py writes and deletes franchisee rows inside its own
transactions, which is why the table object is exported.

Security:
  All queries use bound parameters. No f-strings in SQL.
  hashed_password never leaves this module except inside a User instance;
  the API layer serializes users through a response model without it.

Layer rule: no imports from api/, franchise/, or orders/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import Column, ForeignKey, Integer, String, Table, Text, select
from sqlalchemy.engine import Connection, Engine

from auth.models import Admin, Diner, Franchisee, Role, User
from core.db import metadata

logger = logging.getLogger("jwtpizza.auth.store")

ROLE_DINER = "diner"
ROLE_FRANCHISEE = "franchisee"
ROLE_ADMIN = "admin"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
)

user_roles = Table(
    "user_roles",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("role", String(30), nullable=False),
    Column("object_id", Integer, index=True),  # franchise id for franchisee grants
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _role_rows(user_id: int, roles: list[Role]) -> list[dict]:
    """Flatten role variants into user_roles rows."""
    rows: list[dict] = []
    for role in roles:
        if isinstance(role, Franchisee):
            rows.extend({"user_id": user_id, "role": ROLE_FRANCHISEE, "object_id": fid} for fid in sorted(role.scope))
        elif isinstance(role, Admin):
            rows.append({"user_id": user_id, "role": ROLE_ADMIN, "object_id": None})
        elif isinstance(role, Diner):
            rows.append({"user_id": user_id, "role": ROLE_DINER, "object_id": None})
        else:
            raise TypeError(f"Unknown role variant: {role!r}")
    return rows


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records and their role grants.

    Usage:
        store = UserStore(engine)
        uid = store.create_user(User(name="pizza diner", email="d@jwt.com", hashed_password=hash_password("a")))
        user = store.get_by_email("d@jwt.com")      # roles == [Diner()]
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        metadata.create_all(self.engine, tables=[users, user_roles])

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, user: User, roles: list[Role] | None = None) -> int:
        """Insert a user and its role grants in one transaction; return the new id.

        roles defaults to a single Diner grant -- every self-registered user
        starts with exactly that.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        """
        grants = roles if roles is not None else [Diner()]
        with self.engine.begin() as conn:
            result = conn.execute(
                users.insert().values(
                    name=user.name,
                    email=user.email,
                    hashed_password=user.hashed_password,
                    created_at=_now_iso(),
                )
            )
            user_id = result.inserted_primary_key[0]
            rows = _role_rows(user_id, grants)
            if rows:
                conn.execute(user_roles.insert(), rows)
        return user_id

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact email. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(users.select().where(users.c.email == email)).fetchone()
            if row is None:
                return None
            return _row_to_user(row, _load_roles(conn, row.id))

    def get_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key, with its current role grants."""
        with self.engine.connect() as conn:
            row = conn.execute(users.select().where(users.c.id == user_id)).fetchone()
            if row is None:
                return None
            return _row_to_user(row, _load_roles(conn, row.id))

    def roles_for(self, user_id: int) -> list[Role]:
        with self.engine.connect() as conn:
            return _load_roles(conn, user_id)

    # ------------------------------------------------------------------
    # Role grants
    # ------------------------------------------------------------------

    def grant(self, user_id: int, role: Role) -> None:
        """Add a grant unless the user already holds it."""
        current = self.roles_for(user_id)
        if isinstance(role, Franchisee):
            held = next((r.scope for r in current if isinstance(r, Franchisee)), frozenset())
            role = Franchisee(scope=frozenset(role.scope) - held)
            if not role.scope:
                return
        elif role in current:
            return
        with self.engine.begin() as conn:
            conn.execute(user_roles.insert(), _role_rows(user_id, [role]))

    def ensure_admin(self, name: str, email: str, hashed_password: str) -> int:
        """Create an Admin account, or add the Admin grant to an existing one.

        This is the only path to the Admin role: there is no API for it. Used by
        the bootstrap step in api/main.py and by ``main.py create-admin``.
        """
        existing = self.get_by_email(email)
        if existing is None:
            user_id = self.create_user(
                User(name=name, email=email, hashed_password=hashed_password),
                roles=[Admin()],
            )
            logger.info("Created admin account %s", email)
            return user_id
        self.grant(existing.id, Admin())
        return existing.id

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _load_roles(conn: Connection, user_id: int) -> list[Role]:
    rows = conn.execute(
        select(user_roles.c.role, user_roles.c.object_id)
        .where(user_roles.c.user_id == user_id)
        .order_by(user_roles.c.id)
    ).fetchall()
    return _rows_to_roles(rows)


def _rows_to_roles(rows) -> list[Role]:
    """Fold user_roles rows into role variants, preserving first-seen order."""
    roles: list[Role] = []
    scope: set[int] = set()
    franchisee_at: int | None = None
    for row in rows:
        if row.role == ROLE_FRANCHISEE:
            if franchisee_at is None:
                franchisee_at = len(roles)
                roles.append(Franchisee())
            if row.object_id is not None:
                scope.add(row.object_id)
        elif row.role == ROLE_ADMIN:
            if Admin() not in roles:
                roles.append(Admin())
        elif row.role == ROLE_DINER:
            if Diner() not in roles:
                roles.append(Diner())
        else:
            logger.warning("Ignoring unknown role %r in user_roles", row.role)
    if franchisee_at is not None:
        roles[franchisee_at] = Franchisee(scope=frozenset(scope))
    return roles


def _row_to_user(row, roles: list[Role]) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        hashed_password=row.hashed_password,
        roles=roles,
        created_at=row.created_at,
    )
