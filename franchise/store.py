"""
franchise/store.py -- SQLAlchemy-backed franchise/store hierarchy.

Pattern: Repository + Data Mapper, same as auth/store.py. FranchiseStore is
the repository; the _row_to_* functions map rows to franchise/models.py
dataclasses. Route handlers never touch SQL directly.

Structural rules enforced here:
  - A franchise's admins are users holding a franchisee grant whose
    object_id is the franchise id (auth/store.py user_roles table). Emails are
    resolved to user ids once, when the franchise is created; from then on
    membership is keyed by user id.
  - delete_franchise removes the franchise, every store under it, and every
    franchisee grant scoped to it in ONE transaction. Any failure rolls the
    whole thing back.
  - stores.franchise_id is a foreign key with ON DELETE CASCADE. A store
    insert racing a franchise delete either lands before the delete (and is
    cascaded away) or fails the FK check and surfaces as NotFoundError. No
    orphan store can survive.
  - Identifiers are autoincrement keys assigned by the database and never
    reused (sqlite_autoincrement=True).

Authorization is NOT checked here. Routes run PermissionEngine first so an
unauthorized caller never learns whether a franchise or store exists.

Security: all queries use bound parameters. No f-strings in SQL.
"""

from __future__ import annotations

import logging

from sqlalchemy import Column, ForeignKey, Integer, String, Table, and_, select
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from auth.store import ROLE_FRANCHISEE, user_roles, users
from core.db import metadata
from core.errors import ConflictError, NotFoundError
from franchise.models import Franchise, FranchiseAdmin, Store

logger = logging.getLogger("jwtpizza.franchise")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

franchises = Table(
    "franchises",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False, unique=True),
    sqlite_autoincrement=True,
)

stores = Table(
    "stores",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "franchise_id",
        Integer,
        ForeignKey("franchises.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("name", String(255), nullable=False),
    sqlite_autoincrement=True,
)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class FranchiseStore:
    """Repository for the franchise -> store hierarchy.

    Usage:
        hierarchy = FranchiseStore(engine)
        f = hierarchy.create_franchise("pizzaPocket", ["f@jwt.com"])
        s = hierarchy.create_store(f.id, "SLC")
        hierarchy.delete_franchise(f.id)        # store and grants go with it
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        metadata.create_all(self.engine, tables=[users, user_roles, franchises, stores])

    # ------------------------------------------------------------------
    # Scope resolution
    # ------------------------------------------------------------------

    def franchise_admins(self, franchise_id: int) -> set[int]:
        """Return the ids of users who administer franchise_id."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(user_roles.c.user_id).where(
                    and_(user_roles.c.role == ROLE_FRANCHISEE, user_roles.c.object_id == franchise_id)
                )
            ).fetchall()
        return {r.user_id for r in rows}

    # ------------------------------------------------------------------
    # Franchises
    # ------------------------------------------------------------------

    def create_franchise(self, name: str, admin_emails: list[str]) -> Franchise:
        """Insert a franchise and grant franchisee scope to each admin.

        Raises NotFoundError if any email is not a registered user, and
        ConflictError if the name is taken. Either way nothing is written.
        """
        try:
            with self.engine.begin() as conn:
                admins = _resolve_admins(conn, admin_emails)
                result = conn.execute(franchises.insert().values(name=name))
                franchise_id = result.inserted_primary_key[0]
                if admins:
                    conn.execute(
                        user_roles.insert(),
                        [{"user_id": a.id, "role": ROLE_FRANCHISEE, "object_id": franchise_id} for a in admins],
                    )
        except IntegrityError as exc:
            raise ConflictError(f"franchise {name} already exists") from exc
        logger.info("Created franchise %d (%s) with %d admin(s)", franchise_id, name, len(admins))
        return Franchise(id=franchise_id, name=name, admins=admins)

    def get_franchise(self, franchise_id: int) -> Franchise | None:
        with self.engine.connect() as conn:
            row = conn.execute(franchises.select().where(franchises.c.id == franchise_id)).fetchone()
            if row is None:
                return None
            return _hydrate(conn, [row], include_admins=True)[0]

    def delete_franchise(self, franchise_id: int) -> None:
        """Remove the franchise, its stores, and its franchisee grants atomically."""
        with self.engine.begin() as conn:
            exists = conn.execute(select(franchises.c.id).where(franchises.c.id == franchise_id)).fetchone()
            if exists is None:
                raise NotFoundError("franchise not found")
            removed = conn.execute(stores.delete().where(stores.c.franchise_id == franchise_id)).rowcount
            conn.execute(
                user_roles.delete().where(
                    and_(user_roles.c.role == ROLE_FRANCHISEE, user_roles.c.object_id == franchise_id)
                )
            )
            conn.execute(franchises.delete().where(franchises.c.id == franchise_id))
        logger.info("Deleted franchise %d and %d store(s)", franchise_id, removed)

    def list_franchises(
        self,
        page: int = 0,
        limit: int = 10,
        name_filter: str = "*",
        include_admins: bool = False,
    ) -> tuple[list[Franchise], bool]:
        """Return one page of franchises ordered by id, plus whether more pages exist.

        name_filter uses ``*`` as the wildcard ("*" alone matches everything);
        ``%`` and ``_`` match literally.
        Admins are only attached when include_admins is set -- the listing is
        public and must not expose admin emails to anonymous callers.
        """
        escaped = (name_filter or "*").replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        pattern = escaped.replace("*", "%")
        query = (
            franchises.select()
            .where(franchises.c.name.like(pattern, escape="\\"))
            .order_by(franchises.c.id)
            .limit(limit + 1)
            .offset(page * limit)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
            more = len(rows) > limit
            return _hydrate(conn, rows[:limit], include_admins=include_admins), more

    def user_franchises(self, user_id: int) -> list[Franchise]:
        """Return every franchise user_id administers, with admins and stores."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                franchises.select()
                .where(
                    franchises.c.id.in_(
                        select(user_roles.c.object_id).where(
                            and_(user_roles.c.role == ROLE_FRANCHISEE, user_roles.c.user_id == user_id)
                        )
                    )
                )
                .order_by(franchises.c.id)
            ).fetchall()
            return _hydrate(conn, rows, include_admins=True)

    # ------------------------------------------------------------------
    # Stores
    # ------------------------------------------------------------------

    def create_store(self, franchise_id: int, name: str) -> Store:
        """Add a store under franchise_id. Raises NotFoundError if the franchise is gone."""
        try:
            with self.engine.begin() as conn:
                parent = conn.execute(select(franchises.c.id).where(franchises.c.id == franchise_id)).fetchone()
                if parent is None:
                    raise NotFoundError("franchise not found")
                result = conn.execute(stores.insert().values(franchise_id=franchise_id, name=name))
                store_id = result.inserted_primary_key[0]
        except IntegrityError as exc:
            # FK violation: the franchise was deleted between the check and the insert.
            raise NotFoundError("franchise not found") from exc
        return Store(id=store_id, franchise_id=franchise_id, name=name)

    def get_store(self, franchise_id: int, store_id: int) -> Store | None:
        with self.engine.connect() as conn:
            row = conn.execute(
                stores.select().where(and_(stores.c.id == store_id, stores.c.franchise_id == franchise_id))
            ).fetchone()
        return _row_to_store(row) if row is not None else None

    def delete_store(self, franchise_id: int, store_id: int) -> None:
        """Remove a store. Raises NotFoundError if it does not exist under franchise_id."""
        with self.engine.begin() as conn:
            result = conn.execute(
                stores.delete().where(and_(stores.c.id == store_id, stores.c.franchise_id == franchise_id))
            )
        if result.rowcount == 0:
            raise NotFoundError("store not found")

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _resolve_admins(conn: Connection, emails: list[str]) -> list[FranchiseAdmin]:
    """Map admin emails to users, preserving request order and dropping duplicates."""
    wanted = list(dict.fromkeys(emails))
    if not wanted:
        return []
    rows = conn.execute(
        select(users.c.id, users.c.name, users.c.email).where(users.c.email.in_(wanted))
    ).fetchall()
    by_email = {r.email: r for r in rows}
    admins: list[FranchiseAdmin] = []
    for email in wanted:
        row = by_email.get(email)
        if row is None:
            raise NotFoundError(f"unknown user for franchise admin {email} provided")
        admins.append(FranchiseAdmin(id=row.id, name=row.name, email=row.email))
    return admins


def _hydrate(conn: Connection, rows, include_admins: bool) -> list[Franchise]:
    """Attach stores (and optionally admins) to franchise rows with two bulk queries."""
    result = [Franchise(id=r.id, name=r.name) for r in rows]
    if not result:
        return result
    by_id = {f.id: f for f in result}

    store_rows = conn.execute(
        stores.select().where(stores.c.franchise_id.in_(list(by_id))).order_by(stores.c.id)
    ).fetchall()
    for row in store_rows:
        by_id[row.franchise_id].stores.append(_row_to_store(row))

    if include_admins:
        admin_rows = conn.execute(
            select(user_roles.c.object_id, users.c.id, users.c.name, users.c.email)
            .join(users, users.c.id == user_roles.c.user_id)
            .where(and_(user_roles.c.role == ROLE_FRANCHISEE, user_roles.c.object_id.in_(list(by_id))))
            .order_by(user_roles.c.id)
        ).fetchall()
        for row in admin_rows:
            by_id[row.object_id].admins.append(FranchiseAdmin(id=row.id, name=row.name, email=row.email))
    return result


def _row_to_store(row) -> Store:
    return Store(id=row.id, franchise_id=row.franchise_id, name=row.name)
