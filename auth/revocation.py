"""
auth/revocation.py -- Persisted credential denylist.

Logout records the credential's jti here. A recorded jti is invalid forever;
there is no un-revoke.

Consistency: revoke() commits before it returns and is_revoked() reads the
committed table through a fresh connection, so a logout is visible to every
check issued afterwards, from any request or thread sharing the engine. There
is no cache in front of the table; a logout must take effect on the very next
request.

The table is independent of users and sessions: keyed by credential id only.

Layer rule: no imports from api/, franchise/, or orders/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import Column, String, Table, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from core.db import metadata

logger = logging.getLogger("jwtpizza.auth.revocation")

_revoked_tokens = Table(
    "revoked_tokens",
    metadata,
    Column("token_id", String(64), primary_key=True),
    Column("revoked_at", String(32), nullable=False),
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class RevocationStore:
    """Key/value denylist of revoked credential ids.

    Usage:
        revocations = RevocationStore(engine)
        revocations.revoke(cred.token_id)
        revocations.is_revoked(cred.token_id)   # True
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        metadata.create_all(self.engine, tables=[_revoked_tokens])

    def revoke(self, token_id: str) -> None:
        """Record token_id as revoked. Revoking twice is a no-op success."""
        try:
            with self.engine.begin() as conn:
                conn.execute(_revoked_tokens.insert().values(token_id=token_id, revoked_at=_now_iso()))
        except IntegrityError:
            # Primary key collision: the id is already on the denylist.
            logger.debug("Credential %s already revoked", token_id[:8])

    def is_revoked(self, token_id: str) -> bool:
        with self.engine.connect() as conn:
            row = conn.execute(
                select(_revoked_tokens.c.token_id).where(_revoked_tokens.c.token_id == token_id)
            ).fetchone()
        return row is not None
