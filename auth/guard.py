"""
auth/guard.py -- Authentication gate run before every protected action.

The guard is a plain object with no FastAPI dependency. authenticate() takes
the raw Authorization header value and returns an AuthResult: either an
Identity or a failure. Every failure carries the same message, "unauthorized",
whichever check rejected the request -- missing header, wrong scheme, bad
signature, revoked credential, or a subject that no longer exists.

Check order:
  1. Extract the bearer token from the header.
  2. TokenService.verify -- signature and claim shape.
  3. RevocationStore.is_revoked -- the credential was not logged out.
  4. UserStore.get_by_id -- resolve the live role set.

auth/dependencies.py adapts this to FastAPI's Depends() system.

Layer rule: no imports from api/, franchise/, or orders/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from auth.models import Identity
from auth.revocation import RevocationStore
from auth.store import UserStore
from auth.tokens import InvalidCredential, TokenService

logger = logging.getLogger("jwtpizza.auth.guard")

UNAUTHORIZED = "unauthorized"


@dataclass(frozen=True)
class AuthResult:
    """Outcome of AuthorizationGuard.authenticate."""

    identity: Identity | None = None
    message: str = UNAUTHORIZED

    @property
    def ok(self) -> bool:
        return self.identity is not None


_DENIED = AuthResult()


def extract_bearer(header: str | None) -> str | None:
    """Return the token from ``Bearer <token>``, or None for any other shape."""
    if not header:
        return None
    parts = header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1]


class AuthorizationGuard:
    def __init__(self, tokens: TokenService, revocations: RevocationStore, users: UserStore) -> None:
        self.tokens = tokens
        self.revocations = revocations
        self.users = users

    def authenticate(self, header: str | None) -> AuthResult:
        raw = extract_bearer(header)
        if raw is None:
            return _DENIED
        try:
            credential = self.tokens.verify(raw)
        except InvalidCredential:
            return _DENIED
        if self.revocations.is_revoked(credential.token_id):
            logger.debug("Rejected revoked credential for user %d", credential.user_id)
            return _DENIED
        user = self.users.get_by_id(credential.user_id)
        if user is None:
            logger.warning("Valid credential for missing user %d", credential.user_id)
            return _DENIED
        return AuthResult(identity=Identity(user=user, roles=tuple(user.roles), token_id=credential.token_id))
