"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Thin adapters over AuthorizationGuard (auth/guard.py). The guard instance is
built once in the application lifespan and read from app.state, so tests can
swap the stores behind it.

try_get_identity() is the soft variant (returns None on failure) for public
routes that show more to an authenticated caller.
get_identity() wraps the guard result and raises AuthenticationError (401).
require_permission() runs the PermissionEngine and raises AuthorizationError
(403) on Deny. Both are mapped by the ServiceError handler in api/main.py.

The resolved Identity is also stored on request.state.identity so middleware
and exception handlers can see who made the request without re-verifying.

Layer rule: auth/dependencies.py may import from fastapi (for Request) because
it is part of the FastAPI dependency injection system. No imports from franchise/ or orders/.
"""

from __future__ import annotations

from fastapi import Request

from auth.guard import AuthorizationGuard
from auth.models import Identity
from auth.permissions import Action, Deny, PermissionEngine
from core.errors import AuthenticationError, AuthorizationError


def try_get_identity(request: Request) -> Identity | None:
    """Authenticate the request's Authorization header. Never raises."""
    guard: AuthorizationGuard = request.app.state.guard
    result = guard.authenticate(request.headers.get("Authorization"))
    request.state.identity = result.identity
    return result.identity


def get_identity(request: Request) -> Identity:
    """Require authentication. Raises AuthenticationError if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.delete("/auth")
        def logout(identity: Identity = Depends(get_identity)): ...
    """
    guard: AuthorizationGuard = request.app.state.guard
    result = guard.authenticate(request.headers.get("Authorization"))
    if not result.ok:
        raise AuthenticationError(result.message)
    request.state.identity = result.identity
    return result.identity


def require_permission(
    request: Request,
    identity: Identity | None,
    action: Action,
    franchise_id: int | None = None,
) -> None:
    """Run the PermissionEngine for action and raise AuthorizationError with its message on Deny.

    Called at the top of each protected handler, before any store lookup, so
    a caller without scope gets 403 whether or not the target exists.
    """
    engine: PermissionEngine = request.app.state.permissions
    decision = engine.authorize(identity, action, franchise_id=franchise_id)
    if isinstance(decision, Deny):
        raise AuthorizationError(decision.reason)
