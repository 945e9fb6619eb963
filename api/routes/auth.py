"""
api/routes/auth.py -- Registration, login, logout, and current-user endpoints.

Routes:
  POST   /api/auth      -- register; returns {user, token}
  PUT    /api/auth      -- login; returns {user, token}
  DELETE /api/auth      -- logout; revokes the presented credential
  GET    /api/user/me   -- current user (requires auth)

Security:
  authenticate_user() provides timing equalization -- use it, never inline
  get_by_email() + verify_password().
  Cache-Control: no-store on responses that carry a credential.
  Logout revokes by credential id (jti). A second logout with the same
  credential fails the guard and gets 401 like any other revoked token.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from api.models import AuthResponse, LoginRequest, MessageResponse, RegisterRequest, UserOut
from auth.dependencies import get_identity
from auth.models import Identity, User
from auth.revocation import RevocationStore
from auth.store import UserStore
from auth.tokens import TokenService, authenticate_user, hash_password
from core.errors import ConflictError, ValidationError

logger = logging.getLogger("jwtpizza.api.auth")

# Auth policy:
# - POST   /api/auth:     public -- registration
# - PUT    /api/auth:     public -- login endpoint must be unauthenticated
# - DELETE /api/auth:     requires auth (get_identity)
# - GET    /api/user/me:  requires auth (get_identity)
router = APIRouter()


def _credential_response(user: User, token: str) -> JSONResponse:
    resp = JSONResponse(
        status_code=200,
        content=AuthResponse(user=UserOut.from_user(user), token=token).model_dump(by_alias=True, exclude_none=True),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth", response_model=AuthResponse)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create a Diner account and return it with a fresh credential."""
    if not body.name or not body.email or not body.password:
        raise ValidationError("name, email, and password are required")

    user_store: UserStore = request.app.state.user_store
    tokens: TokenService = request.app.state.tokens

    try:
        user_id = user_store.create_user(
            User(name=body.name, email=body.email, hashed_password=hash_password(body.password))
        )
    except IntegrityError as exc:
        raise ConflictError("email already registered") from exc

    user = user_store.get_by_id(user_id)
    return _credential_response(user, tokens.issue(user.id))


@router.put("/auth", response_model=AuthResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password and return a fresh credential.

    Wrong email and wrong password produce the same 401 so the response does
    not reveal which accounts exist.
    """
    if not body.email or not body.password:
        raise ValidationError("email and password are required")

    user_store: UserStore = request.app.state.user_store
    tokens: TokenService = request.app.state.tokens

    user = authenticate_user(user_store, body.email, body.password)
    if user is None:
        logger.info("Failed login attempt")
        resp = JSONResponse(status_code=401, content={"code": "unauthorized", "message": "unauthorized"})
        resp.headers["Cache-Control"] = "no-store"
        return resp
    return _credential_response(user, tokens.issue(user.id))


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.delete("/auth", response_model=MessageResponse)
def logout(request: Request, identity: Identity = Depends(get_identity)) -> MessageResponse:
    """Revoke the credential this request was authenticated with."""
    revocations: RevocationStore = request.app.state.revocations
    revocations.revoke(identity.token_id)
    logger.info("User %d logged out", identity.user_id)
    return MessageResponse(message="logout successful")


@router.get("/user/me", response_model=UserOut)
def me(identity: Identity = Depends(get_identity)) -> UserOut:
    """Return the authenticated user with their current roles."""
    return UserOut.from_user(identity.user)
