"""
auth/tokens.py -- Bearer credential signing and password hashing.

Security design decisions:
  JWT: python-jose with HS256. A credential carries only the subject user id
       (``sub``), the issue time (``iat``) and a random credential id
       (``jti``). Roles are absent: the guard re-reads them from
       the user record on every request, so a role change or a new franchise
       grant takes effect on the next request without re-issuing anything.
       There is no ``exp`` claim -- a credential stays valid until its jti is
       revoked or SECRET_KEY rotates.

  The compact JWS serialization is three base64url segments joined by dots,
  which is the externally visible token shape clients depend on.

  Passwords: bcrypt used directly. The _DUMMY_HASH constant enables timing
       equalization in authenticate_user() so response time does not reveal
       whether an email is registered.

Layer rule: no imports from api/, franchise/, or orders/. Import from core/
is allowed -- core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

from auth.models import VerifiedCredential

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("jwtpizza.auth")

_ALGORITHM = "HS256"

# bcrypt only hashes the first 72 bytes and current releases reject longer input.
MAX_PASSWORD_BYTES = 72


class InvalidCredential(Exception):
    """Raised by TokenService.verify for any artifact that does not verify."""


# ---------------------------------------------------------------------------
# Credential issue / verify
# ---------------------------------------------------------------------------


class TokenService:
    """Issues and verifies signed bearer credentials.

    Pure and local: no I/O, no shared mutable state. Revocation is checked
    separately by the guard against RevocationStore.

    Usage:
        tokens = TokenService(get_settings().secret_key)
        raw = tokens.issue(user_id=42)
        cred = tokens.verify(raw)        # VerifiedCredential(user_id=42, ...)
    """

    def __init__(self, secret_key: str, algorithm: str = _ALGORITHM) -> None:
        if not secret_key:
            raise ValueError("TokenService requires a non-empty secret key.")
        self._secret_key = secret_key
        self._algorithm = algorithm

    def issue(self, user_id: int) -> str:
        """Encode a signed credential for user_id. Never fails for a valid id."""
        payload = {
            "sub": str(user_id),
            "iat": int(time.time()),
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)

    def verify(self, raw: str) -> VerifiedCredential:
        """Check the signature and claim shape of raw.

        Raises InvalidCredential for malformed input, an unexpected algorithm
        (including "none"), a signature mismatch, or missing claims. The
        reason is logged at debug level only; callers get one exception type.
        """
        if not raw or raw.count(".") != 2:
            raise InvalidCredential("malformed credential")
        try:
            payload = jwt.decode(raw, self._secret_key, algorithms=[self._algorithm])
        except (JWTError, ValueError) as exc:
            logger.debug("Credential rejected: %s", exc)
            raise InvalidCredential("signature verification failed") from exc

        sub = payload.get("sub")
        jti = payload.get("jti")
        if not isinstance(sub, str) or not sub.isdigit() or not isinstance(jti, str) or not jti:
            raise InvalidCredential("missing or malformed claims")
        return VerifiedCredential(user_id=int(sub), token_id=jti, issued_at=int(payload.get("iat", 0)))


# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password."""
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Corrupt or non-bcrypt hash in the user record.
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("jwtpizza_timing_dummy")


def authenticate_user(store: UserStore, email: str, password: str) -> User | None:
    """Authenticate an email/password login with timing equalization.

    Always runs bcrypt whether or not the email is registered:
    - Unknown email: bcrypt runs against _DUMMY_HASH (same cost as real check)
    - Wrong password: bcrypt runs against the real hash (same cost)

    Returns the User on success, None on any failure.
    """
    user = store.get_by_email(email)
    if user is None or user.hashed_password is None:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user
