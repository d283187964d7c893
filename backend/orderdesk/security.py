"""
OrderDesk Backend — Password Hashing and Bearer Tokens
========================================================

What:  bcrypt password hashing, JWT issue/decode, and the bearer-token gate
       used by protected routes.
How:   Tokens are HS256 JWTs signed with settings.jwt_secret; the same secret
       verifies them. The gate is a FastAPI dependency: it runs before the
       route handler and raises instead of returning when the caller is not
       authenticated, so the handler body never executes for rejected calls.

Token claims:
    sub:   account email
    email: account email (kept for clients that read it directly)
    iat:   issue time
    exp:   issue time + settings.access_token_ttl_seconds (1 hour by default)
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
import jwt
from fastapi import Request

from orderdesk.config import settings
from orderdesk.exceptions import InvalidTokenError, MissingTokenError

logger = logging.getLogger(__name__)


# ── Passwords ─────────────────────────────────────────────────────────────

def hash_password(password: str) -> str:
    """Return a salted bcrypt hash suitable for storage."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Constant-time comparison of a candidate password against a stored hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        logger.warning("Stored password hash has an unrecognised format")
        return False


# ── Tokens ────────────────────────────────────────────────────────────────

def create_access_token(email: str, now: Optional[datetime] = None) -> str:
    """Sign a token naming `email` as its subject, valid for the configured TTL."""
    issued_at = now or datetime.now(timezone.utc)
    payload = {
        "sub": email,
        "email": email,
        "iat": issued_at,
        "exp": issued_at + timedelta(seconds=settings.access_token_ttl_seconds),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Verify signature and expiry, returning the claims.

    Raises:
        InvalidTokenError: bad signature, malformed token, or expired
    """
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise InvalidTokenError(message="Token expired")
    except jwt.PyJWTError as e:
        raise InvalidTokenError(context={"reason": type(e).__name__})


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Pull the token out of an `Authorization: Bearer <token>` header value."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


# ── Request gate ──────────────────────────────────────────────────────────

async def require_identity(request: Request) -> Dict[str, Any]:
    """
    FastAPI dependency guarding protected routes.

    Flow:
        1. No bearer token           → MissingTokenError (403)
        2. Bad signature or expired  → InvalidTokenError (401)
        3. Valid                     → claims stored on request.state.identity
                                       and returned to the handler

    Example usage in a route:
        @router.get("/dashboard")
        async def dashboard(identity: dict = Depends(require_identity)):
            ...
    """
    token = extract_bearer_token(request.headers.get("Authorization"))
    if token is None:
        raise MissingTokenError()

    claims = decode_access_token(token)
    request.state.identity = claims
    return claims
