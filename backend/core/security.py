# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Central security module.  Password hashing and auth guards live here.  No
other module should touch raw crypto directly (reset tokens are the one
exception and live in recovery/tokens.py).

Responsibilities
----------------
1. Password hashing / verification          (passlib pbkdf2_sha256)
2. JWT creation / decoding                  (PyJWT / HS256)
3. FastAPI dependency guards                (get_current_user, require_admin)
4. Shared-secret API key auth               (Bearer or X-API-Key)
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt as _jwt        # PyJWT
from passlib.hash import pbkdf2_sha256 as _pbkdf2  # pure Python, no binary deps
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from core.config import settings
from database import get_db

# ---------------------------------------------------------------------------
# 1.  pbkdf2_sha256 – password hashing
# ---------------------------------------------------------------------------
# The salt is embedded in the passlib hash string, so a single column holds
# everything needed for verification.
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Hash a plaintext password with PBKDF2-SHA256 (``settings.password_hash_rounds``)."""
    return _pbkdf2.using(rounds=settings.password_hash_rounds).hash(plain)


def verify_password(plain: str, stored_hash: str) -> bool:
    """
    Constant-time verification of a plaintext password against a hash
    produced by :func:`hash_password`.  A malformed stored hash counts as a
    mismatch.
    """
    try:
        return _pbkdf2.verify(plain, stored_hash)
    except ValueError:
        return False


# ---------------------------------------------------------------------------
# 2.  JWT – access tokens
# ---------------------------------------------------------------------------


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Sign a JWT with HS256.

    *data* should contain at minimum: sub (email), user_id, role.
    An ``exp`` claim is added automatically.
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode["exp"] = expire
    return _jwt.encode(to_encode, settings.secret_key, algorithm="HS256")


def decode_access_token(token: str) -> dict:
    """
    Decode and verify a JWT.  Raises HTTP 401 on any failure (expired,
    bad signature, malformed).
    """
    try:
        return _jwt.decode(token, settings.secret_key, algorithms=["HS256"])
    except _jwt.InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authorized",
        )


# ---------------------------------------------------------------------------
# 3.  FastAPI dependency guards
# ---------------------------------------------------------------------------

# tokenUrl is only used by the auto-generated OpenAPI docs.
# auto_error=False so that API-key callers without a JWT reach our own checks.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db=Depends(get_db),
):
    """
    Dependency: decode the JWT, load the User row, verify the account is
    active.  Returns the User ORM instance.

    Raises 401 if the token is missing/invalid or the user is gone/inactive.
    """
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authorized")

    payload = decode_access_token(token)

    # Lazy import to avoid circular dependency at module load time
    from models.user import User  # noqa: E402

    user = db.query(User).filter(User.id == payload.get("user_id")).first()
    if not user or user.status != "active":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )
    return user


def require_admin(current_user=Depends(get_current_user)):
    """
    Dependency: wraps :func:`get_current_user` and additionally asserts
    ``role == 'admin'``.  Raises 403 otherwise.
    """
    if current_user.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user


# ---------------------------------------------------------------------------
# 4.  Shared-secret API key
# ---------------------------------------------------------------------------
# Integrations (the messaging gateway, automation tools) authenticate with
# GLOBAL_API_KEY sent either as "Authorization: Bearer <key>" or
# "X-API-Key: <key>".  When the key is not configured API-key auth is off.


def _provided_api_key(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:]
    return request.headers.get("X-API-Key")


def is_api_key_request(request: Request) -> bool:
    expected = settings.global_api_key
    provided = _provided_api_key(request)
    if not expected or not provided:
        return False
    return secrets.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def require_user_or_api_key(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    db=Depends(get_db),
):
    """
    Dependency: accept either a valid API key or a logged-in user.
    Returns the User, or None for API-key callers.
    """
    if is_api_key_request(request):
        return None
    return get_current_user(token=token, db=db)


def require_admin_or_api_key(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    db=Depends(get_db),
):
    """Like :func:`require_user_or_api_key` but JWT callers must be admins."""
    if is_api_key_request(request):
        return None
    return require_admin(get_current_user(token=token, db=db))


# -- IP Address extraction ----------------------------------------------------


def get_client_ip(request: Request) -> str:
    """
    Extract the client IP address from the request.
    Checks X-Forwarded-For header first (for proxies), then falls back to client host.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # X-Forwarded-For can contain multiple IPs, take the first (original client)
        return forwarded.split(",")[0].strip()

    if request.client:
        return request.client.host

    return "unknown"
