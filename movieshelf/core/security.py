# movieshelf/core/security.py
from __future__ import annotations

"""
MovieShelf · Authentication & Security Helpers
==============================================
- bcrypt password hashing (passlib)
- Access JWT creation (iss/aud/iat/nbf/jti)
- FastAPI dependency to fetch the **current user**

Decoding is delegated to `movieshelf.core.jwt`.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from movieshelf.core.config import settings
from movieshelf.core.exceptions import InvalidTokenException
from movieshelf.core.jwt import decode_access_token
from movieshelf.db.models.user import User
from movieshelf.db.session import get_async_db

# ───────────────────────────────────────────────
# 🔐 Security Constants and Setup
# ───────────────────────────────────────────────
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
security = HTTPBearer(auto_error=False)
logger = logging.getLogger(__name__)


# ───────────────────────────────────────────────
# 🔐 Password Hashing Utilities
# ───────────────────────────────────────────────
def get_password_hash(password: str) -> str:
    """Return a salted bcrypt hash."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Constant-time verify; malformed hashes count as a mismatch."""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        return False


# ───────────────────────────────────────────────
# 🪪 JWT · Access Token Generation
# ───────────────────────────────────────────────
def create_access_token(
    user_id: UUID,
    *,
    email: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create a signed **access token** for `user_id`."""
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))

    payload: Dict[str, Any] = {
        "sub": str(user_id),
        "exp": expire,
        "iat": now,
        "nbf": now,
        "jti": str(uuid4()),
        "token_type": "access",
    }
    if email:
        payload["email"] = email
    if settings.JWT_ISSUER:
        payload["iss"] = settings.JWT_ISSUER
    if settings.JWT_AUDIENCE:
        payload["aud"] = settings.JWT_AUDIENCE

    return jwt.encode(payload, settings.JWT_SECRET_KEY.get_secret_value(), algorithm=settings.JWT_ALGORITHM)


def get_user_id_from_payload(payload: Dict[str, Any]) -> UUID:
    """Extract `sub` as a UUID; 401 if malformed."""
    try:
        return UUID(str(payload.get("sub")))
    except ValueError:
        raise InvalidTokenException(detail="Invalid token: malformed user_id")


# ───────────────────────────────────────────────
# 👤 Dependency · Get Current User
# ───────────────────────────────────────────────
async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_async_db),
) -> User:
    """Authenticate a user from the presented **access** token.

    Steps:
    1) Require a Bearer credential.
    2) Decode & validate JWT (expiry, type) via `movieshelf.core.jwt`.
    3) Load user from DB, ensure active; expose id on `request.state`.
    """
    if credentials is None or (credentials.scheme or "").lower() != "bearer" or not credentials.credentials:
        raise InvalidTokenException(detail="Not authenticated")

    payload = decode_access_token(credentials.credentials)
    user_id = get_user_id_from_payload(payload)

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalars().first()
    if not user or not user.is_active:
        raise HTTPException(status_code=403, detail="Inactive or missing user")

    request.state.user_id = user.id
    logger.debug("Authenticated user %s", user.id)
    return user


__all__ = [
    "pwd_context",
    "get_password_hash",
    "verify_password",
    "create_access_token",
    "get_user_id_from_payload",
    "get_current_user",
]
