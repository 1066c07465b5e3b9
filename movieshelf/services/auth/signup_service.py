# movieshelf/services/auth/signup_service.py
from __future__ import annotations

"""
Signup service
==============

Creates an account and returns a ready-to-use access token.

Key behaviors
-------------
- **Normalized email** (trim + lowercase) and server-side bcrypt hashing.
- **Race-safe** duplicate handling: fast pre-check plus IntegrityError recovery
  against the `lower(email)` unique index.
- Idempotency and cache headers are handled at the API layer.
"""

import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from movieshelf.core.exceptions import EmailAlreadyRegisteredException
from movieshelf.core.security import create_access_token, get_password_hash
from movieshelf.db.models.user import User
from movieshelf.schemas.auth import AuthResponse, AuthUser, RegisterRequest

logger = logging.getLogger(__name__)


def _norm_email(email: str) -> str:
    return (email or "").strip().lower()


async def register_user(payload: RegisterRequest, db: AsyncSession) -> AuthResponse:
    """Create a new account.

    Steps
    -----
    1) **Normalize** the email.
    2) **Check duplicates** quickly (409).
    3) **Create user** with a bcrypt hash; duplicate race → 409.
    4) **Issue** an access token.
    """
    # 1) Normalize
    email = _norm_email(payload.email)

    # 2) Fast duplicate check
    existing = (await db.execute(select(User.id).where(func.lower(User.email) == email))).scalar_one_or_none()
    if existing is not None:
        raise EmailAlreadyRegisteredException()

    # 3) Create
    user = User(email=email, name=payload.name.strip(), hashed_password=get_password_hash(payload.password), is_active=True)
    try:
        db.add(user)
        await db.flush()
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise EmailAlreadyRegisteredException()

    logger.info("Registered user %s", user.id)

    # 4) Token
    token = create_access_token(user.id, email=user.email)
    return AuthResponse(access_token=token, user=AuthUser(id=user.id, email=user.email, name=user.name))


__all__ = ["register_user"]
