# movieshelf/services/auth/login_service.py
from __future__ import annotations

"""
Login service
=============

Email + password login with **neutral errors**: an unknown email and a wrong
password produce the same 401, and an unknown email still pays for one bcrypt
verification so response timing does not reveal which case happened.
"""

import logging

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from movieshelf.core.exceptions import InvalidCredentialsException
from movieshelf.core.security import create_access_token, pwd_context, verify_password
from movieshelf.db.models.user import User
from movieshelf.schemas.auth import AuthResponse, AuthUser, LoginRequest

logger = logging.getLogger(__name__)

_DUMMY_HASH = pwd_context.hash("movieshelf-timing-equalizer")


async def authenticate_user(payload: LoginRequest, db: AsyncSession) -> AuthResponse:
    """Validate credentials and issue an access token."""
    email = (payload.email or "").strip().lower()
    user = (await db.execute(select(User).where(func.lower(User.email) == email))).scalar_one_or_none()

    if user is None:
        verify_password(payload.password, _DUMMY_HASH)
        logger.info("Login failed: unknown account")
        raise InvalidCredentialsException()

    if not verify_password(payload.password, user.hashed_password):
        logger.info("Login failed: bad password for %s", user.id)
        raise InvalidCredentialsException()

    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is deactivated")

    token = create_access_token(user.id, email=user.email)
    return AuthResponse(access_token=token, user=AuthUser(id=user.id, email=user.email, name=user.name))


__all__ = ["authenticate_user"]
