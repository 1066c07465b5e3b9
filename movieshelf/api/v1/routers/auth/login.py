"""
Login API
=========

POST /auth/login
----------------
Email + password login returning an access token and the public user
profile. Unknown email and wrong password share one neutral 401.
"""

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from movieshelf.core.limiter import rate_limit
from movieshelf.db.session import get_async_db
from movieshelf.schemas.auth import AuthResponse, LoginRequest
from movieshelf.security_headers import set_sensitive_cache
from movieshelf.services.auth.login_service import authenticate_user

router = APIRouter(tags=["Authentication"])


@router.post("/login", response_model=AuthResponse, summary="Log in with email and password")
@rate_limit("20/minute")
async def login(
    payload: LoginRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_async_db),
):
    set_sensitive_cache(response)
    return await authenticate_user(payload, db)


__all__ = ["router", "login"]
