from fastapi import APIRouter

from .login import router as login_router
from .signup import router as signup_router

router = APIRouter(prefix="/auth")
router.include_router(signup_router)
router.include_router(login_router)

__all__ = ["router", "login_router", "signup_router"]
