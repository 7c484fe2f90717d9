from fastapi import APIRouter

from .accounts import router as accounts_router
from .auth import router as auth_router
from .oauth import router as oauth_router
from .upload import router as upload_router

api_router = APIRouter(prefix="/api")
api_router.include_router(accounts_router)
api_router.include_router(auth_router)
api_router.include_router(upload_router)

__all__ = ["api_router", "oauth_router"]
