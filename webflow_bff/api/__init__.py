from fastapi import APIRouter

from .auth import router as auth_router
from .webflow import router as webflow_router

router = APIRouter()
router.include_router(auth_router)
router.include_router(webflow_router)

__all__ = ["router"]
