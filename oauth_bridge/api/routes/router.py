from fastapi import APIRouter
from .utils.health import router as health_router
from .oauth import router as oauth_router

router = APIRouter()
router.include_router(health_router, prefix="/utils")
router.include_router(oauth_router)
