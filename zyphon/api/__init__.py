"""API routers."""

from fastapi import APIRouter

from zyphon.api.admin import router as admin_router
from zyphon.api.gateway import router as gateway_router

router = APIRouter()

router.include_router(gateway_router)
router.include_router(admin_router)
