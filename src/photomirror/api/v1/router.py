"""API v1 main router.

Aggregates all v1 API routers into a single router for inclusion in the app.
"""

from fastapi import APIRouter

from photomirror.api.v1.gallery import router as gallery_router
from photomirror.api.v1.proxy import router as proxy_router

router = APIRouter()

# Include sub-routers
router.include_router(gallery_router, tags=["Gallery"])
router.include_router(proxy_router, tags=["Proxy"])
