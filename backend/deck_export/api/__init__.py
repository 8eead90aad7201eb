from fastapi import APIRouter
from deck_export.api import export, cache, health, metrics


api_router = APIRouter()

api_router.include_router(export.router, tags=["export"])
api_router.include_router(cache.router, prefix="/api/cache", tags=["cache"])
api_router.include_router(health.router, tags=["health"])
api_router.include_router(metrics.router)

__all__ = ["api_router"]
