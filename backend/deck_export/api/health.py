# deck_export/api/health.py
from datetime import datetime
from fastapi import APIRouter, Depends
from deck_export.api.dependencies import get_cache, get_registry
from deck_export.config import settings
from deck_export.services.cache import ArtifactCache
from deck_export.services.exporters import RendererRegistry

router = APIRouter()

@router.get("/api/health")
async def health_check(
    cache: ArtifactCache = Depends(get_cache),
    registry: RendererRegistry = Depends(get_registry),
):
    """Detailed health check"""
    cache_health = cache.is_healthy()
    return {
        "status": "healthy" if cache_health.healthy else "degraded",
        "timestamp": datetime.now().isoformat(),
        "environment": settings.environment,
        "formats": registry.formats(),
        "cache_entries": len(cache),
        "cache": cache_health.to_dict(),
    }
