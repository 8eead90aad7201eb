# deck_export/api/cache.py
from enum import Enum

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from deck_export.api.dependencies import get_cache
from deck_export.services.cache import ArtifactCache

router = APIRouter()


class CacheOperation(str, Enum):
    GET_CACHE_STATS = "get-cache-stats"
    CLEAR_CACHE = "clear-cache"
    CLEANUP_CACHE = "cleanup-cache"


@router.post("")
async def cache_operation(request: Request, cache: ArtifactCache = Depends(get_cache)):
    """Cache management: stats, clear, or TTL cleanup"""
    try:
        body = await request.json()
    except ValueError:
        body = None
    operation = body.get("operation") if isinstance(body, dict) else None

    try:
        op = CacheOperation(operation)
    except ValueError:
        return JSONResponse(
            status_code=400,
            content={
                "error": f"Unknown cache operation: {operation}",
                "details": [f"operation must be one of: {', '.join(o.value for o in CacheOperation)}"],
            },
        )

    if op is CacheOperation.GET_CACHE_STATS:
        return {
            "success": True,
            "stats": cache.get_stats().to_dict(),
            "config": cache.get_config().to_dict(),
            "health": cache.is_healthy().to_dict(),
        }
    if op is CacheOperation.CLEAR_CACHE:
        cache.clear()
        return {"success": True, "message": "Cache cleared"}

    removed = cache.cleanup()
    return {"success": True, "message": f"Removed {removed} expired entries", "removed": removed}


@router.get("/list")
async def list_cache(limit: int = Query(20, ge=1, le=200), cache: ArtifactCache = Depends(get_cache)):
    """List cached exports, most accessed first"""
    entries = cache.get_most_accessed_entries(limit)
    return {"count": len(cache), "entries": [e.summary() for e in entries]}
