# deck_export/api/metrics.py
from fastapi import APIRouter, Depends, Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from deck_export.api.dependencies import get_cache
from deck_export.services.cache import ArtifactCache
from deck_export.utils.metrics import EXPORT_CACHE_BYTES, EXPORT_CACHE_ENTRIES

router = APIRouter(prefix="/metrics", tags=["metrics"])


@router.get("", summary="Prometheus metrics scrape endpoint")
def metrics_root(cache: ArtifactCache = Depends(get_cache)):
    stats = cache.get_stats()
    EXPORT_CACHE_ENTRIES.set(stats.total_entries)
    EXPORT_CACHE_BYTES.set(stats.total_size)
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
