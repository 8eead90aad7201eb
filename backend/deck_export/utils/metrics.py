"""Prometheus metrics helpers for export & artifact cache observability.

Metrics taxonomy:
Export operations:
    - export_requests_total (label format)
    - export_generation_seconds (label format)
    - export_failures_total (labels format, stage)
    - export_bytes_total (counter of bytes rendered)
    - export_inflight_joins_total (identical concurrent requests served by one render)
Export quality:
    - export_quality_score (label format, 0-100 per fresh render)
    - export_quality_failures_total (label format)
Artifact cache:
    - export_cache_hits_total
    - export_cache_misses_total
    - export_cache_evictions_total
    - export_cache_rejections_total (artifacts larger than the whole cache)
    - export_cache_expired_total (entries removed by TTL cleanup)
    - export_cache_entries, export_cache_bytes (gauges, refreshed on scrape)
Asset embedding:
    - asset_embed_failures_total
"""
from prometheus_client import Counter, Gauge, Histogram

EXPORT_REQUESTS = Counter(
    "export_requests_total",
    "Total export requests",
    ["format"]
)

# Renderer timing (request -> artifact bytes), cache hits excluded
EXPORT_GENERATION_SECONDS = Histogram(
    "export_generation_seconds",
    "Time to render an export artifact (html/markdown/pdf/executive/advanced-digest/digest)",
    ["format"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30)
)
EXPORT_FAILURES = Counter(
    "export_failures_total",
    "Total renderer failures",
    ["format", "stage"]
)
EXPORT_BYTES_TOTAL = Counter(
    "export_bytes_total",
    "Total bytes generated for exports"
)
EXPORT_INFLIGHT_JOINS = Counter(
    "export_inflight_joins_total",
    "Export requests that joined an identical render already in flight"
)

# Post-render quality checks
EXPORT_QUALITY_SCORE = Histogram(
    "export_quality_score",
    "Quality score of freshly rendered export artifacts",
    ["format"],
    buckets=(20, 40, 60, 70, 80, 90, 95, 100)
)
EXPORT_QUALITY_FAILURES = Counter(
    "export_quality_failures_total",
    "Rendered artifacts that failed the quality check",
    ["format"]
)

# Artifact cache
EXPORT_CACHE_HITS = Counter(
    "export_cache_hits_total",
    "Total artifact cache hits"
)
EXPORT_CACHE_MISSES = Counter(
    "export_cache_misses_total",
    "Total artifact cache misses"
)
EXPORT_CACHE_EVICTIONS = Counter(
    "export_cache_evictions_total",
    "Total artifact cache entries evicted to satisfy size/count bounds"
)
EXPORT_CACHE_REJECTIONS = Counter(
    "export_cache_rejections_total",
    "Artifacts not cached because they exceed the cache size on their own"
)
EXPORT_CACHE_EXPIRED = Counter(
    "export_cache_expired_total",
    "Artifact cache entries removed after their TTL"
)

# Asset embedding
ASSET_EMBED_FAILURES = Counter(
    "asset_embed_failures_total",
    "Images that could not be embedded and fell back to their original URL"
)

__all__ = [
    "EXPORT_REQUESTS",
    "EXPORT_GENERATION_SECONDS",
    "EXPORT_FAILURES",
    "EXPORT_BYTES_TOTAL",
    "EXPORT_INFLIGHT_JOINS",
    "EXPORT_QUALITY_SCORE",
    "EXPORT_QUALITY_FAILURES",
    "EXPORT_CACHE_HITS",
    "EXPORT_CACHE_MISSES",
    "EXPORT_CACHE_EVICTIONS",
    "EXPORT_CACHE_REJECTIONS",
    "EXPORT_CACHE_EXPIRED",
    "ASSET_EMBED_FAILURES",
]

# Point-in-time cache occupancy; set by the /metrics route before each scrape
EXPORT_CACHE_ENTRIES = Gauge(
    "export_cache_entries",
    "Artifacts currently held in the export cache"
)
EXPORT_CACHE_BYTES = Gauge(
    "export_cache_bytes",
    "Total artifact bytes currently held in the export cache"
)
