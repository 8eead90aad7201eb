# deck_export/core/lifespan.py
from contextlib import asynccontextmanager
from deck_export.config import settings
from deck_export.utils.logging import logger
from deck_export.api.dependencies import cache, registry


@asynccontextmanager
async def lifespan(app):
    """Run setup and teardown logic for the app lifecycle."""

    # ---------- Startup ----------
    config = cache.get_config()
    logger.info("Application starting", extra={
        "environment": settings.environment,
        "formats": registry.formats(),
        "cache_max_entries": config.max_entries,
        "cache_max_size_bytes": config.max_size,
        "cache_ttl_seconds": config.ttl,
    })

    # Periodic TTL cleanup of the artifact cache
    cache.start()

    # yield control to the running app
    yield

    # ---------- Shutdown ----------

    await cache.dispose()  # Stop background cleanup, drop cached artifacts
    logger.info("Application shutting down")
