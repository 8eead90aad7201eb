from typing import Optional

from .artifact_cache import ArtifactCache, CacheConfig, CacheEntry, CacheHealth, CacheStats


def create_cache(config: Optional[CacheConfig] = None) -> ArtifactCache:
    """Factory: artifact cache bounded by the configured export cache settings."""
    return ArtifactCache(config or CacheConfig.from_settings())


__all__ = ["create_cache", "ArtifactCache", "CacheConfig", "CacheEntry", "CacheHealth", "CacheStats"]
