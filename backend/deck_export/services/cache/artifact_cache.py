import asyncio
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from deck_export.config import settings
from deck_export.services.exporters.base_renderer import ExportResult
from deck_export.utils.file_utils import format_file_size
from deck_export.utils.logging import logger
from deck_export.utils.metrics import (
    EXPORT_CACHE_EVICTIONS,
    EXPORT_CACHE_EXPIRED,
    EXPORT_CACHE_HITS,
    EXPORT_CACHE_MISSES,
    EXPORT_CACHE_REJECTIONS,
)

# Bookkeeping estimate per entry (key, timestamps, counters) on top of the artifact bytes
ENTRY_OVERHEAD_BYTES = 1000


@dataclass(frozen=True)
class CacheConfig:
    max_size: int  # bytes
    max_entries: int
    ttl: float  # seconds
    cleanup_interval: float  # seconds

    def __post_init__(self):
        if self.max_size <= 0 or self.max_entries < 1:
            raise ValueError("cache max_size must be positive and max_entries at least 1")
        if self.ttl <= 0 or self.cleanup_interval <= 0:
            raise ValueError("cache ttl and cleanup_interval must be positive")

    @classmethod
    def from_settings(cls) -> "CacheConfig":
        return cls(
            max_size=settings.export_cache_max_size_bytes,
            max_entries=settings.export_cache_max_entries,
            ttl=settings.export_cache_ttl_seconds,
            cleanup_interval=settings.export_cache_cleanup_interval_seconds,
        )

    def to_dict(self) -> dict:
        return {
            "maxSize": self.max_size,
            "maxEntries": self.max_entries,
            "ttl": self.ttl,
            "cleanupInterval": self.cleanup_interval,
        }


@dataclass
class CacheEntry:
    key: str
    result: ExportResult
    created_at: float
    last_accessed: float
    access_count: int = 1
    size: int = 0

    def summary(self) -> dict:
        return {
            "key": self.key,
            "fileName": self.result.file_name,
            "format": self.result.format,
            "size": self.size,
            "accessCount": self.access_count,
            "createdAt": self.created_at,
            "lastAccessed": self.last_accessed,
        }


@dataclass(frozen=True)
class CacheStats:
    total_entries: int
    total_size: int
    hit_rate: int
    miss_rate: int
    average_entry_size: float
    oldest_entry: float
    newest_entry: float
    memory_usage: int
    hits: int = 0
    misses: int = 0

    def to_dict(self) -> dict:
        return {
            "totalEntries": self.total_entries,
            "totalSize": self.total_size,
            "totalSizeFormatted": format_file_size(self.total_size),
            "hitRate": self.hit_rate,
            "missRate": self.miss_rate,
            "averageEntrySize": self.average_entry_size,
            "oldestEntry": self.oldest_entry,
            "newestEntry": self.newest_entry,
            "memoryUsage": self.memory_usage,
            "hits": self.hits,
            "misses": self.misses,
        }


@dataclass(frozen=True)
class CacheHealth:
    healthy: bool
    issues: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"healthy": self.healthy, "issues": list(self.issues)}


class ArtifactCache:
    """
    In-memory, size- and count-bounded cache of rendered export artifacts.

    Keyed by request fingerprint. Entries expire `ttl` seconds after creation;
    when a new entry does not fit, the least recently accessed entry is evicted
    (ties: larger entry first, then older recency order). Stats are derived on
    demand from the entry map plus hit/miss counters.

    Single event loop only: no locking, no cross-process sharing.
    """

    def __init__(self, config: Optional[CacheConfig] = None, clock: Callable[[], float] = time.time):
        self.config = config or CacheConfig.from_settings()
        self.clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._hits = 0
        self._misses = 0
        self._cleanup_task: Optional[asyncio.Task] = None

    # ---------- core operations ----------

    def get(self, key: str) -> Optional[ExportResult]:
        """Stored ExportResult for `key`, or None on a miss or expiry.

        Returns the artifact rather than the CacheEntry; entry bookkeeping
        (access_count, last_accessed) is updated here and read via get_entries().
        """
        entry = self._entries.get(key)
        if entry is None:
            self._record_miss()
            logger.info(f"Export cache MISS for {key[:8]}...")
            return None

        now = self.clock()
        if self._is_expired(entry, now):
            self._remove(key)
            EXPORT_CACHE_EXPIRED.inc()
            self._record_miss()
            logger.info(f"Export cache EXPIRED for {key[:8]}...")
            return None

        entry.access_count += 1
        entry.last_accessed = now
        self._entries.move_to_end(key)
        self._hits += 1
        EXPORT_CACHE_HITS.inc()
        logger.info(f"Export cache HIT for {key[:8]}... ({entry.result.file_name})")
        return entry.result

    def set(self, key: str, result: ExportResult) -> bool:
        """Store a result. Returns False if it can never fit (larger than max_size)."""
        size = result.file_size
        if size > self.config.max_size:
            EXPORT_CACHE_REJECTIONS.inc()
            logger.warning(
                f"⚠️ Export too large to cache: {format_file_size(size)} > {format_file_size(self.config.max_size)}",
                extra={"fingerprint": key},
            )
            return False

        if key in self._entries:
            self._remove(key)

        while self._entries and (
            len(self._entries) + 1 > self.config.max_entries
            or self._total_size() + size > self.config.max_size
        ):
            self._evict_one()

        now = self.clock()
        self._entries[key] = CacheEntry(
            key=key, result=result, created_at=now, last_accessed=now, access_count=1, size=size,
        )
        logger.info(f"Cached export {result.file_name} for {key[:8]}... ({format_file_size(size)})")
        return True

    def has(self, key: str) -> bool:
        """Presence check without touching stats or recency; expired entries count as absent."""
        entry = self._entries.get(key)
        return entry is not None and not self._is_expired(entry, self.clock())

    def delete(self, key: str) -> bool:
        return self._remove(key) is not None

    def cleanup(self) -> int:
        now = self.clock()
        expired = [key for key, entry in self._entries.items() if self._is_expired(entry, now)]
        for key in expired:
            self._remove(key)
        if expired:
            EXPORT_CACHE_EXPIRED.inc(len(expired))
            logger.info(f"Cleared {len(expired)} expired export cache entries")
        return len(expired)

    def clear(self):
        count = len(self._entries)
        self._entries.clear()
        self._hits = 0
        self._misses = 0
        logger.info(f"Export cache cleared ({count} entries)")

    # ---------- inspection ----------

    def is_healthy(self) -> CacheHealth:
        issues = []
        now = self.clock()
        total_entries = len(self._entries)
        total_size = self._total_size()

        if total_size > self.config.max_size:
            issues.append(
                f"Cache size {format_file_size(total_size)} exceeds limit {format_file_size(self.config.max_size)}"
            )
        if total_entries > self.config.max_entries:
            issues.append(f"Cache has {total_entries} entries, limit is {self.config.max_entries}")

        lag_limit = self.config.ttl + self.config.cleanup_interval
        stale = sum(1 for e in self._entries.values() if now - e.created_at > lag_limit)
        if stale:
            issues.append(f"{stale} entries are past their TTL by more than one cleanup interval")

        # Empty artifacts legitimately have size 0; only recorded sizes that disagree with the blobs are inconsistent
        drifted = [e.key for e in self._entries.values() if e.size != e.result.file_size]
        if total_entries and total_size == 0 and drifted:
            issues.append("Cache holds entries but reports zero average entry size")
        elif drifted:
            issues.append(f"{len(drifted)} entries have a recorded size that differs from their artifact")

        return CacheHealth(healthy=not issues, issues=issues)

    def get_most_accessed_entries(self, limit: int = 10) -> List[CacheEntry]:
        return self._ranked(lambda e: (e.access_count, e.last_accessed), limit)

    def get_largest_entries(self, limit: int = 10) -> List[CacheEntry]:
        return self._ranked(lambda e: (e.size, e.last_accessed), limit)

    def get_oldest_entries(self, limit: int = 10) -> List[CacheEntry]:
        return sorted(self._entries.values(), key=lambda e: e.created_at)[:limit]

    def get_entries(self) -> List[CacheEntry]:
        return list(self._entries.values())

    def get_stats(self) -> CacheStats:
        total_entries = len(self._entries)
        total_size = self._total_size()
        lookups = self._hits + self._misses
        created = [e.created_at for e in self._entries.values()]
        return CacheStats(
            total_entries=total_entries,
            total_size=total_size,
            hit_rate=round(self._hits / lookups * 100) if lookups else 0,
            miss_rate=round(self._misses / lookups * 100) if lookups else 0,
            average_entry_size=total_size / total_entries if total_entries else 0,
            oldest_entry=min(created) if created else 0,
            newest_entry=max(created) if created else 0,
            memory_usage=total_size + ENTRY_OVERHEAD_BYTES * total_entries,
            hits=self._hits,
            misses=self._misses,
        )

    def get_config(self) -> CacheConfig:
        return self.config

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.has(key)

    # ---------- lifecycle ----------

    def start(self):
        """Start periodic cleanup on the running event loop."""
        if self._cleanup_task is not None and not self._cleanup_task.done():
            return
        self._cleanup_task = asyncio.get_running_loop().create_task(self._cleanup_loop())
        logger.info(f"Export cache cleanup scheduled every {self.config.cleanup_interval}s")

    async def dispose(self):
        """Stop periodic cleanup and drop all entries."""
        task, self._cleanup_task = self._cleanup_task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.clear()

    async def _cleanup_loop(self):
        while True:
            await asyncio.sleep(self.config.cleanup_interval)
            try:
                self.cleanup()
            except Exception as e:
                logger.error(f"Export cache cleanup failed: {e}", exc_info=True)

    # ---------- internals ----------

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.created_at > self.config.ttl

    def _total_size(self) -> int:
        return sum(e.size for e in self._entries.values())

    def _record_miss(self):
        self._misses += 1
        EXPORT_CACHE_MISSES.inc()

    def _remove(self, key: str) -> Optional[CacheEntry]:
        return self._entries.pop(key, None)

    def _evict_one(self):
        # min() keeps the first candidate among equals, i.e. the oldest in recency order
        victim = min(self._entries.values(), key=lambda e: (e.last_accessed, -e.size))
        self._remove(victim.key)
        EXPORT_CACHE_EVICTIONS.inc()
        logger.info(f"Evicted export {victim.result.file_name} ({format_file_size(victim.size)}) from cache")

    def _ranked(self, sort_key, limit: int) -> List[CacheEntry]:
        return sorted(self._entries.values(), key=sort_key, reverse=True)[:limit]
