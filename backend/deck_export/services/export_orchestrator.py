# deck_export/services/export_orchestrator.py
"""
Export orchestrator: the single entry point for producing export artifacts.

    validate -> fingerprint -> cache lookup -> (join in-flight | render -> quality check) -> cache store

Identical requests (same fingerprint) that arrive while a render is running
share that render's task and therefore its result or its exception. The
shared task is shielded, so a caller that goes away does not cancel it and
the result still lands in the cache.

Cache problems never fail an export: lookups that raise are treated as a
miss and stores that raise are skipped. RendererError propagates unchanged.

Every render that actually runs is recorded in the analytics log (started,
then completed or failed). The quality check is advisory: its report is
logged and attached to the completed event, never to the result.
"""
import asyncio
import hashlib
import json
import time
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from deck_export.errors import RendererError
from deck_export.models import (
    ExportFormat,
    ExportOptions,
    ExportRequest,
    GeneratedPresentation,
    Issue,
    PresentationMetadata,
    PresentationSlide,
    SlideType,
    SprintMetrics,
)
from deck_export.services.cache import ArtifactCache
from deck_export.services.export_analytics import ExportAnalytics
from deck_export.services.export_quality import QualityReport, QualityThresholds, check_export, record_quality
from deck_export.services.export_validation import validate_export_request
from deck_export.services.exporters.base_renderer import BaseRenderer, ExportResult
from deck_export.services.exporters.registry import RendererRegistry
from deck_export.services.progress import ProgressCallback
from deck_export.utils.file_utils import make_export_file_name
from deck_export.utils.logging import logger
from deck_export.utils.metrics import (
    EXPORT_BYTES_TOTAL,
    EXPORT_GENERATION_SECONDS,
    EXPORT_INFLIGHT_JOINS,
    EXPORT_REQUESTS,
)


def fingerprint(request: ExportRequest) -> str:
    """SHA-256 of the request's canonical JSON (sorted keys, compact separators)."""
    payload = request.model_dump(mode="json", by_alias=True)
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class ExportOrchestrator:
    """Validates, deduplicates, caches and dispatches export requests."""

    def __init__(
        self,
        cache: ArtifactCache,
        registry: RendererRegistry,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        analytics: Optional[ExportAnalytics] = None,
        quality_thresholds: Optional[QualityThresholds] = None,
    ):
        self.cache = cache
        self.registry = registry
        self.clock = clock
        self.analytics = analytics if analytics is not None else ExportAnalytics()
        self.quality_thresholds = quality_thresholds or QualityThresholds()
        self._inflight: Dict[str, asyncio.Task] = {}

    async def export(self, request: ExportRequest, on_progress: Optional[ProgressCallback] = None) -> ExportResult:
        """
        Produce the artifact for `request`, from cache when possible.

        Raises:
            ValidationError: the request is invalid or the format is unknown
            RendererError: rendering failed (nothing is cached)
        """
        validate_export_request(request, formats=self.registry.formats())
        fmt = request.options.format
        renderer = self.registry.get(fmt)
        EXPORT_REQUESTS.labels(format=fmt).inc()

        key = fingerprint(request)
        cached = self._cache_get(key)
        if cached is not None:
            return cached

        task = self._inflight.get(key)
        if task is not None:
            EXPORT_INFLIGHT_JOINS.inc()
            logger.info(f"Joining in-flight {fmt} export for {key[:8]}...", extra={"fingerprint": key})
        else:
            task = asyncio.get_running_loop().create_task(
                self._render_and_store(key, renderer, request, on_progress)
            )
            self._inflight[key] = task
            task.add_done_callback(lambda t, k=key: self._settle(k, t))

        return await asyncio.shield(task)

    async def export_executive_metrics(
        self,
        sprint_metrics: SprintMetrics,
        all_issues: List[Issue],
        options: Optional[ExportOptions] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ExportResult:
        """Executive summary built from sprint metrics alone (one synthetic metrics slide)."""
        presentation = self.build_metrics_presentation(sprint_metrics)
        quality = options.quality if options else "medium"
        additional_data = dict(options.additional_data) if options else {}
        request = ExportRequest(
            presentation=presentation,
            all_issues=all_issues,
            upcoming_issues=[],
            sprint_metrics=sprint_metrics,
            options=ExportOptions(
                format=ExportFormat.EXECUTIVE.value, quality=quality, additional_data=additional_data,
            ),
        )
        return await self.export(request, on_progress)

    def build_metrics_presentation(self, sprint_metrics: SprintMetrics) -> GeneratedPresentation:
        sprint_name = f"Sprint {sprint_metrics.sprint_number}" if sprint_metrics.sprint_number else "Executive Summary"
        return GeneratedPresentation(
            id="executive-metrics",
            title="Executive Metrics Dashboard",
            slides=[
                PresentationSlide(id="metrics", title="Sprint Metrics", type=SlideType.METRICS.value, order=0),
            ],
            # Day granularity keeps same-day metrics exports on one cache entry
            created_at=self.clock().date().isoformat(),
            metadata=PresentationMetadata(sprint_name=sprint_name, total_slides=1, has_metrics=True),
        )

    def generate_file_name(
        self, presentation: GeneratedPresentation, format: str, executive_format: bool = False
    ) -> str:
        renderer = self.registry.get(format)
        prefix = "Executive_Metrics" if executive_format else renderer.file_prefix
        return make_export_file_name(prefix, presentation.metadata.sprint_name, renderer.extension, now=self.clock())

    def inflight_count(self) -> int:
        return len(self._inflight)

    # ---------- internals ----------

    async def _render_and_store(
        self,
        key: str,
        renderer: BaseRenderer,
        request: ExportRequest,
        on_progress: Optional[ProgressCallback],
    ) -> ExportResult:
        fmt = request.options.format
        quality = request.options.quality
        slide_count = len(request.presentation.slides)
        start_time = time.perf_counter()
        logger.info(f"Rendering {fmt} export for {key[:8]}...", extra={"export_format": fmt, "fingerprint": key})
        self.analytics.track_start(fmt, quality, slide_count)

        try:
            result = await renderer.render(
                request.presentation,
                request.all_issues,
                request.upcoming_issues,
                request.sprint_metrics,
                request.options,
                on_progress=on_progress,
            )
        except RendererError as e:
            elapsed_ms = int((time.perf_counter() - start_time) * 1000)
            self.analytics.track_failure(fmt, quality, str(e), slide_count, elapsed_ms)
            raise

        EXPORT_GENERATION_SECONDS.labels(format=fmt).observe(time.perf_counter() - start_time)
        EXPORT_BYTES_TOTAL.inc(result.file_size)

        report = self._quality_check(key, request, result)
        self.analytics.track_complete(
            fmt, quality, result.metadata.slide_count, result.file_size, result.metadata.processing_time,
            quality_score=report.score if report is not None else None,
        )
        self._cache_set(key, result)
        return result

    def _quality_check(self, key: str, request: ExportRequest, result: ExportResult) -> Optional[QualityReport]:
        try:
            report = check_export(result, request.presentation, self.quality_thresholds)
            record_quality(report, result.file_name, fingerprint=key)
        except Exception as e:
            logger.warning(f"⚠️ Export quality check could not run: {e}", extra={"fingerprint": key})
            return None
        return report

    def _settle(self, key: str, task: asyncio.Task):
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if task.cancelled():
            return
        # Retrieve the exception so an abandoned task never logs "exception was never retrieved"
        exc = task.exception()
        if exc is not None and not isinstance(exc, RendererError):
            logger.error(f"Export task for {key[:8]}... failed unexpectedly: {exc}")

    def _cache_get(self, key: str) -> Optional[ExportResult]:
        try:
            return self.cache.get(key)
        except Exception as e:
            logger.warning(f"⚠️ Export cache lookup failed, rendering instead: {e}", extra={"fingerprint": key})
            return None

    def _cache_set(self, key: str, result: ExportResult):
        try:
            self.cache.set(key, result)
        except Exception as e:
            logger.warning(f"⚠️ Export cache store failed, result not cached: {e}", extra={"fingerprint": key})
