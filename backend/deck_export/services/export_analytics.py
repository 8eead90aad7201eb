# deck_export/services/export_analytics.py
"""Export usage analytics

A bounded, in-process log of export events (started / completed / failed)
recorded by the orchestrator for every render it actually runs. Cache hits
and joined in-flight requests are not renders and are not recorded.

Aggregates are computed on demand over a time range ("day", "week",
"month" or "all"). Outcome aggregates (success rate, averages, usage
patterns, error analysis) only look at completed and failed events.
"""
import time
import uuid
from collections import Counter, deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Deque, Dict, List, Optional

DEFAULT_MAX_EVENTS = 10_000

EVENT_STARTED = "export_started"
EVENT_COMPLETED = "export_completed"
EVENT_FAILED = "export_failed"

TIME_RANGES = {
    "day": 24 * 60 * 60,
    "week": 7 * 24 * 60 * 60,
    "month": 30 * 24 * 60 * 60,
    "all": None,
}

ERROR_CATEGORIES = [
    (("memory",), "Memory Error"),
    (("timeout", "time out", "timed out"), "Timeout Error"),
    (("network", "connection"), "Network Error"),
    (("permission", "access"), "Permission Error"),
    (("format", "invalid"), "Format Error"),
]


def categorize_error(message: str) -> str:
    lower = message.lower()
    for needles, category in ERROR_CATEGORIES:
        if any(n in lower for n in needles):
            return category
    return "General Error"


@dataclass(frozen=True)
class ExportEvent:
    id: str
    timestamp: float  # seconds since epoch
    event_type: str
    format: str
    quality: str
    slide_count: int = 0
    file_size: int = 0
    processing_time: int = 0  # milliseconds
    success: bool = False
    error_message: Optional[str] = None
    quality_score: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "eventType": self.event_type,
            "format": self.format,
            "quality": self.quality,
            "slideCount": self.slide_count,
            "fileSize": self.file_size,
            "processingTime": self.processing_time,
            "success": self.success,
            "errorMessage": self.error_message,
            "qualityScore": self.quality_score,
        }


def _average(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0


def _most_common(values) -> str:
    # Counter.most_common keeps first-seen order among ties
    counts = Counter(values).most_common(1)
    return str(counts[0][0]) if counts else ""


class ExportAnalytics:
    """Bounded export event log with on-demand aggregates."""

    def __init__(self, max_events: int = DEFAULT_MAX_EVENTS, clock: Callable[[], float] = time.time):
        if max_events < 1:
            raise ValueError("max_events must be at least 1")
        self.clock = clock
        self._events: Deque[ExportEvent] = deque(maxlen=max_events)

    # ---------- recording ----------

    def _record(self, event_type: str, format: str, quality: str, **fields) -> ExportEvent:
        event = ExportEvent(
            id=uuid.uuid4().hex, timestamp=self.clock(), event_type=event_type,
            format=format, quality=quality, **fields,
        )
        self._events.append(event)
        return event

    def track_start(self, format: str, quality: str, slide_count: int = 0) -> ExportEvent:
        return self._record(EVENT_STARTED, format, quality, slide_count=slide_count)

    def track_complete(
        self, format: str, quality: str, slide_count: int, file_size: int, processing_time: int,
        quality_score: Optional[int] = None,
    ) -> ExportEvent:
        return self._record(
            EVENT_COMPLETED, format, quality, slide_count=slide_count, file_size=file_size,
            processing_time=processing_time, success=True, quality_score=quality_score,
        )

    def track_failure(
        self, format: str, quality: str, error_message: str, slide_count: int = 0, processing_time: int = 0,
    ) -> ExportEvent:
        return self._record(
            EVENT_FAILED, format, quality, slide_count=slide_count,
            processing_time=processing_time, error_message=error_message,
        )

    def clear(self):
        self._events.clear()

    def __len__(self) -> int:
        return len(self._events)

    # ---------- queries ----------

    def events(self, time_range: str = "all") -> List[ExportEvent]:
        if time_range not in TIME_RANGES:
            raise ValueError(f"time_range must be one of: {', '.join(TIME_RANGES)}")
        window = TIME_RANGES[time_range]
        if window is None:
            return list(self._events)
        cutoff = self.clock() - window
        return [e for e in self._events if e.timestamp >= cutoff]

    def _outcomes(self, time_range: str) -> List[ExportEvent]:
        return [e for e in self.events(time_range) if e.event_type in (EVENT_COMPLETED, EVENT_FAILED)]

    def get_metrics(self, time_range: str = "all") -> dict:
        outcomes = self._outcomes(time_range)
        successful = [e for e in outcomes if e.success]
        timestamps = [datetime.fromtimestamp(e.timestamp, timezone.utc) for e in outcomes]
        return {
            "timeRange": time_range,
            "totalExports": len(outcomes),
            "successfulExports": len(successful),
            "failedExports": len(outcomes) - len(successful),
            "successRate": round(len(successful) / len(outcomes) * 100, 1) if outcomes else 0,
            "averageProcessingTime": round(_average([e.processing_time for e in successful])),
            "averageFileSize": round(_average([e.file_size for e in successful])),
            "averageSlideCount": round(_average([e.slide_count for e in outcomes]), 1),
            "mostPopularFormat": _most_common(e.format for e in outcomes),
            "mostPopularQuality": _most_common(e.quality for e in outcomes),
            "peakUsageHour": int(_most_common(t.hour for t in timestamps) or 0),
            "peakUsageDay": _most_common(t.strftime("%A") for t in timestamps),
        }

    def get_usage_patterns(self, time_range: str = "all") -> List[dict]:
        """Per-format counts and averages, most used format first."""
        outcomes = self._outcomes(time_range)
        by_format: Dict[str, List[ExportEvent]] = {}
        for event in outcomes:
            by_format.setdefault(event.format, []).append(event)

        patterns = []
        for fmt, events in by_format.items():
            successful = [e for e in events if e.success]
            patterns.append({
                "format": fmt,
                "count": len(events),
                "percentage": round(len(events) / len(outcomes) * 100, 1),
                "averageProcessingTime": round(_average([e.processing_time for e in successful])),
                "averageFileSize": round(_average([e.file_size for e in successful])),
                "successRate": round(len(successful) / len(events) * 100, 1),
            })
        return sorted(patterns, key=lambda p: p["count"], reverse=True)

    def get_error_analysis(self, time_range: str = "all") -> dict:
        outcomes = self._outcomes(time_range)
        failed = [e for e in outcomes if not e.success]
        error_types = Counter(categorize_error(e.error_message or "") for e in failed)
        return {
            "timeRange": time_range,
            "totalErrors": len(failed),
            "errorTypes": dict(error_types),
            "mostCommonError": error_types.most_common(1)[0][0] if error_types else None,
            "errorRate": round(len(failed) / len(outcomes) * 100, 1) if outcomes else 0,
        }

    def summary(self, time_range: str = "all") -> dict:
        return {
            "metrics": self.get_metrics(time_range),
            "usagePatterns": self.get_usage_patterns(time_range),
            "errors": self.get_error_analysis(time_range),
        }
