import pytest

from deck_export.services.export_analytics import (
    EVENT_COMPLETED,
    EVENT_FAILED,
    EVENT_STARTED,
    ExportAnalytics,
    categorize_error,
)

from conftest import FakeClock

DAY = 24 * 60 * 60


def _complete(analytics, format="html", quality="medium", file_size=1000, processing_time=100, slide_count=5):
    analytics.track_start(format, quality, slide_count)
    return analytics.track_complete(format, quality, slide_count, file_size, processing_time, quality_score=95)


def test_tracks_started_completed_and_failed_events():
    analytics = ExportAnalytics(clock=FakeClock())
    _complete(analytics)
    analytics.track_start("pdf", "high", 3)
    failed = analytics.track_failure("pdf", "high", "PDF export failed: boom", slide_count=3, processing_time=40)

    assert [e.event_type for e in analytics.events()] == [
        EVENT_STARTED, EVENT_COMPLETED, EVENT_STARTED, EVENT_FAILED,
    ]
    assert not failed.success
    assert failed.to_dict()["errorMessage"] == "PDF export failed: boom"
    assert analytics.events()[1].quality_score == 95


def test_metrics_only_count_outcomes():
    # 1970-01-01 00:16:40 UTC, a Thursday
    analytics = ExportAnalytics(clock=FakeClock(1_000.0))
    _complete(analytics, "html", file_size=1000, processing_time=100)
    _complete(analytics, "html", file_size=3000, processing_time=300)
    _complete(analytics, "pdf", file_size=5000, processing_time=500)
    analytics.track_failure("markdown", "high", "connection reset")

    metrics = analytics.get_metrics()
    assert metrics["totalExports"] == 4
    assert (metrics["successfulExports"], metrics["failedExports"]) == (3, 1)
    assert metrics["successRate"] == 75.0
    assert metrics["averageFileSize"] == 3000
    assert metrics["averageProcessingTime"] == 300
    assert metrics["mostPopularFormat"] == "html"
    assert metrics["mostPopularQuality"] == "medium"
    assert (metrics["peakUsageHour"], metrics["peakUsageDay"]) == (0, "Thursday")


def test_empty_log_reports_zeros():
    metrics = ExportAnalytics(clock=FakeClock()).get_metrics("day")
    assert metrics["totalExports"] == 0
    assert metrics["successRate"] == 0
    assert metrics["mostPopularFormat"] == ""


def test_time_range_filters_old_events():
    clock = FakeClock(10 * DAY)
    analytics = ExportAnalytics(clock=clock)
    _complete(analytics, "markdown")
    clock.advance(2 * DAY)
    _complete(analytics, "html")

    assert analytics.get_metrics("day")["totalExports"] == 1
    assert analytics.get_metrics("week")["totalExports"] == 2
    assert analytics.get_metrics("all")["totalExports"] == 2
    with pytest.raises(ValueError):
        analytics.events("fortnight")


def test_event_log_is_bounded():
    analytics = ExportAnalytics(max_events=3, clock=FakeClock())
    for fmt in ("html", "pdf", "markdown"):
        _complete(analytics, fmt)

    assert len(analytics) == 3
    # oldest events are dropped first
    assert [e.format for e in analytics.events()] == ["pdf", "markdown", "markdown"]


def test_usage_patterns_sorted_by_count():
    analytics = ExportAnalytics(clock=FakeClock())
    _complete(analytics, "pdf", file_size=2000)
    analytics.track_failure("pdf", "medium", "timeout while rendering")
    _complete(analytics, "html")
    _complete(analytics, "pdf", file_size=4000)

    patterns = analytics.get_usage_patterns()
    assert [p["format"] for p in patterns] == ["pdf", "html"]
    assert patterns[0]["count"] == 3
    assert patterns[0]["percentage"] == 75.0
    assert patterns[0]["averageFileSize"] == 3000
    assert patterns[0]["successRate"] == 66.7


def test_error_analysis_categorizes_failures():
    analytics = ExportAnalytics(clock=FakeClock())
    _complete(analytics)
    analytics.track_failure("pdf", "medium", "Network unreachable")
    analytics.track_failure("pdf", "medium", "connection refused")
    analytics.track_failure("html", "medium", "HTML export failed: boom")

    errors = analytics.get_error_analysis()
    assert errors["totalErrors"] == 3
    assert errors["errorTypes"] == {"Network Error": 2, "General Error": 1}
    assert errors["mostCommonError"] == "Network Error"
    assert errors["errorRate"] == 75.0


def test_error_categories():
    assert categorize_error("JavaScript heap out of memory") == "Memory Error"
    assert categorize_error("Request timed out") == "Timeout Error"
    assert categorize_error("Access denied") == "Permission Error"
    assert categorize_error("Invalid slide payload") == "Format Error"
    assert categorize_error("") == "General Error"


def test_max_events_must_be_positive():
    with pytest.raises(ValueError):
        ExportAnalytics(max_events=0)
