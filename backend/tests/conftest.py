import base64
from datetime import datetime, timezone

import pytest

from deck_export.models import (
    ExportOptions,
    ExportRequest,
    GeneratedPresentation,
    Issue,
    PresentationMetadata,
    PresentationSlide,
    SprintMetrics,
)
from deck_export.services.exporters.base_renderer import ExportMetadata, ExportResult

# 1x1 transparent PNG
PNG_BYTES = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)
FIXED_NOW = datetime(2024, 3, 15, 9, 30, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock returning seconds, for cache TTL tests."""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


def make_result(size: int = 10, name: str = "artifact.html", format: str = "html") -> ExportResult:
    blob = b"x" * size
    return ExportResult(
        blob=blob,
        file_name=name,
        file_size=len(blob),
        format=format,
        media_type="text/html",
        metadata=ExportMetadata(slide_count=1, processing_time=0, quality="medium"),
    )


def make_issues():
    return [
        Issue(id="1", key="DECK-1", summary="Login flow", status="Done", assignee="Ana",
              story_points=8, issue_type="Story", epic_name="Auth"),
        Issue(id="2", key="DECK-2", summary="Fix crash on save", status="Closed", assignee="Ben",
              story_points=3, issue_type="Bug", epic_name="Stability"),
        Issue(id="3", key="DECK-3", summary="Dashboard filters", status="In Progress", assignee="Ana",
              story_points=5, issue_type="Story", epic_name="Auth"),
    ]


def make_metrics():
    return SprintMetrics(
        planned_items=12,
        estimated_points=20,
        completed_total_points=16,
        test_coverage=82,
        sprint_number="42",
        quality_checklist={"Code review": "yes", "Docs updated": "partial", "Perf tested": "no"},
    )


def make_presentation(slides=None, sprint_name="Sprint 42: Rocket") -> GeneratedPresentation:
    if slides is None:
        slides = [
            PresentationSlide(id="s1", title="Sprint 42 Review", type="title", order=1),
            PresentationSlide(id="s2", title="Summary", type="summary", order=2,
                              content="We shipped **login** and fixed crashes.\n\n- item one\n- item two"),
            PresentationSlide(id="s3", title="Metrics", type="metrics", order=3),
            PresentationSlide(id="s4", title="Login demo", type="demo-story", order=4,
                              story_id="1", content="Users can now sign in."),
            PresentationSlide(id="s5", title="Questions", type="qa", order=5),
        ]
    return GeneratedPresentation(
        id="pres-1",
        title="Sprint 42 Review",
        slides=slides,
        created_at="2024-03-14T10:00:00Z",
        metadata=PresentationMetadata(sprint_name=sprint_name, total_slides=len(slides), has_metrics=True,
                                      demo_stories_count=1),
    )


def make_request(format: str = "html", slides=None, **options) -> ExportRequest:
    return ExportRequest(
        presentation=make_presentation(slides),
        all_issues=make_issues(),
        upcoming_issues=[Issue(id="9", key="DECK-9", summary="Reports", status="To Do", story_points=5)],
        sprint_metrics=make_metrics(),
        options=ExportOptions(format=format, **options),
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fixed_now():
    return lambda: FIXED_NOW
