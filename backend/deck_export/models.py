# backend/deck_export/models.py
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional, Dict, List, Any, Union
from enum import Enum
import json


class WireModel(BaseModel):
    """Base for request payloads: camelCase on the wire, snake_case in Python, unknown keys ignored."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


class ExportFormat(str, Enum):
    HTML = "html"
    PDF = "pdf"
    MARKDOWN = "markdown"
    EXECUTIVE = "executive"
    ADVANCED_DIGEST = "advanced-digest"
    DIGEST = "digest"


class ExportQuality(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SlideType(str, Enum):
    """Slide tags the renderers know. Other values render through the default arm."""
    TITLE = "title"
    SUMMARY = "summary"
    METRICS = "metrics"
    DEMO_STORY = "demo-story"
    CUSTOM = "custom"
    CORPORATE = "corporate"
    QA = "qa"


COMPLETED_STATUS_MARKERS = ("done", "closed", "resolved")

# ---------- Issue tracker data ----------
class Issue(WireModel):
    id: str
    key: str
    summary: str
    description: Optional[str] = None
    status: str = ""
    assignee: Optional[str] = None
    story_points: Optional[float] = None
    issue_type: str = "Story"
    is_subtask: bool = False
    epic_key: Optional[str] = None
    epic_name: Optional[str] = None
    epic_color: Optional[str] = None
    release_notes: Optional[str] = None

    @property
    def is_completed(self) -> bool:
        status = self.status.lower()
        return any(marker in status for marker in COMPLETED_STATUS_MARKERS)


class SprintMetrics(WireModel):
    planned_items: int = 0
    estimated_points: float = 0
    carry_forward_points: float = 0
    committed_buffer_points: float = 0
    completed_buffer_points: float = 0
    test_coverage: float = 0
    sprint_number: str = ""
    completed_total_points: float = 0
    completed_adjusted_points: float = 0
    quality_checklist: Dict[str, str] = Field(default_factory=dict)  # item -> yes|no|partial|na


# ---------- Presentation ----------
class PresentationSlide(WireModel):
    id: str
    title: str
    content: Union[str, Dict[str, Any], List[Any], None] = ""
    type: str = SlideType.CUSTOM.value
    order: int
    corporate_slide_url: Optional[str] = None
    story_id: Optional[str] = None

    def content_text(self) -> str:
        """Slide content as text; structured content is flattened to JSON."""
        if self.content is None:
            return ""
        if isinstance(self.content, str):
            return self.content
        return json.dumps(self.content, sort_keys=True, ensure_ascii=False)


class PresentationMetadata(WireModel):
    sprint_name: str = ""
    total_slides: int = 0
    has_metrics: bool = False
    demo_stories_count: int = 0
    custom_slides_count: int = 0


class GeneratedPresentation(WireModel):
    id: str
    title: str
    slides: List[PresentationSlide] = Field(default_factory=list)
    created_at: str = ""
    metadata: PresentationMetadata = Field(default_factory=PresentationMetadata)

    def ordered_slides(self) -> List[PresentationSlide]:
        return sorted(self.slides, key=lambda s: s.order)


# ---------- Export request ----------
class ExportOptions(WireModel):
    # Kept as plain strings so unsupported values reach validation (ValidationError, HTTP 400)
    format: str
    quality: str = ExportQuality.MEDIUM.value
    additional_data: Dict[str, Any] = Field(default_factory=dict)


class ExportRequest(WireModel):
    presentation: GeneratedPresentation
    all_issues: List[Issue] = Field(default_factory=list)
    upcoming_issues: List[Issue] = Field(default_factory=list)
    sprint_metrics: Optional[SprintMetrics] = None
    options: ExportOptions
