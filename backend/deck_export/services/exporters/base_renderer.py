"""Base renderer: the render contract shared by every export format.

Every variant consumes a presentation plus supporting sprint data and produces
an ExportResult. The base class owns the render state machine:

    preparing -> rendering (one step per slide, in slide order) -> finalizing -> complete

and any exception raised along the way ends the call as a RendererError that
records the stage it failed in. Subclasses only provide:

- `begin(ctx)`: set up the document (header, styles, ...)
- `slide_handlers()`: slide type -> handler; unknown types use `render_default_slide`
- `wrap_slide(ctx, slide, number, body)`: place one rendered slide into the document
- `finish(ctx) -> bytes`: close the document and encode it
"""
import inspect
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import httpx

from deck_export.errors import RendererError
from deck_export.models import ExportOptions, GeneratedPresentation, Issue, PresentationSlide, SprintMetrics
from deck_export.services.asset_embedder import AssetEmbedder
from deck_export.services.progress import (
    FINALIZING, PREPARING, RENDERING, ProgressCallback, ProgressReporter,
)
from deck_export.utils.file_utils import format_file_size, make_export_file_name
from deck_export.utils.logging import logger
from deck_export.utils.metrics import EXPORT_FAILURES


@dataclass(frozen=True)
class ExportMetadata:
    slide_count: int
    processing_time: int  # milliseconds
    quality: str

    def to_dict(self) -> dict:
        return {"slideCount": self.slide_count, "processingTime": self.processing_time, "quality": self.quality}


@dataclass(frozen=True)
class ExportResult:
    """One rendered artifact. Immutable once produced."""
    blob: bytes
    file_name: str
    file_size: int
    format: str
    media_type: str
    metadata: ExportMetadata

    def __post_init__(self):
        if not isinstance(self.blob, bytes):
            raise TypeError("ExportResult.blob must be bytes")
        if self.file_size != len(self.blob):
            raise ValueError(f"file_size {self.file_size} does not match blob length {len(self.blob)}")

    def summary(self) -> dict:
        return {
            "fileName": self.file_name,
            "fileSize": self.file_size,
            "format": self.format,
            "metadata": self.metadata.to_dict(),
        }


@dataclass
class RenderContext:
    """Everything a render call needs, plus the document being built."""
    presentation: GeneratedPresentation
    all_issues: List[Issue]
    upcoming_issues: List[Issue]
    sprint_metrics: Optional[SprintMetrics]
    options: ExportOptions
    embedder: AssetEmbedder
    slide_count: int
    parts: List[Any] = field(default_factory=list)
    state: Dict[str, Any] = field(default_factory=dict)


SlideHandler = Callable[[RenderContext, PresentationSlide], Union[Any, Awaitable[Any]]]


def display_date(created_at: str) -> str:
    """ISO timestamp -> 'Month DD, YYYY'; anything unparsable is shown as-is."""
    if not created_at:
        return ""
    try:
        return datetime.fromisoformat(created_at.replace("Z", "+00:00")).strftime("%B %d, %Y")
    except ValueError:
        return created_at


class BaseRenderer(ABC):
    """Base class for all export renderers."""

    format: str = ""
    media_type: str = "application/octet-stream"
    extension: str = "bin"
    file_prefix: str = "Sprint_Review"
    label: str = "Export"

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.http_client = http_client
        self.clock = clock

    async def render(
        self,
        presentation: GeneratedPresentation,
        all_issues: List[Issue],
        upcoming_issues: List[Issue],
        sprint_metrics: Optional[SprintMetrics],
        options: ExportOptions,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ExportResult:
        """Render the presentation into this renderer's format.

        Raises:
            RendererError: any failure, carrying the stage it happened in
        """
        start_time = time.perf_counter()
        slides = presentation.ordered_slides()
        reporter = ProgressReporter(on_progress, total=len(slides) + 1)
        stage = PREPARING

        try:
            reporter.preparing(f"Preparing {self.label} export...")
            ctx = RenderContext(
                presentation=presentation,
                all_issues=list(all_issues),
                upcoming_issues=list(upcoming_issues),
                sprint_metrics=sprint_metrics,
                options=options,
                embedder=self.create_embedder(),
                slide_count=len(slides),
            )
            await self._maybe_await(self.begin(ctx))

            stage = RENDERING
            handlers = self.slide_handlers()
            for number, slide in enumerate(slides, start=1):
                reporter.rendering(number, f"Rendering slide {number} of {len(slides)}...")
                handler = handlers.get(slide.type, self.render_default_slide)
                body = await self._maybe_await(handler(ctx, slide))
                await self._maybe_await(self.wrap_slide(ctx, slide, number, body))

            stage = FINALIZING
            reporter.finalizing(f"Finalizing {self.label} export...")
            blob = await self._maybe_await(self.finish(ctx))
            if isinstance(blob, str):
                blob = blob.encode("utf-8")

        except Exception as e:
            EXPORT_FAILURES.labels(format=self.format, stage=stage).inc()
            logger.error(
                f"❌ {self.label} export failed during {stage}: {e}",
                extra={"export_format": self.format, "stage": stage},
                exc_info=True,
            )
            raise RendererError(f"{self.label} export failed: {e}", format=self.format, stage=stage) from e

        result = ExportResult(
            blob=blob,
            file_name=self.generate_file_name(presentation),
            file_size=len(blob),
            format=self.format,
            media_type=self.media_type,
            metadata=ExportMetadata(
                slide_count=len(slides),
                processing_time=int((time.perf_counter() - start_time) * 1000),
                quality=options.quality or "medium",
            ),
        )
        logger.info(
            f"✅ {self.label} export rendered: {result.file_name} ({format_file_size(result.file_size)})",
            extra={"export_format": self.format},
        )
        return result

    # ---------- hooks ----------

    def create_embedder(self) -> AssetEmbedder:
        """A fresh embedder per render so image memoization never crosses renders."""
        return AssetEmbedder(client=self.http_client)

    def begin(self, ctx: RenderContext):
        """Set up the document before any slide is rendered."""

    @abstractmethod
    def slide_handlers(self) -> Dict[str, SlideHandler]:
        """Slide type -> handler returning the rendered slide body."""

    @abstractmethod
    def render_default_slide(self, ctx: RenderContext, slide: PresentationSlide):
        """Fallback for slide types without a dedicated handler: show the raw content."""

    def wrap_slide(self, ctx: RenderContext, slide: PresentationSlide, number: int, body):
        ctx.parts.append(body)

    @abstractmethod
    def finish(self, ctx: RenderContext) -> Union[bytes, str]:
        """Close the document and return its encoded bytes (str is UTF-8 encoded)."""

    # ---------- helpers ----------

    def generate_file_name(self, presentation: GeneratedPresentation) -> str:
        return make_export_file_name(
            self.file_prefix, presentation.metadata.sprint_name, self.extension, now=self.clock()
        )

    @staticmethod
    async def _maybe_await(value):
        if inspect.isawaitable(value):
            return await value
        return value
