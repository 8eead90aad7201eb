# deck_export/services/export_validation.py
"""Export request validation

Runs before fingerprinting or rendering. Every problem found is collected and
reported in a single ValidationError.
"""
from collections import Counter
from typing import Iterable, List, Optional

from deck_export.config import settings
from deck_export.errors import ValidationError
from deck_export.models import ExportFormat, ExportQuality, ExportRequest, GeneratedPresentation, SlideType
from deck_export.utils.file_utils import format_file_size
from deck_export.utils.logging import logger

BYTES_PER_SLIDE = 1024
BYTES_PER_IMAGE_SLIDE = 2 * 1024 * 1024

QUALITY_FACTORS = {"low": 0.7, "medium": 1.0, "high": 1.5}
FORMAT_FACTORS = {
    "pdf": 1.2,
    "html": 1.1,
    "markdown": 0.3,
    "executive": 0.8,
    "advanced-digest": 0.9,
    "digest": 0.8,
}

SUPPORTED_FORMATS = [f.value for f in ExportFormat]
SUPPORTED_QUALITIES = [q.value for q in ExportQuality]


def estimate_export_size(presentation: GeneratedPresentation, format: str, quality: str = "medium") -> int:
    """Rough artifact size in bytes, used to reject oversized requests up front."""
    image_slides = sum(
        1 for s in presentation.slides
        if s.type == SlideType.CORPORATE.value and s.corporate_slide_url
    )
    base = len(presentation.slides) * BYTES_PER_SLIDE + image_slides * BYTES_PER_IMAGE_SLIDE
    return int(base * QUALITY_FACTORS.get(quality, 1.0) * FORMAT_FACTORS.get(format, 1.0))


def validate_export_request(
    request: ExportRequest,
    max_slides: Optional[int] = None,
    max_estimated_bytes: Optional[int] = None,
    formats: Optional[Iterable[str]] = None,
):
    """Raise ValidationError listing every problem with the request."""
    max_slides = settings.export_max_slides if max_slides is None else max_slides
    if max_estimated_bytes is None:
        max_estimated_bytes = settings.export_max_estimated_size_mb * 1024 * 1024
    supported = list(formats) if formats is not None else SUPPORTED_FORMATS

    errors: List[str] = []
    options = request.options
    slides = request.presentation.slides

    if options.format not in supported:
        errors.append(f"Unsupported export format '{options.format}' (expected one of: {', '.join(supported)})")
    if options.quality not in SUPPORTED_QUALITIES:
        errors.append(f"Unsupported quality '{options.quality}' (expected one of: {', '.join(SUPPORTED_QUALITIES)})")

    if not slides:
        errors.append("Presentation has no slides")
    else:
        duplicates = sorted(order for order, n in Counter(s.order for s in slides).items() if n > 1)
        if duplicates:
            errors.append(f"Duplicate slide order values: {', '.join(str(o) for o in duplicates)}")
        if len(slides) > max_slides:
            errors.append(f"Presentation has {len(slides)} slides, the maximum is {max_slides}")
        elif len(slides) > settings.export_large_presentation_warning:
            logger.warning(
                f"⚠️ Large presentation: {len(slides)} slides may take a while to export",
                extra={"export_format": options.format},
            )

        estimated = estimate_export_size(request.presentation, options.format, options.quality)
        if estimated > max_estimated_bytes:
            errors.append(
                f"Estimated export size {format_file_size(estimated)} exceeds the "
                f"{format_file_size(max_estimated_bytes)} limit"
            )

    if errors:
        raise ValidationError("Invalid export request", errors=errors)
