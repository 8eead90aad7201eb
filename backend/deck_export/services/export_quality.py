# deck_export/services/export_quality.py
"""Post-render quality checks

Runs on every freshly rendered artifact, after rendering and before the
result is cached. The report is advisory: it is logged, counted in
Prometheus and recorded with the export's analytics event, but it never
fails or alters the export.

Score (0-100):
    0.4 * visual fidelity
  + 0.2 * file size headroom
  + 0.2 * processing time headroom
  + 0.2 * (100 - 20 per error)

A report passes with no errors and a score of at least PASS_SCORE.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from deck_export.models import GeneratedPresentation, SlideType
from deck_export.services.exporters.base_renderer import ExportResult
from deck_export.utils.file_utils import format_file_size
from deck_export.utils.logging import logger
from deck_export.utils.metrics import EXPORT_QUALITY_FAILURES, EXPORT_QUALITY_SCORE

PASS_SCORE = 80
MIN_MARKDOWN_LENGTH = 500
MAX_WARNINGS_BEFORE_RECOMMENDATION = 3

BASE_FIDELITY = {"pdf": 90, "html": 95, "markdown": 80, "executive": 98}
DEFAULT_FIDELITY = 85
QUALITY_FIDELITY_ADJUSTMENT = {"high": 5, "low": -10}

PDF_FORMATS = ("pdf", "advanced-digest", "digest")
HTML_REQUIRED_ELEMENTS = ("<!DOCTYPE html>", "<html", "<head>", "<body", "</html>")
EXECUTIVE_SECTIONS = (
    "Executive Summary", "Key Performance Indicators", "Business Impact", "Strategic Recommendations",
)

EXCELLENT_RECOMMENDATION = "Export quality is excellent - no improvements needed"


@dataclass(frozen=True)
class QualityThresholds:
    max_file_size: int = 10 * 1024 * 1024  # bytes
    max_processing_time: int = 30_000  # milliseconds
    min_visual_fidelity: int = 85


@dataclass(frozen=True)
class QualityReport:
    format: str
    score: int
    passed: bool
    visual_fidelity: int
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "format": self.format,
            "score": self.score,
            "passed": self.passed,
            "visualFidelity": self.visual_fidelity,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "recommendations": list(self.recommendations),
        }


def _check_pdf(blob: bytes, errors: List[str], warnings: List[str]):
    if not blob.startswith(b"%PDF-"):
        errors.append("PDF export does not start with a PDF header")
        return
    if b"%%EOF" not in blob[-1024:]:
        errors.append("PDF export is truncated (no end-of-file marker)")
    if b"/Type /Page" not in blob and b"/Type/Page" not in blob:
        warnings.append("PDF export does not contain any pages")


def _decode(blob: bytes, errors: List[str]) -> Optional[str]:
    try:
        return blob.decode("utf-8")
    except UnicodeDecodeError:
        errors.append("Text export is not valid UTF-8")
        return None


def _check_html_document(text: str, errors: List[str]):
    missing = [element for element in HTML_REQUIRED_ELEMENTS if element not in text]
    if missing:
        errors.append(f"Missing HTML elements: {', '.join(missing)}")


def _check_html(text: str, presentation: GeneratedPresentation, errors: List[str], warnings: List[str]):
    _check_html_document(text, errors)
    has_images = any(
        s.type == SlideType.CORPORATE.value and s.corporate_slide_url for s in presentation.slides
    )
    if has_images and "data:image/" not in text:
        warnings.append("HTML does not contain embedded images; corporate slides link to remote URLs")
    if "<script" not in text:
        warnings.append("HTML does not contain interactive navigation")


def _check_markdown(text: str, warnings: List[str]):
    if not any(line.startswith("#") for line in text.splitlines()):
        warnings.append("Markdown has no heading structure")
    if not text.startswith("---\n"):
        warnings.append("Markdown has no front matter metadata")
    if len(text) < MIN_MARKDOWN_LENGTH:
        warnings.append(f"Markdown content is short ({len(text)} characters)")


def _check_executive(text: str, errors: List[str], warnings: List[str]):
    _check_html_document(text, errors)
    missing = [section for section in EXECUTIVE_SECTIONS if section not in text]
    if missing:
        warnings.append(f"Missing executive elements: {', '.join(missing)}")
    if "metric-value" not in text:
        warnings.append("Executive summary does not contain KPI values")


def _visual_fidelity(fmt: str, quality: str, warning_count: int) -> int:
    base = "pdf" if fmt in PDF_FORMATS else fmt
    score = BASE_FIDELITY.get(base, DEFAULT_FIDELITY) + QUALITY_FIDELITY_ADJUSTMENT.get(quality, 0)
    score -= warning_count * 2
    return max(0, min(100, score))


def _overall_score(fidelity: int, file_size: int, processing_time: int, error_count: int,
                   thresholds: QualityThresholds) -> int:
    size_score = max(0.0, 100 - file_size / thresholds.max_file_size * 100)
    time_score = max(0.0, 100 - processing_time / thresholds.max_processing_time * 100)
    error_score = max(0, 100 - error_count * 20)
    return round(fidelity * 0.4 + size_score * 0.2 + time_score * 0.2 + error_score * 0.2)


def _recommendations(fidelity: int, result: ExportResult, errors: List[str], warnings: List[str],
                     thresholds: QualityThresholds) -> List[str]:
    recs = []
    if fidelity < thresholds.min_visual_fidelity:
        recs.append("Consider using higher quality settings for better visual fidelity")
    if result.file_size > thresholds.max_file_size:
        recs.append("Use a lower quality setting to reduce file size")
    if result.metadata.processing_time > thresholds.max_processing_time:
        recs.append("Consider using lower quality settings for faster processing")
    if errors:
        recs.append("Review and fix validation errors")
    if len(warnings) > MAX_WARNINGS_BEFORE_RECOMMENDATION:
        recs.append("Address quality warnings for better output")
    return recs or [EXCELLENT_RECOMMENDATION]


def check_export(
    result: ExportResult,
    presentation: GeneratedPresentation,
    thresholds: Optional[QualityThresholds] = None,
) -> QualityReport:
    """Inspect a rendered artifact and score it; never raises for a bad artifact."""
    thresholds = thresholds or QualityThresholds()
    errors: List[str] = []
    warnings: List[str] = []
    fmt = result.format

    if result.file_size > thresholds.max_file_size:
        warnings.append(
            f"File size {format_file_size(result.file_size)} exceeds recommended limit "
            f"{format_file_size(thresholds.max_file_size)}"
        )
    if result.metadata.processing_time > thresholds.max_processing_time:
        warnings.append(
            f"Processing time {result.metadata.processing_time}ms exceeds recommended limit "
            f"{thresholds.max_processing_time}ms"
        )

    if fmt in PDF_FORMATS:
        _check_pdf(result.blob, errors, warnings)
    elif fmt in ("html", "markdown", "executive"):
        text = _decode(result.blob, errors)
        if text is not None:
            if fmt == "html":
                _check_html(text, presentation, errors, warnings)
            elif fmt == "markdown":
                _check_markdown(text, warnings)
            else:
                _check_executive(text, errors, warnings)
    else:
        warnings.append(f"No content checks for format: {fmt}")

    fidelity = _visual_fidelity(fmt, result.metadata.quality, len(warnings))
    score = _overall_score(fidelity, result.file_size, result.metadata.processing_time, len(errors), thresholds)
    return QualityReport(
        format=fmt,
        score=score,
        passed=not errors and score >= PASS_SCORE,
        visual_fidelity=fidelity,
        errors=errors,
        warnings=warnings,
        recommendations=_recommendations(fidelity, result, errors, warnings, thresholds),
    )


def record_quality(report: QualityReport, file_name: str, fingerprint: str = ""):
    """Log and count a quality report."""
    EXPORT_QUALITY_SCORE.labels(format=report.format).observe(report.score)
    extra = {"export_format": report.format, "fingerprint": fingerprint}
    if report.passed:
        logger.info(f"🔍 Quality check passed for {file_name}: {report.score}/100", extra=extra)
        return
    EXPORT_QUALITY_FAILURES.labels(format=report.format).inc()
    logger.warning(
        f"⚠️ Quality check failed for {file_name}: {report.score}/100; "
        f"errors={report.errors} warnings={report.warnings}",
        extra=extra,
    )
