import asyncio
import base64

import httpx
import pytest

from deck_export.errors import RendererError, ValidationError
from deck_export.models import ExportOptions, PresentationSlide
from deck_export.services.exporters import (
    AdvancedDigestRenderer,
    DigestRenderer,
    ExecutiveRenderer,
    HTMLRenderer,
    MarkdownRenderer,
    PDFRenderer,
    default_registry,
)
from deck_export.services.exporters.advanced_digest_renderer import decode_screenshot
from deck_export.services.exporters.digest_renderer import sprint_health, status_text
from deck_export.services.progress import ProgressRecorder

from conftest import FIXED_NOW, PNG_BYTES, make_issues, make_metrics, make_presentation

IMAGE_URL = "https://cdn.example.com/corporate/q3.png"


def _render(renderer, presentation=None, on_progress=None, **options):
    presentation = presentation or make_presentation()
    opts = ExportOptions(format=renderer.format, **options)
    return asyncio.run(renderer.render(presentation, make_issues(), [], make_metrics(), opts, on_progress=on_progress))


def _image_client(status_code=200, calls=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(str(request.url))
        if status_code != 200:
            return httpx.Response(status_code)
        return httpx.Response(200, content=PNG_BYTES, headers={"content-type": "image/png"})

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _corporate_slides(count=1):
    return [
        PresentationSlide(id=f"c{i}", title=f"Corporate {i}", type="corporate", order=i, corporate_slide_url=IMAGE_URL)
        for i in range(1, count + 1)
    ]


def test_progress_is_monotonic_and_completes_once():
    recorder = ProgressRecorder()
    _render(HTMLRenderer(clock=lambda: FIXED_NOW), on_progress=recorder)

    currents = [p.current for p in recorder.snapshots]
    assert currents == [0, 1, 2, 3, 4, 5, 6]
    assert all(p.total == 6 for p in recorder.snapshots)
    assert recorder.stages() == ["preparing"] + ["rendering"] * 5 + ["finalizing"]
    assert recorder.last.percentage == 100
    assert sum(1 for p in recorder.snapshots if p.current == p.total) == 1


def test_slides_render_in_order_field_order():
    slides = [
        PresentationSlide(id="b", title="Second slide", order=2, content="two"),
        PresentationSlide(id="a", title="First slide", order=1, content="one"),
    ]
    html = _render(HTMLRenderer(), presentation=make_presentation(slides)).blob.decode()
    assert html.index("First slide") < html.index("Second slide")


def test_unknown_slide_type_uses_default_arm():
    slides = [PresentationSlide(id="x", title="Mystery", type="hologram", order=1, content="Raw *content* here")]
    result = _render(HTMLRenderer(), presentation=make_presentation(slides))
    assert b"default-slide" in result.blob
    assert b"<em>content</em>" in result.blob


def test_html_is_self_contained_with_keyboard_navigation():
    result = _render(HTMLRenderer(clock=lambda: FIXED_NOW))
    html = result.blob.decode()

    assert result.format == "html"
    assert result.media_type == "text/html"
    assert result.file_name == "Sprint_Review_Sprint_42__Rocket_2024-03-15.html"
    assert result.file_size == len(result.blob)
    assert result.metadata.slide_count == 5
    for key in ("'ArrowRight'", "' '", "'ArrowLeft'", "'Home'", "'End'"):
        assert key in html
    assert "<style>" in html and "<script>" in html
    assert "DECK-1: Login flow" in html


def test_html_escapes_user_text():
    slides = [PresentationSlide(id="x", title="<script>alert(1)</script>", order=1, content="<b>raw</b>")]
    html = _render(HTMLRenderer(), presentation=make_presentation(slides)).blob.decode()
    assert "<script>alert(1)</script>" not in html
    assert "&lt;script&gt;" in html
    assert "<b>raw</b>" not in html


def test_html_render_is_deterministic():
    renderer = HTMLRenderer(clock=lambda: FIXED_NOW)
    assert _render(renderer).blob == _render(renderer).blob


def test_corporate_image_is_embedded_as_data_uri():
    renderer = HTMLRenderer(http_client=_image_client())
    html = _render(renderer, presentation=make_presentation(_corporate_slides())).blob.decode()
    assert "data:image/png;base64," in html
    assert IMAGE_URL not in html


def test_corporate_image_fetched_once_per_render():
    calls = []
    renderer = HTMLRenderer(http_client=_image_client(calls=calls))
    _render(renderer, presentation=make_presentation(_corporate_slides(3)))
    assert calls == [IMAGE_URL]


def test_corporate_image_failure_falls_back_to_original_url():
    renderer = HTMLRenderer(http_client=_image_client(status_code=404))
    html = _render(renderer, presentation=make_presentation(_corporate_slides())).blob.decode()
    assert f'<img src="{IMAGE_URL}"' in html


def test_handler_failure_becomes_renderer_error_with_stage():
    class BrokenSummary(HTMLRenderer):
        def render_summary_slide(self, ctx, slide):
            raise KeyError("missing")

    with pytest.raises(RendererError) as exc_info:
        _render(BrokenSummary())

    assert exc_info.value.stage == "rendering"
    assert exc_info.value.format == "html"
    assert isinstance(exc_info.value.__cause__, KeyError)


def test_markdown_document_structure():
    result = _render(MarkdownRenderer(clock=lambda: FIXED_NOW))
    text = result.blob.decode()

    assert result.file_name == "Sprint_Review_Sprint_42__Rocket_2024-03-15.md"
    assert result.media_type == "text/markdown"
    assert text.startswith("---\n")
    assert 'sprint: "Sprint 42: Rocket"' in text
    for heading in ("## Executive Summary", "## Sprint Overview", "## Presentation Content",
                    "## Detailed Issue Breakdown", "## Metrics Analysis", "### Recommendations"):
        assert heading in text
    assert "### Slide 1: Sprint 42 Review" in text
    assert "- **Auth:** 1/2 issues (13 points)" in text
    assert "- **DECK-3:** Dashboard filters (5 points, In Progress)" in text


def test_pdf_renders_valid_document():
    renderer = PDFRenderer(http_client=_image_client(), clock=lambda: FIXED_NOW)
    presentation = make_presentation(make_presentation().slides + _corporate_slides())
    result = _render(renderer, presentation=presentation)

    assert result.blob.startswith(b"%PDF")
    assert result.media_type == "application/pdf"
    assert result.file_name == "Sprint_Review_Sprint_42__Rocket_2024-03-15.pdf"


def test_pdf_survives_unreachable_corporate_image():
    renderer = PDFRenderer(http_client=_image_client(status_code=500))
    result = _render(renderer, presentation=make_presentation(_corporate_slides()))
    assert result.blob.startswith(b"%PDF")


def test_executive_summary_contents():
    result = _render(ExecutiveRenderer(clock=lambda: FIXED_NOW))
    html = result.blob.decode()

    assert result.file_name.startswith("Executive_Summary_")
    assert "Key Performance Indicators" in html
    # 16 of 20 points delivered
    assert '<div class="metric-value">80%</div>' in html
    assert "status-good" in html
    assert "Strategic Recommendations" in html
    assert "Demo: DECK-1 Login flow (Done)" in html


def test_advanced_digest_with_screenshot():
    screenshots = {"1": "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode()}
    renderer = AdvancedDigestRenderer(clock=lambda: FIXED_NOW)
    result = _render(renderer, additional_data={"demoStoryScreenshots": screenshots})

    assert result.blob.startswith(b"%PDF")
    assert result.format == "advanced-digest"
    assert result.file_name == "Advanced_Sprint_Review_Digest_Sprint_42__Rocket_2024-03-15.pdf"


def test_advanced_digest_skips_invalid_screenshot():
    result = _render(AdvancedDigestRenderer(), additional_data={"demoStoryScreenshots": {"1": "not-an-image"}})
    assert result.blob.startswith(b"%PDF")


def test_decode_screenshot_rejects_invalid_data():
    assert decode_screenshot("data:image/png;base64," + base64.b64encode(PNG_BYTES).decode()) == PNG_BYTES
    assert decode_screenshot("https://example.com/a.png") is None
    assert decode_screenshot("data:image/png;base64,@@@") is None
    assert decode_screenshot(None) is None


def test_registry_lookup():
    registry = default_registry()
    assert set(registry.formats()) == {"html", "pdf", "markdown", "executive", "advanced-digest", "digest"}
    assert isinstance(registry.get("markdown"), MarkdownRenderer)
    with pytest.raises(ValidationError):
        registry.get("docx")


def test_digest_collects_overview_and_upcoming_sections():
    slides = [
        PresentationSlide(id="t", title="Welcome", type="title", order=0),
        PresentationSlide(id="o", title="Sprint Overview", type="summary", order=1, content="Velocity held steady"),
        PresentationSlide(id="u", title="Upcoming Sprint", type="summary", order=2, content="Reporting epic starts"),
    ]
    # high quality disables page compression, so text is readable in the raw bytes
    result = _render(DigestRenderer(clock=lambda: FIXED_NOW), presentation=make_presentation(slides), quality="high")

    assert result.format == "digest"
    assert result.media_type == "application/pdf"
    assert result.file_name == "Sprint_Review_Digest_Sprint_42__Rocket_2024-03-15.pdf"
    assert result.blob.startswith(b"%PDF")
    for text in (b"Velocity held steady", b"Reporting epic starts", b"No demo stories available"):
        assert text in result.blob


def test_digest_without_summary_slides_uses_placeholders():
    result = _render(DigestRenderer(), quality="high")
    assert b"No sprint summary available" in result.blob
    assert b"No upcoming sprint information available" in result.blob
    assert b"No demo stories available" not in result.blob


def test_digest_status_labels_and_sprint_health():
    assert [status_text(r) for r in (0.95, 0.9, 0.8, 0.6, 0.59)] == [
        "Excellent", "Excellent", "Good", "Fair", "Needs Improvement",
    ]
    # 16 of 20 estimated points
    assert sprint_health(make_metrics(), make_issues()) == 80
    # no metrics: 11 of 16 issue points are in done/closed issues
    assert sprint_health(None, make_issues()) == 11 / 16 * 100
    assert sprint_health(None, []) == 0
