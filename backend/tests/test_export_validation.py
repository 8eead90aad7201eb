import pytest

from deck_export.errors import ValidationError
from deck_export.models import PresentationSlide
from deck_export.services.export_validation import (
    BYTES_PER_IMAGE_SLIDE,
    estimate_export_size,
    validate_export_request,
)

from conftest import make_presentation, make_request


def _errors(request, **kwargs):
    with pytest.raises(ValidationError) as exc_info:
        validate_export_request(request, **kwargs)
    return exc_info.value.errors


def test_valid_request_passes():
    validate_export_request(make_request("pdf", quality="high"))


def test_unknown_format_and_quality_are_both_reported():
    errors = _errors(make_request("pptx", quality="ultra"))
    assert len(errors) == 2
    assert "pptx" in errors[0]
    assert "ultra" in errors[1]


def test_presentation_without_slides():
    assert _errors(make_request(slides=[])) == ["Presentation has no slides"]


def test_duplicate_slide_orders():
    slides = [
        PresentationSlide(id="a", title="A", order=1),
        PresentationSlide(id="b", title="B", order=1),
    ]
    assert _errors(make_request(slides=slides)) == ["Duplicate slide order values: 1"]


def test_too_many_slides():
    slides = [PresentationSlide(id=str(i), title=f"S{i}", order=i) for i in range(101)]
    errors = _errors(make_request(slides=slides))
    assert errors == ["Presentation has 101 slides, the maximum is 100"]


def test_estimated_size_limit():
    slides = [
        PresentationSlide(id=str(i), title="Corp", type="corporate", order=i, corporate_slide_url=f"https://x/{i}.png")
        for i in range(3)
    ]
    errors = _errors(make_request("pdf", slides=slides), max_estimated_bytes=5 * 1024 * 1024)
    assert len(errors) == 1
    assert errors[0].startswith("Estimated export size")


def test_estimate_counts_only_corporate_slides_with_images():
    slides = [
        PresentationSlide(id="1", title="Corp", type="corporate", order=1, corporate_slide_url="https://x/1.png"),
        PresentationSlide(id="2", title="Corp", type="corporate", order=2),
    ]
    presentation = make_presentation(slides)
    assert estimate_export_size(presentation, "markdown", "medium") == int((2 * 1024 + BYTES_PER_IMAGE_SLIDE) * 0.3)


def test_formats_can_be_restricted():
    assert "html" in _errors(make_request("html"), formats=["pdf"])[0]
