import httpx
import pytest
from fastapi.testclient import TestClient

from deck_export.api.dependencies import get_cache, get_orchestrator, get_registry
from deck_export.models import PresentationSlide
from deck_export.services.cache import ArtifactCache, CacheConfig
from deck_export.services.export_orchestrator import ExportOrchestrator
from deck_export.services.exporters import HTMLRenderer, RendererRegistry, default_registry
from main import app

from conftest import FIXED_NOW, make_metrics, make_request

IMAGE_URL = "https://cdn.example.com/corporate/q3.png"


class ExplodingTitleRenderer(HTMLRenderer):
    def render_title_slide(self, ctx, slide):
        raise ValueError("title template missing")


def _unreachable_images():
    return httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(503)))


def _payload(slides=None, **options):
    body = make_request(slides=slides, **options).model_dump(mode="json", by_alias=True)
    body.pop("options")
    return body


@pytest.fixture
def services():
    cache = ArtifactCache(CacheConfig(10_000_000, 20, 3600, 600))
    registry = default_registry(http_client=_unreachable_images())
    orchestrator = ExportOrchestrator(cache, registry, clock=lambda: FIXED_NOW)

    app.dependency_overrides[get_cache] = lambda: cache
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    yield orchestrator
    app.dependency_overrides.clear()


@pytest.fixture
def client(services):
    return TestClient(app)


def test_html_export_returns_attachment(client):
    response = client.post("/api/export/html", json=_payload())

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    disposition = response.headers["content-disposition"]
    assert disposition.startswith('attachment; filename="Sprint_Review_Sprint_42__Rocket_')
    assert disposition.endswith('.html"')
    assert int(response.headers["content-length"]) == len(response.content)
    assert response.headers["x-request-id"]


def test_path_format_overrides_body_options(client):
    body = _payload()
    body["options"] = {"format": "html", "quality": "low"}
    response = client.post("/api/export/markdown", json=body)

    assert response.status_code == 200
    assert response.content.startswith(b"---\n")


def test_pdf_export(client):
    response = client.post("/api/export/pdf", json=_payload())
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content.startswith(b"%PDF")


def test_repeated_export_is_served_from_cache(client, services):
    first = client.post("/api/export/markdown", json=_payload())
    second = client.post("/api/export/markdown", json=_payload())

    assert first.content == second.content
    assert services.cache.get_stats().hits == 1


def test_missing_presentation_is_rejected(client):
    response = client.post("/api/export/html", json={"allIssues": []})
    assert response.status_code == 400
    assert response.json() == {"error": "Presentation data is required"}


def test_unknown_format_is_rejected(client):
    response = client.post("/api/export/pptx", json=_payload())
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Invalid export request"
    assert any("pptx" in detail for detail in body["details"])


def test_malformed_presentation_is_rejected(client):
    body = _payload()
    del body["presentation"]["title"]
    response = client.post("/api/export/html", json=body)
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid export request"


def test_renderer_failure_is_a_server_error(client):
    registry = RendererRegistry()
    registry.register(ExplodingTitleRenderer())
    app.dependency_overrides[get_orchestrator] = lambda: ExportOrchestrator(ArtifactCache(), registry)

    response = client.post("/api/export/html", json=_payload())

    assert response.status_code == 500
    body = response.json()
    assert body["error"] == "Failed to generate html export"
    assert body["details"]["stage"] == "rendering"
    assert body["details"]["format"] == "html"


def test_unreachable_corporate_image_still_exports(client):
    slides = [PresentationSlide(id="c", title="Company update", type="corporate", order=1,
                                corporate_slide_url=IMAGE_URL)]
    response = client.post("/api/export/html", json=_payload(slides=slides))

    assert response.status_code == 200
    assert f'<img src="{IMAGE_URL}"'.encode() in response.content


def test_executive_metrics_export(client):
    body = {"sprintMetrics": make_metrics().model_dump(mode="json", by_alias=True)}
    response = client.post("/api/export/metrics", json=body)

    assert response.status_code == 200
    assert response.headers["content-disposition"] == \
        'attachment; filename="Executive_Metrics_Sprint_42_2024-03-15.html"'
    assert b"Key Performance Indicators" in response.content


def test_executive_metrics_requires_metrics(client):
    response = client.post("/api/export/metrics", json={})
    assert response.status_code == 400
    assert response.json() == {"error": "Sprint metrics data is required"}


def test_cache_stats_clear_and_cleanup(client, services):
    client.post("/api/export/markdown", json=_payload())

    stats = client.post("/api/cache", json={"operation": "get-cache-stats"}).json()
    assert stats["success"] is True
    assert stats["stats"]["totalEntries"] == 1
    assert stats["health"]["healthy"] is True

    listing = client.get("/api/cache/list", params={"limit": 5}).json()
    assert listing["count"] == 1
    assert listing["entries"][0]["fileName"].endswith(".md")

    cleanup = client.post("/api/cache", json={"operation": "cleanup-cache"}).json()
    assert cleanup["removed"] == 0

    assert client.post("/api/cache", json={"operation": "clear-cache"}).json()["success"] is True
    assert len(services.cache) == 0


def test_unknown_cache_operation(client):
    response = client.post("/api/cache", json={"operation": "defragment"})
    assert response.status_code == 400
    assert "defragment" in response.json()["error"]


def test_health_reports_formats_and_cache(client):
    body = client.get("/api/health").json()
    assert body["status"] == "healthy"
    assert {"advanced-digest", "digest"} <= set(body["formats"])
    assert body["cache_entries"] == 0


def test_metrics_scrape_reports_cache_occupancy(client):
    client.post("/api/export/markdown", json=_payload())

    response = client.get("/metrics")
    assert response.status_code == 200
    assert "export_cache_entries 1.0" in response.text
    assert 'export_requests_total{format="markdown"}' in response.text


def test_digest_export(client):
    response = client.post("/api/export/digest", json=_payload())

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content.startswith(b"%PDF")
    assert 'filename="Sprint_Review_Digest_Sprint_42__Rocket_' in response.headers["content-disposition"]


def test_analytics_reports_renders(client):
    client.post("/api/export/markdown", json=_payload())
    client.post("/api/export/markdown", json=_payload())  # served from cache
    client.post("/api/export/html", json=_payload())

    body = client.get("/api/export/analytics", params={"range": "day"}).json()
    assert body["success"] is True
    assert body["metrics"]["totalExports"] == 2
    assert body["metrics"]["successRate"] == 100.0
    assert {p["format"] for p in body["usagePatterns"]} == {"markdown", "html"}
    assert body["errors"]["totalErrors"] == 0


def test_analytics_rejects_unknown_range(client):
    response = client.get("/api/export/analytics", params={"range": "decade"})
    assert response.status_code == 400
    assert "decade" in response.json()["error"]
