import asyncio
import base64

import httpx

from deck_export.services.asset_embedder import AssetEmbedder

from conftest import PNG_BYTES

URL = "https://cdn.example.com/logo.png"


def _client(calls, status_code=200, content=PNG_BYTES, content_type="image/png"):
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        return httpx.Response(status_code, content=content, headers={"content-type": content_type})

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_image_is_fetched_once_and_memoized():
    calls = []
    embedder = AssetEmbedder(client=_client(calls))

    async def scenario():
        return [await embedder.embed_image(URL) for _ in range(3)]

    results = asyncio.run(scenario())
    assert results == [base64.b64encode(PNG_BYTES).decode()] * 3
    assert calls == [URL]
    assert embedder.fetch_count == 1
    assert embedder.get_cache_stats() == {"size": 1, "total_size": len(PNG_BYTES)}


def test_failed_fetch_returns_empty_string_and_is_retried():
    calls = []
    embedder = AssetEmbedder(client=_client(calls, status_code=404))

    async def scenario():
        return await embedder.embed_image(URL), await embedder.embed_image(URL)

    assert asyncio.run(scenario()) == ("", "")
    assert len(calls) == 2
    assert embedder.get_embedded_assets() == {}


def test_empty_body_is_a_failure():
    embedder = AssetEmbedder(client=_client([], content=b""))
    assert asyncio.run(embedder.embed_image(URL)) == ""


def test_data_uri_uses_response_mime_type():
    embedder = AssetEmbedder(client=_client([], content_type="image/jpeg; charset=binary"))
    uri = asyncio.run(embedder.data_uri(URL))
    assert uri.startswith("data:image/jpeg;base64,")


def test_data_uri_source_is_decoded_without_fetching():
    source = "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode()
    embedder = AssetEmbedder(client=_client([]))

    assert asyncio.run(embedder.data_uri(source)) == source
    assert embedder.fetch_count == 0


def test_relative_url_needs_base_url():
    calls = []
    assert asyncio.run(AssetEmbedder(client=_client(calls), base_url="").embed_image("/img/logo.png")) == ""
    assert calls == []

    embedder = AssetEmbedder(client=_client(calls), base_url="https://assets.example.com/")
    assert asyncio.run(embedder.embed_image("/img/logo.png")) != ""
    assert calls == ["https://assets.example.com/img/logo.png"]


def test_font_falls_back_to_url():
    font_url = "https://fonts.example.com/inter.woff2"
    embedder = AssetEmbedder(client=_client([], status_code=500))
    assert asyncio.run(embedder.embed_font("Inter", font_url)) == font_url


def test_clear_cache_forgets_embedded_assets():
    calls = []
    embedder = AssetEmbedder(client=_client(calls))

    async def scenario():
        await embedder.embed_image(URL)
        embedder.clear_cache()
        await embedder.embed_image(URL)

    asyncio.run(scenario())
    assert len(calls) == 2
