# deck_export/services/asset_embedder.py
"""Asset embedding for self-contained exports

Fetches external images (and fonts) and memoizes their base64 encoding so an
HTML or PDF artifact can carry them inline. One embedder lives for one render
call; memoization never leaks across unrelated renders and is unrelated to the
artifact cache.

Embedding is best-effort: any fetch/decode problem is logged and reported as
an empty string, and callers fall back to the original URL.
"""
import base64
import binascii
from typing import Dict, Optional
from urllib.parse import urljoin

import httpx

from deck_export.config import settings
from deck_export.errors import AssetEmbedError
from deck_export.utils.file_utils import format_file_size
from deck_export.utils.logging import logger
from deck_export.utils.metrics import ASSET_EMBED_FAILURES

DEFAULT_IMAGE_MIME = "image/png"


class AssetEmbedder:
    """Per-render image/font embedder with URL memoization."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self._client = client
        self.base_url = settings.asset_base_url if base_url is None else base_url
        self.timeout_seconds = timeout_seconds or settings.asset_fetch_timeout_seconds
        self._embedded: Dict[str, str] = {}
        self._mime_types: Dict[str, str] = {}
        self._sizes: Dict[str, int] = {}
        self.fetch_count = 0

    async def embed_image(self, url: str) -> str:
        """Return the base64 encoding of the image at `url`, or "" if unavailable."""
        if url in self._embedded:
            return self._embedded[url]

        try:
            content, mime_type = await self._load(url)
        except AssetEmbedError as e:
            ASSET_EMBED_FAILURES.inc()
            logger.warning(f"⚠️ Failed to embed image: {url}", extra={"reason": e.reason})
            return ""

        encoded = base64.b64encode(content).decode("ascii")
        self._embedded[url] = encoded
        self._mime_types[url] = mime_type or DEFAULT_IMAGE_MIME
        self._sizes[url] = len(content)
        logger.info(f"Embedded image: {url} ({format_file_size(len(content))})")
        return encoded

    async def data_uri(self, url: str) -> str:
        """`data:<mime>;base64,...` for the image, or "" if it could not be embedded."""
        encoded = await self.embed_image(url)
        if not encoded:
            return ""
        return f"data:{self._mime_types.get(url, DEFAULT_IMAGE_MIME)};base64,{encoded}"

    def embed_css(self, css: str) -> str:
        return css

    async def embed_font(self, font_family: str, font_url: str) -> str:
        """Base64 font payload, falling back to the original URL."""
        key = f"font:{font_family}:{font_url}"
        if key in self._embedded:
            return self._embedded[key]
        try:
            content, _ = await self._load(font_url)
        except AssetEmbedError as e:
            ASSET_EMBED_FAILURES.inc()
            logger.warning(f"⚠️ Failed to embed font: {font_family}", extra={"reason": e.reason})
            return font_url
        encoded = base64.b64encode(content).decode("ascii")
        self._embedded[key] = encoded
        self._sizes[key] = len(content)
        return encoded

    def get_embedded_assets(self) -> Dict[str, str]:
        return dict(self._embedded)

    def get_cache_stats(self) -> dict:
        return {"size": len(self._embedded), "total_size": sum(self._sizes.values())}

    def clear_cache(self):
        self._embedded.clear()
        self._mime_types.clear()
        self._sizes.clear()

    # ---------- internals ----------

    def _resolve(self, url: str) -> str:
        if url.startswith(("http://", "https://", "data:")):
            return url
        if self.base_url:
            return urljoin(self.base_url, url)
        raise AssetEmbedError(url, "relative URL and no asset base URL configured")

    async def _load(self, url: str):
        if not url:
            raise AssetEmbedError(url, "empty URL")
        resolved = self._resolve(url)
        if resolved.startswith("data:"):
            return self._decode_data_uri(url, resolved)
        return await self._fetch(url, resolved)

    async def _fetch(self, url: str, resolved: str):
        self.fetch_count += 1
        try:
            if self._client is not None:
                response = await self._client.get(resolved)
            else:
                async with httpx.AsyncClient(timeout=self.timeout_seconds, follow_redirects=True) as client:
                    response = await client.get(resolved)
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise AssetEmbedError(url, str(e) or e.__class__.__name__) from e

        if not response.content:
            raise AssetEmbedError(url, "empty response body")
        mime_type = response.headers.get("content-type", "").split(";")[0].strip()
        return response.content, mime_type

    @staticmethod
    def _decode_data_uri(url: str, data_uri: str):
        header, _, payload = data_uri.partition(",")
        if not payload or ";base64" not in header:
            raise AssetEmbedError(url, "unsupported data URI")
        try:
            content = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise AssetEmbedError(url, f"invalid base64 payload: {e}") from e
        mime_type = header[len("data:"):].split(";")[0]
        return content, mime_type
