"""Format -> renderer lookup."""
from typing import Dict, List, Optional

import httpx

from deck_export.errors import ValidationError
from deck_export.services.exporters.advanced_digest_renderer import AdvancedDigestRenderer
from deck_export.services.exporters.base_renderer import BaseRenderer
from deck_export.services.exporters.digest_renderer import DigestRenderer
from deck_export.services.exporters.executive_renderer import ExecutiveRenderer
from deck_export.services.exporters.html_renderer import HTMLRenderer
from deck_export.services.exporters.markdown_renderer import MarkdownRenderer
from deck_export.services.exporters.pdf_renderer import PDFRenderer
from deck_export.utils.logging import logger


class RendererRegistry:
    """Holds one renderer instance per export format."""

    def __init__(self):
        self._renderers: Dict[str, BaseRenderer] = {}

    def register(self, renderer: BaseRenderer, format: Optional[str] = None):
        key = format or renderer.format
        if not key:
            raise ValueError(f"{type(renderer).__name__} does not declare a format")
        if key in self._renderers:
            logger.info(f"Replacing renderer for format '{key}'")
        self._renderers[key] = renderer

    def get(self, format: str) -> BaseRenderer:
        renderer = self._renderers.get(format)
        if renderer is None:
            raise ValidationError(
                f"Unsupported export format: {format}",
                errors=[f"format must be one of: {', '.join(self.formats())}"],
            )
        return renderer

    def formats(self) -> List[str]:
        return list(self._renderers)

    def __contains__(self, format: str) -> bool:
        return format in self._renderers


def default_registry(http_client: Optional[httpx.AsyncClient] = None) -> RendererRegistry:
    """Registry with all six built-in renderers, sharing one optional HTTP client for asset fetches."""
    registry = RendererRegistry()
    for renderer_cls in (HTMLRenderer, PDFRenderer, MarkdownRenderer, ExecutiveRenderer, AdvancedDigestRenderer,
                         DigestRenderer):
        registry.register(renderer_cls(http_client=http_client))
    return registry
