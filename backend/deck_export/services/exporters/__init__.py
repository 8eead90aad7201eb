"""Export renderers for sprint review presentations.

Architecture:
- BaseRenderer: render state machine, progress and error wrapping
- HTMLRenderer / ExecutiveRenderer: self-contained HTML documents
- MarkdownRenderer: structured markdown with front matter
- PDFRenderer / AdvancedDigestRenderer / DigestRenderer: ReportLab PDFs
- RendererRegistry: format -> renderer lookup
"""

from .base_renderer import BaseRenderer, ExportMetadata, ExportResult
from .html_renderer import HTMLRenderer
from .markdown_renderer import MarkdownRenderer
from .pdf_renderer import PDFRenderer
from .executive_renderer import ExecutiveRenderer
from .advanced_digest_renderer import AdvancedDigestRenderer
from .digest_renderer import DigestRenderer
from .registry import RendererRegistry, default_registry

__all__ = [
    'BaseRenderer', 'ExportMetadata', 'ExportResult',
    'HTMLRenderer', 'MarkdownRenderer', 'PDFRenderer', 'ExecutiveRenderer', 'AdvancedDigestRenderer', 'DigestRenderer',
    'RendererRegistry', 'default_registry',
]
