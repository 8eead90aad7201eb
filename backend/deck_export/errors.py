# deck_export/errors.py
"""Export error taxonomy.

- ValidationError: bad or unsupported input, raised before any render work (HTTP 400)
- RendererError: a render failed at some stage; never cached (HTTP 500)
- AssetEmbedError: an image could not be embedded; handled inside AssetEmbedder
"""
from typing import List, Optional


class ExportError(Exception):
    """Base class for export pipeline errors."""


class ValidationError(ExportError):
    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = errors or [message]


class RendererError(ExportError):
    def __init__(self, message: str, format: str, stage: str):
        super().__init__(message)
        self.format = format
        self.stage = stage

    def to_dict(self) -> dict:
        return {"message": str(self), "format": self.format, "stage": self.stage}


class AssetEmbedError(ExportError):
    def __init__(self, url: str, reason: str):
        super().__init__(f"Failed to embed asset {url}: {reason}")
        self.url = url
        self.reason = reason
