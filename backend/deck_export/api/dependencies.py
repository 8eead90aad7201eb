# deck_export/api/dependencies.py
from deck_export.services.cache import ArtifactCache, create_cache
from deck_export.services.export_orchestrator import ExportOrchestrator
from deck_export.services.exporters import RendererRegistry, default_registry

# Initialize services (one artifact cache per process)
cache = create_cache()

registry = default_registry()

orchestrator = ExportOrchestrator(cache=cache, registry=registry)


def get_cache() -> ArtifactCache:
    return cache


def get_registry() -> RendererRegistry:
    return registry


def get_orchestrator() -> ExportOrchestrator:
    return orchestrator
