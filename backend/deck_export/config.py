# backend/deck_export/config.py
from pydantic_settings import BaseSettings
from pathlib import Path
from pydantic import field_validator

class Settings(BaseSettings):
    """Application settings from environment variables"""

    # ===== EXPORT CACHE =====
    # Bounded in-process artifact cache (one per process, not shared between workers)
    export_cache_max_size_bytes: int = 100 * 1024 * 1024  # 100MB
    export_cache_max_entries: int = 50
    export_cache_ttl_seconds: int = 24 * 60 * 60  # 24 hours
    export_cache_cleanup_interval_seconds: int = 60 * 60  # 1 hour

    # ===== ASSET EMBEDDING =====
    asset_fetch_timeout_seconds: float = 10.0
    # Base URL used to resolve relative image URLs (e.g. "/corporate-slides/q3.png")
    # Leave empty to treat relative URLs as unavailable.
    asset_base_url: str = ""

    # ===== EXPORT LIMITS =====
    export_max_slides: int = 100
    export_max_estimated_size_mb: int = 50
    export_large_presentation_warning: int = 50  # Log a warning above this many slides

    # Branding shown in rendered headers/footers
    brand_name: str = "Sprint Review"

    # Paths
    log_dir: Path = Path("logs")

    # CORS
    cors_origins: list[str] = ["http://localhost:3000"]
    @field_validator("cors_origins", mode="before")
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            import json
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [v]
        return v

    # Environment
    environment: str = "development"  # development, production

    class Config:
        # Point explicitly to backend/.env so scripts run from repo root still load variables
        env_file = Path(__file__).resolve().parent.parent / ".env"
        case_sensitive = False
        extra = "ignore"  # Allow future env vars without breaking startup

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.log_dir.mkdir(parents=True, exist_ok=True)

# Global settings instance
settings = Settings()
