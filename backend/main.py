# backend/main.py
import os

from deck_export.core.lifespan import lifespan
from deck_export.api import api_router
from deck_export.core.middleware import setup_middleware
from fastapi import FastAPI


app = FastAPI(
    title="Sprint Deck Export API",
    version="1.0.0",
    description="Export sprint review presentations to HTML, Markdown, PDF and executive formats",
    lifespan=lifespan
)

# Setup middleware
setup_middleware(app)

# Register API routes (export, cache, health, /metrics for Prometheus)
app.include_router(api_router)

# ---------- Run ----------

if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=port,
        log_level="info"
    )
