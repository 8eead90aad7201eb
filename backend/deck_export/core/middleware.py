# deck_export/core/middleware.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from deck_export.config import settings

def setup_middleware(app: FastAPI):
    """Configure all middleware"""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition", "X-Request-ID"],
    )
