# deck_export/utils/logging.py
import logging
import os
from logging.handlers import RotatingFileHandler
from pythonjsonlogger import jsonlogger
from deck_export.config import settings

SERVICE_NAME = os.getenv("SERVICE_NAME", "deck-export")  # override in docker env if desired
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_TO_FILE = os.getenv("LOG_TO_FILE", "true").lower() == "true"

class ContextFilter(logging.Filter):
    def filter(self, record):
        # Export calls attach these through `extra=`; default to None if absent
        if not hasattr(record, "request_id"):
            record.request_id = None
        if not hasattr(record, "export_format"):
            record.export_format = None
        if not hasattr(record, "fingerprint"):
            record.fingerprint = None
        record.service = SERVICE_NAME
        return True

base_format = (
    "%(asctime)s %(levelname)s %(service)s %(name)s %(message)s "
    "%(exception)s %(request_id)s %(export_format)s %(fingerprint)s"
)

json_formatter = jsonlogger.JsonFormatter(
    base_format,
    rename_fields={"exception": "exception"}
)

logger = logging.getLogger()
logger.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))
logger.addFilter(ContextFilter())

# Console / stdout handler (always on for containers)
stream_handler = logging.StreamHandler()
stream_handler.setFormatter(json_formatter)
logger.addHandler(stream_handler)

# Optional file handler
if LOG_TO_FILE:
    file_handler = RotatingFileHandler(
        settings.log_dir / "app.log",
        maxBytes=10_000_000,
        backupCount=5,
        encoding="utf-8"
    )
    file_handler.setFormatter(json_formatter)
    logger.addHandler(file_handler)

# Reduce noisy third-party loggers
logging.getLogger("uvicorn.access").setLevel(logging.INFO)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("reportlab").setLevel(logging.WARNING)
logging.getLogger("MARKDOWN").setLevel(logging.WARNING)

