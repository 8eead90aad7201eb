# deck_export/utils/file_utils.py
from datetime import datetime, timezone
from typing import Optional
import math
import re


def sanitize_name(name: str) -> str:
    """Replace every non-alphanumeric character with an underscore."""
    return re.sub(r'[^a-zA-Z0-9]', '_', name or "")


def make_export_file_name(prefix: str, sprint_name: str, extension: str, now: Optional[datetime] = None) -> str:
    """Build `<Prefix>_<sanitizedSprintName>_<YYYY-MM-DD>.<ext>`."""
    timestamp = (now or datetime.now(timezone.utc)).date().isoformat()
    return f"{prefix}_{sanitize_name(sprint_name)}_{timestamp}.{extension}"


def format_file_size(num_bytes: int) -> str:
    """Human readable size for log lines (e.g. '1.5 KB')."""
    if num_bytes <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    i = min(int(math.floor(math.log(num_bytes, 1024))), len(units) - 1)
    value = round(num_bytes / (1024 ** i), 2)
    return f"{value:g} {units[i]}"
