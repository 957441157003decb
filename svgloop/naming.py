"""Output file naming: ``<Safe_Title>_<YYYYMMDDHHMMSS>.<ext>``."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from pathlib import Path

from svgloop.types import ExportFormat

DEFAULT_TITLE = "AnimGen_Asset"
MAX_TITLE_LENGTH = 40

_UNSAFE_RE = re.compile(r"[^a-zA-Z0-9]")


def sanitize_title(title: str) -> str:
    """Replace every non-alphanumeric ASCII character with ``_`` and truncate."""
    return _UNSAFE_RE.sub("_", title)[:MAX_TITLE_LENGTH]


def generate_filename(title: str | None = None, now: datetime | None = None) -> str:
    """Timestamped, file-system safe base name (no extension)."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return f"{sanitize_title(title or DEFAULT_TITLE)}_{now:%Y%m%d%H%M%S}"


def output_path_for(title: str | None, fmt: ExportFormat,
                    directory: Path | str = ".", now: datetime | None = None) -> Path:
    return Path(directory) / (generate_filename(title, now) + fmt.extension)
