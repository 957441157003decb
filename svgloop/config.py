"""
Export configuration.

An export job can be described entirely on the command line or in a
YAML file; command-line flags override file values::

    format: gif
    width: 480
    height: 480
    duration: 3.0
    backend: chromium
    output: spinner.gif
    metadata:
      title: Neon_Spinner
      description: A looping neon spinner
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import yaml

from svgloop.exceptions import ConfigError
from svgloop.types import FPS, ExportFormat, Scene

logger = logging.getLogger(__name__)

DEFAULT_SIZE = 512


@dataclass(frozen=True)
class MetadataConfig:
    """Metadata embedded in exported files."""
    title: str = ""
    description: str = ""
    comment: str = "Generated by svgloop"


@dataclass(frozen=True)
class ExportConfig:
    """Full configuration for one export job."""
    format: ExportFormat = ExportFormat.GIF
    width: int | None = None          # None = from viewBox
    height: int | None = None
    duration: float | None = None     # None = default / detected
    timestamp: float = 0.0            # PNG only
    fps: int = FPS
    backend: str | None = None        # None = auto-detect
    output_path: Path | None = None
    metadata: MetadataConfig = field(default_factory=MetadataConfig)

    def merged(self, **overrides: Any) -> ExportConfig:
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def coerce_dimensions(scene: Scene, width: int | None, height: int | None) -> tuple[int, int]:
    """Resolve the export size, falling back to the scene's viewBox.

    A missing side is derived from the viewBox aspect ratio; with no
    viewBox the default is ``DEFAULT_SIZE`` square.
    """
    for name, value in (("width", width), ("height", height)):
        if value is not None and int(value) <= 0:
            raise ValueError(f"{name} must be positive, got {value}")

    if width is not None and height is not None:
        return int(width), int(height)

    box = scene.view_box
    if box is None:
        side = int(width or height or DEFAULT_SIZE)
        return side, side
    if width is None and height is None:
        return max(1, round(box.width)), max(1, round(box.height))
    if width is not None:
        return int(width), max(1, round(int(width) * box.height / box.width))
    return max(1, round(int(height) * box.width / box.height)), int(height)


_FIELD_NAMES = {f.name for f in fields(ExportConfig)}
_META_NAMES = {f.name for f in fields(MetadataConfig)}


def config_from_mapping(raw: dict[str, Any]) -> ExportConfig:
    """Build an ``ExportConfig`` from a parsed YAML mapping."""
    data = dict(raw)
    if "output" in data:
        data["output_path"] = data.pop("output")
    unknown = set(data) - _FIELD_NAMES
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")

    kwargs: dict[str, Any] = {}
    try:
        for key, value in data.items():
            if value is None:
                continue
            if key == "format":
                kwargs[key] = ExportFormat(str(value).lower())
            elif key in ("width", "height", "fps"):
                kwargs[key] = int(value)
            elif key in ("duration", "timestamp"):
                kwargs[key] = float(value)
            elif key == "output_path":
                kwargs[key] = Path(value)
            elif key == "metadata":
                if not isinstance(value, dict):
                    raise ConfigError("'metadata' must be a mapping")
                bad = set(value) - _META_NAMES
                if bad:
                    raise ConfigError(f"Unknown metadata keys: {', '.join(sorted(bad))}")
                kwargs[key] = MetadataConfig(**{k: str(v) for k, v in value.items()})
            else:
                kwargs[key] = value
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid config value: {exc}") from exc
    return ExportConfig(**kwargs)


def load_export_config(path: Path | str) -> ExportConfig:
    """Load an ``ExportConfig`` from a YAML file."""
    path = Path(path)
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"Cannot read config '{path}': {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in '{path}': {exc}") from exc
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config '{path}' must be a mapping, got {type(raw).__name__}")
    logger.debug("Loaded export config from %s", path)
    return config_from_mapping(raw)
