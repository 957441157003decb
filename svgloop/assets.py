"""
Scene assets -- generated animations saved alongside their metadata.

An asset sidecar is the record returned by the generation service plus
the settings it was generated with, stored as JSON or YAML::

    {
      "id": "3f2a...",
      "title": "Neon_Robot_Running",
      "description": "A robot running in place",
      "svgContent": "<svg ...>...</svg>",
      "width": 512, "height": 512,
      "duration": 2.5,
      "prompt": "a robot running",
      "style": "Flat Design",
      "designRationale": "...",
      "createdAt": 1718000000000
    }
"""

from __future__ import annotations

import enum
import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from svgloop.exceptions import ConfigError
from svgloop.types import Scene


class AnimationStyle(enum.Enum):
    """Visual style tags understood by the generation service."""
    FLAT = "Flat Design"
    GRADIENT = "Gradient"
    OUTLINE = "Outline/Stroke"
    PIXEL = "Pixel Art"
    MINIMALIST = "Minimalist"
    ISOMETRIC = "Isometric"
    RIVE_LIKE = "Rive-like"


@dataclass(frozen=True)
class SceneAsset:
    """One generated animation and the settings it was produced with."""
    svg_content: str
    title: str = ""
    description: str = ""
    width: int | None = None
    height: int | None = None
    duration: float | None = None
    prompt: str = ""
    style: AnimationStyle | None = None
    design_rationale: str = ""
    id: str = ""
    created_at: int | None = None   # epoch milliseconds

    def scene(self) -> Scene:
        return Scene(self.svg_content)


_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def _snake(key: str) -> str:
    return _CAMEL_RE.sub("_", key).lower()


def asset_from_mapping(raw: dict[str, Any]) -> SceneAsset:
    data = {_snake(str(k)): v for k, v in raw.items()}
    svg = data.get("svg_content")
    if not isinstance(svg, str) or not svg.strip():
        raise ConfigError("Asset is missing 'svgContent'")

    style = data.get("style")
    if style is not None:
        try:
            style = AnimationStyle(style)
        except ValueError as exc:
            raise ConfigError(f"Unknown animation style {style!r}") from exc

    try:
        return SceneAsset(
            svg_content=svg,
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            width=int(data["width"]) if data.get("width") is not None else None,
            height=int(data["height"]) if data.get("height") is not None else None,
            duration=float(data["duration"]) if data.get("duration") is not None else None,
            prompt=str(data.get("prompt") or ""),
            style=style,
            design_rationale=str(data.get("design_rationale") or ""),
            id=str(data.get("id") or ""),
            created_at=int(data["created_at"]) if data.get("created_at") is not None else None,
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid asset field: {exc}") from exc


def load_asset(path: Path | str) -> SceneAsset:
    """Load a ``SceneAsset`` from a ``.json`` or ``.yaml``/``.yml`` sidecar."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read asset '{path}': {exc}") from exc

    try:
        if path.suffix.lower() == ".json":
            raw = json.loads(text)
        else:
            raw = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Invalid asset file '{path}': {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(f"Asset '{path}' must be a mapping")
    return asset_from_mapping(raw)
