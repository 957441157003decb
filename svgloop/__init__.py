"""
svgloop -- CSS-animated SVG to PNG / animated GIF exporter.

Freezes a looping SVG scene at sampled timestamps, rasterizes each
instant through a pluggable backend, quantizes frames to per-frame
palettes with a reserved transparent slot, and writes GIF89a directly.
"""

__version__ = "0.1.0"

from svgloop.types import (
    DisposalMode,
    ExportFormat,
    FrozenScene,
    IndexBuffer,
    Palette,
    PixelBuffer,
    Scene,
)

__all__ = [
    "DisposalMode",
    "ExportFormat",
    "FrozenScene",
    "IndexBuffer",
    "Palette",
    "PixelBuffer",
    "Scene",
]
