"""
Palette construction and palette mapping for indexed-colour output.

Every frame gets its own palette:

    RGBA buffer --> [split on alpha] --> opaque RGB --> [median cut] --> <= 255 colours
                                                                         + transparent slot 0

Pixels whose alpha is below ``ALPHA_THRESHOLD`` always map to index 0,
and index 0 is never chosen for an opaque pixel, so transparency
survives quantization exactly.
"""

from __future__ import annotations

import logging
import warnings

import numpy as np
from PIL import Image

from svgloop.exceptions import QuantizationDegenerate
from svgloop.types import ALPHA_THRESHOLD, IndexBuffer, Palette, PixelBuffer

logger = logging.getLogger(__name__)

TRANSPARENT_SENTINEL = (0, 0, 0)
MAX_OPAQUE_COLORS = 255

# Pixels mapped per numpy pass; bounds the (pixels x palette) distance matrix.
_CHUNK_PIXELS = 16384


def _opaque_rgb(buffer: PixelBuffer) -> np.ndarray:
    pixels = buffer.as_array().reshape(-1, 4)
    return pixels[pixels[:, 3] >= ALPHA_THRESHOLD, :3]


def _median_cut(rgb: np.ndarray, max_colors: int) -> np.ndarray:
    """Reduce an ``(n, 3)`` uint8 array to at most *max_colors* representatives."""
    unique = np.unique(rgb, axis=0)
    if len(unique) <= max_colors:
        return unique

    strip = Image.fromarray(np.ascontiguousarray(rgb).reshape(1, -1, 3))
    quantized = strip.quantize(
        colors=max_colors,
        method=Image.Quantize.MEDIANCUT,
        dither=Image.Dither.NONE,
    )
    used = np.unique(np.asarray(quantized))
    table = np.asarray(quantized.getpalette(), dtype=np.uint8).reshape(-1, 3)
    return table[used]


def build_palette(buffer: PixelBuffer, max_colors: int = MAX_OPAQUE_COLORS) -> Palette:
    """Build a palette for *buffer* with the transparent sentinel at index 0.

    A buffer with no opaque pixel yields a single-entry degenerate palette
    and emits ``QuantizationDegenerate``.
    """
    if not 1 <= max_colors <= MAX_OPAQUE_COLORS:
        raise ValueError(f"max_colors must be in 1..{MAX_OPAQUE_COLORS}, got {max_colors}")

    opaque = _opaque_rgb(buffer)
    if opaque.size == 0:
        logger.warning("Frame %dx%d has no opaque pixels; using a one-entry palette.",
                       buffer.width, buffer.height)
        warnings.warn(
            f"No opaque pixels in {buffer.width}x{buffer.height} frame",
            QuantizationDegenerate,
            stacklevel=2,
        )
        return Palette(colors=(TRANSPARENT_SENTINEL,), degenerate=True)

    representatives = _median_cut(opaque, max_colors)
    colors = [TRANSPARENT_SENTINEL]
    colors.extend((int(r), int(g), int(b)) for r, g, b in representatives)
    logger.debug("Built %d-entry palette from %d opaque pixels", len(colors), len(opaque))
    return Palette(colors=tuple(colors))


def map_to_palette(buffer: PixelBuffer, palette: Palette) -> IndexBuffer:
    """Map every pixel of *buffer* to a palette index.

    Transparent pixels get index 0; opaque pixels get the nearest entry
    (squared RGB distance, lowest index on ties) among indices 1 and up.
    """
    pixels = buffer.as_array().reshape(-1, 4)
    out = np.zeros(len(pixels), dtype=np.uint8)

    if len(palette) > 1:
        candidates = palette.as_array()[1:]
        cand_sq = (candidates ** 2).sum(axis=1)
        for start in range(0, len(pixels), _CHUNK_PIXELS):
            chunk = pixels[start:start + _CHUNK_PIXELS]
            rgb = chunk[:, :3].astype(np.int32)
            dist = (rgb ** 2).sum(axis=1)[:, None] - 2 * (rgb @ candidates.T) + cand_sq[None, :]
            idx = dist.argmin(axis=1).astype(np.uint8) + 1
            idx[chunk[:, 3] < ALPHA_THRESHOLD] = 0
            out[start:start + _CHUNK_PIXELS] = idx

    return IndexBuffer(width=buffer.width, height=buffer.height, indices=out.tobytes())


def quantize_frame(buffer: PixelBuffer) -> tuple[Palette, IndexBuffer]:
    """Build a per-frame palette and map *buffer* onto it."""
    palette = build_palette(buffer)
    return palette, map_to_palette(buffer, palette)
