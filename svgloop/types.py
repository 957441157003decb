"""
Core data structures used throughout the export pipeline.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
from PIL import Image

# Pixels with alpha below this value are treated as fully transparent.
ALPHA_THRESHOLD = 128

# Fixed export frame rate.
FPS = 30

_VIEWBOX_RE = re.compile(r"""<svg\b[^>]*?\bviewBox\s*=\s*["']([^"']+)["']""", re.IGNORECASE | re.DOTALL)


class ExportFormat(enum.Enum):
    """Supported export formats."""
    SVG = "svg"
    PNG = "png"
    GIF = "gif"

    @property
    def extension(self) -> str:
        return "." + self.value


class DisposalMode(enum.Enum):
    """GIF frame disposal methods (graphic control extension, bits 2-4)."""
    UNSPECIFIED = 0
    NONE = 1                  # Leave the frame in place.
    RESTORE_BACKGROUND = 2    # Clear the frame area before the next frame.
    RESTORE_PREVIOUS = 3


@dataclass(frozen=True)
class ViewBox:
    """The intrinsic coordinate system declared on the root element."""
    min_x: float
    min_y: float
    width: float
    height: float

    @classmethod
    def parse(cls, value: str) -> ViewBox | None:
        parts = value.replace(",", " ").split()
        if len(parts) != 4:
            return None
        try:
            min_x, min_y, width, height = (float(p) for p in parts)
        except ValueError:
            return None
        if width <= 0 or height <= 0:
            return None
        return cls(min_x, min_y, width, height)


@dataclass(frozen=True)
class Scene:
    """A self-contained animated SVG document.

    The markup is never edited; freezing produces a new ``FrozenScene``.
    """
    markup: str

    @property
    def view_box(self) -> ViewBox | None:
        match = _VIEWBOX_RE.search(self.markup)
        if match is None:
            return None
        return ViewBox.parse(match.group(1))

    @classmethod
    def from_file(cls, path: Path | str) -> Scene:
        return cls(Path(path).read_text(encoding="utf-8"))


@dataclass(frozen=True)
class FrozenScene:
    """A scene pinned to a single presentation timestamp."""
    markup: str
    timestamp: float
    width: int
    height: int

    def to_bytes(self) -> bytes:
        return self.markup.encode("utf-8")


@dataclass(frozen=True)
class PixelBuffer:
    """A rasterized RGBA frame, row-major, 4 bytes per pixel."""
    width: int
    height: int
    data: bytes = field(repr=False)

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Invalid buffer size {self.width}x{self.height}")
        expected = 4 * self.width * self.height
        if len(self.data) != expected:
            raise ValueError(
                f"RGBA buffer length {len(self.data)} != 4*{self.width}*{self.height}"
            )

    def as_array(self) -> np.ndarray:
        """Read-only ``(height, width, 4)`` uint8 view of the buffer."""
        return np.frombuffer(self.data, dtype=np.uint8).reshape(self.height, self.width, 4)

    def to_image(self) -> Image.Image:
        return Image.frombytes("RGBA", (self.width, self.height), self.data)

    @classmethod
    def from_image(cls, img: Image.Image) -> PixelBuffer:
        rgba = img if img.mode == "RGBA" else img.convert("RGBA")
        return cls(rgba.width, rgba.height, rgba.tobytes())


@dataclass(frozen=True)
class Palette:
    """Bounded colour table. Index 0 is reserved for transparency."""
    colors: tuple[tuple[int, int, int], ...]
    degenerate: bool = False

    def __post_init__(self) -> None:
        if not 1 <= len(self.colors) <= 256:
            raise ValueError(f"Palette must hold 1-256 colors, got {len(self.colors)}")

    def __len__(self) -> int:
        return len(self.colors)

    def as_array(self) -> np.ndarray:
        return np.asarray(self.colors, dtype=np.int32).reshape(-1, 3)


@dataclass(frozen=True)
class IndexBuffer:
    """A quantized frame: one palette index per pixel."""
    width: int
    height: int
    indices: bytes = field(repr=False)

    def __post_init__(self) -> None:
        if len(self.indices) != self.width * self.height:
            raise ValueError(
                f"Index buffer length {len(self.indices)} != {self.width}*{self.height}"
            )


@dataclass(frozen=True)
class Frame:
    """One encodable GIF frame."""
    indices: IndexBuffer
    palette: Palette
    delay_cs: int
    disposal: DisposalMode = DisposalMode.RESTORE_BACKGROUND
    transparent: bool = True
    timestamp: float | None = None

    def __post_init__(self) -> None:
        if self.delay_cs <= 0:
            raise ValueError(f"Frame delay must be positive, got {self.delay_cs}")
