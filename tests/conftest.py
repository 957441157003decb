"""
Shared fixtures for the svgloop test suite.
"""

from __future__ import annotations

import shutil
import tempfile
from pathlib import Path

import pytest
from PIL import Image, ImageDraw

from svgloop.exceptions import RenderError
from svgloop.rasterizers import Rasterizer
from svgloop.types import FrozenScene, PixelBuffer, Scene


SPINNER_SVG = """<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 100 50">
  <style>
    .dot { animation: slide 2.5s linear infinite; }
    @keyframes slide { from { transform: translateX(0); } to { transform: translateX(80px); } }
  </style>
  <rect class="dot" x="5" y="15" width="20" height="20" fill="#ff0000"/>
</svg>"""

STATIC_SVG = """<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 64 64">
  <circle cx="32" cy="32" r="20" fill="#3366cc"/>
</svg>"""


class FakeRasterizer(Rasterizer):
    """Paints a red square whose position follows the frozen timestamp.

    Background is fully transparent; a blue bar is always present.
    """

    name = "fake"
    animates = True

    def __init__(self) -> None:
        self.calls: list[FrozenScene] = []

    @staticmethod
    def is_available() -> bool:
        return True

    @staticmethod
    def install_hint() -> str:
        return "built into the test suite"

    async def render(self, frozen: FrozenScene, width: int, height: int) -> PixelBuffer:
        self.calls.append(frozen)
        img = Image.new("RGBA", (width, height), (0, 0, 0, 0))
        draw = ImageDraw.Draw(img)
        draw.rectangle((0, height - 4, width - 1, height - 1), fill=(0, 0, 255, 255))
        x = int(frozen.timestamp * 10) % max(1, width - 8)
        draw.rectangle((x, 2, x + 7, 9), fill=(255, 0, 0, 255))
        return PixelBuffer.from_image(img)


class FailingRasterizer(FakeRasterizer):
    """Fails on the n-th render call (0-based)."""

    name = "failing"

    def __init__(self, fail_at: int = 0) -> None:
        super().__init__()
        self.fail_at = fail_at

    async def render(self, frozen: FrozenScene, width: int, height: int) -> PixelBuffer:
        if len(self.calls) == self.fail_at:
            self.calls.append(frozen)
            raise RenderError("cannot paint this frame")
        return await super().render(frozen, width, height)


@pytest.fixture
def tmp_dir():
    """Provide a temporary directory that is cleaned up after the test."""
    with tempfile.TemporaryDirectory(prefix="svgloop_test_") as d:
        yield Path(d)


@pytest.fixture
def spinner_scene() -> Scene:
    return Scene(SPINNER_SVG)


@pytest.fixture
def static_scene() -> Scene:
    return Scene(STATIC_SVG)


@pytest.fixture
def fake_rasterizer() -> FakeRasterizer:
    return FakeRasterizer()


@pytest.fixture(scope="session")
def has_chromium() -> bool:
    return any(shutil.which(n) is not None
               for n in ("chromium", "chromium-browser", "google-chrome"))


@pytest.fixture
def failing_rasterizer():
    """Factory for a rasterizer that fails on the given call."""
    return FailingRasterizer
