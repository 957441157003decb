"""
SVG-to-pixel rasterizer backends.

Each backend paints a frozen scene into an RGBA ``PixelBuffer`` of the
requested size.  The pipeline only depends on the ``Rasterizer``
interface, so a headless browser, a native library, or a test double can
be swapped in freely.

Backend priority (highest to lowest):
    1. chromium     -- headless Chromium/Chrome, evaluates CSS animations
    2. rsvg-convert -- librsvg command-line tool (static styles only)
    3. cairosvg     -- pure-Python wrapper around cairo (static styles only)

Only a browser engine honours ``animation-delay``; the other backends
render the un-animated state and are useful for static exports.
"""

from __future__ import annotations

import abc
import asyncio
import io
import logging
import os
import platform
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from PIL import Image, UnidentifiedImageError

from svgloop.exceptions import RasterizerNotFoundError, RenderError
from svgloop.types import FrozenScene, PixelBuffer

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 60.0


@contextmanager
def scene_handle(frozen: FrozenScene, directory: Optional[Path] = None) -> Iterator[Path]:
    """Expose *frozen* as a temporary ``.svg`` file for one render call.

    The file is removed on exit whether or not the render succeeded.
    """
    fd, name = tempfile.mkstemp(suffix=".svg", prefix="svgloop_frame_", dir=directory)
    path = Path(name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(frozen.to_bytes())
        yield path
    finally:
        path.unlink(missing_ok=True)


# ---------------------------------------------------------------------------
# Abstract base
# ---------------------------------------------------------------------------

class Rasterizer(abc.ABC):
    """Abstract interface that every rasterizer backend must implement."""

    name: str = "abstract"
    # True when the backend honours the CSS animation clock (animation-delay).
    animates: bool = False

    @abc.abstractmethod
    async def render(self, frozen: FrozenScene, width: int, height: int) -> PixelBuffer:
        """Paint *frozen* into a ``width`` x ``height`` RGBA buffer."""

    @staticmethod
    @abc.abstractmethod
    def is_available() -> bool:
        """Return True if this backend's dependencies are satisfied."""

    @staticmethod
    @abc.abstractmethod
    def install_hint() -> str:
        """Human-readable install instructions for the current platform."""

    @staticmethod
    def _to_buffer(png_bytes: bytes, width: int, height: int) -> PixelBuffer:
        """Decode PNG output and normalise it to RGBA at exactly *width* x *height*."""
        try:
            img = Image.open(io.BytesIO(png_bytes))
            img.load()
        except (UnidentifiedImageError, OSError) as exc:
            raise RenderError(f"Rasterizer produced an unreadable image: {exc}") from exc
        if img.mode != "RGBA":
            img = img.convert("RGBA")
        if img.size != (width, height):
            img = img.resize((width, height), Image.LANCZOS)
        return PixelBuffer.from_image(img)


class SubprocessRasterizer(Rasterizer):
    """Shared plumbing for backends that shell out to an executable."""

    executables: tuple[str, ...] = ()

    def __init__(self, timeout_s: float = DEFAULT_TIMEOUT_S) -> None:
        self.timeout_s = timeout_s

    @classmethod
    def _executable(cls) -> Optional[str]:
        for name in cls.executables:
            path = shutil.which(name)
            if path is not None:
                return path
        return None

    @classmethod
    def is_available(cls) -> bool:
        return cls._executable() is not None

    @abc.abstractmethod
    def build_command(self, exe: str, svg_path: Path, png_path: Path,
                      width: int, height: int) -> List[str]:
        """Command line that renders *svg_path* into *png_path*."""

    async def render(self, frozen: FrozenScene, width: int, height: int) -> PixelBuffer:
        exe = self._executable()
        if exe is None:
            raise RenderError(f"{self.name} not found on PATH.")

        with tempfile.TemporaryDirectory(prefix=f"svgloop_{self.name}_") as tmpdir:
            png_path = Path(tmpdir) / "frame.png"
            with scene_handle(frozen, Path(tmpdir)) as svg_path:
                cmd = self.build_command(exe, svg_path, png_path, width, height)
                logger.debug("%s command: %s", self.name, " ".join(cmd))
                await self._run(cmd)

            if not png_path.is_file():
                raise RenderError(f"{self.name} produced no output file.")
            return self._to_buffer(png_path.read_bytes(), width, height)

    async def _run(self, cmd: List[str]) -> None:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            _stdout, stderr = await asyncio.wait_for(proc.communicate(), self.timeout_s)
        except asyncio.TimeoutError as exc:
            proc.kill()
            await proc.wait()
            raise RenderError(
                f"{self.name} timed out after {self.timeout_s:.0f}s"
            ) from exc
        if proc.returncode != 0:
            err = stderr.decode(errors="replace")
            raise RenderError(f"{self.name} failed (rc={proc.returncode}):\n{err}", stderr=err)


# ---------------------------------------------------------------------------
# 1. Headless Chromium
# ---------------------------------------------------------------------------

class ChromiumRasterizer(SubprocessRasterizer):
    """Screenshots the scene with a headless Chromium-family browser.

    Command flags
    -------------
    --headless                         No window
    --screenshot=<png>                 Capture the viewport to PNG
    --window-size=<w>,<h>              Viewport size (== export size)
    --default-background-color=0...0  Transparent page background
    --hide-scrollbars                  Keep the viewport clean
    """

    name = "chromium"
    animates = True
    executables = ("chromium", "chromium-browser", "google-chrome",
                   "google-chrome-stable", "chrome")

    @staticmethod
    def install_hint() -> str:
        os_name = platform.system()
        if os_name == "Darwin":
            return "brew install --cask chromium"
        if os_name == "Linux":
            return "sudo apt-get install chromium"
        if os_name == "Windows":
            return "choco install chromium"
        return "Install Chromium or Google Chrome for your platform."

    def build_command(self, exe, svg_path, png_path, width, height):
        return [
            exe,
            "--headless",
            "--disable-gpu",
            "--no-sandbox",
            "--hide-scrollbars",
            "--default-background-color=00000000",
            f"--window-size={width},{height}",
            f"--screenshot={png_path}",
            svg_path.resolve().as_uri(),
        ]


# ---------------------------------------------------------------------------
# 2. rsvg-convert (librsvg)
# ---------------------------------------------------------------------------

class RsvgConvertRasterizer(SubprocessRasterizer):
    """librsvg's converter. Fast, but CSS animations are not evaluated."""

    name = "rsvg-convert"
    executables = ("rsvg-convert",)

    @staticmethod
    def install_hint() -> str:
        os_name = platform.system()
        if os_name == "Darwin":
            return "brew install librsvg"
        if os_name == "Linux":
            return "sudo apt-get install librsvg2-bin"
        if os_name == "Windows":
            return "choco install rsvg-convert"
        return "Install librsvg for your platform."

    def build_command(self, exe, svg_path, png_path, width, height):
        return [
            exe,
            "--format", "png",
            "--width", str(width),
            "--height", str(height),
            "--output", str(png_path),
            str(svg_path),
        ]


# ---------------------------------------------------------------------------
# 3. CairoSVG
# ---------------------------------------------------------------------------

class CairoSvgRasterizer(Rasterizer):
    """In-process rendering through cairosvg, run on a worker thread."""

    name = "cairosvg"

    @staticmethod
    def is_available() -> bool:
        try:
            import cairosvg  # noqa: F401
            return True
        except (ImportError, OSError):
            return False

    @staticmethod
    def install_hint() -> str:
        return "pip install 'svgloop[cairo]'"

    async def render(self, frozen: FrozenScene, width: int, height: int) -> PixelBuffer:
        import cairosvg

        def _paint() -> bytes:
            return cairosvg.svg2png(
                bytestring=frozen.to_bytes(),
                output_width=width,
                output_height=height,
            )

        try:
            png_bytes = await asyncio.to_thread(_paint)
        except Exception as exc:
            raise RenderError(f"cairosvg failed: {exc}") from exc
        return self._to_buffer(png_bytes, width, height)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

RASTERIZER_PRIORITY: List[type] = [
    ChromiumRasterizer,
    RsvgConvertRasterizer,
    CairoSvgRasterizer,
]

_RASTERIZER_BY_NAME: Dict[str, type] = {cls.name: cls for cls in RASTERIZER_PRIORITY}


def rasterizer_names() -> List[str]:
    return list(_RASTERIZER_BY_NAME)


def get_rasterizer_by_name(name: str) -> Rasterizer:
    """Instantiate a rasterizer by its short name."""
    cls = _RASTERIZER_BY_NAME.get(name)
    if cls is None:
        raise ValueError(
            f"Unknown rasterizer '{name}'. "
            f"Available: {list(_RASTERIZER_BY_NAME.keys())}"
        )
    if not cls.is_available():
        raise RasterizerNotFoundError(
            f"Rasterizer '{name}' is not available on this system.\n"
            f"Install: {cls.install_hint()}"
        )
    return cls()
