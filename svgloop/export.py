"""
Export pipeline: scene --> SVG / PNG / animated GIF.

    SVG   markup written verbatim
    PNG   freeze --> rasterize --> full-colour RGBA PNG
    GIF   resolve duration --> sample timestamps --> for each timestamp:
              freeze --> rasterize --> quantize --> append
          --> finalize

Frames are processed strictly one after another: frame ``i + 1`` is not
rendered before frame ``i`` has been quantized and appended, so the
encoder always receives frames in timestamp order.  Any failed frame
aborts the whole export and nothing is written.
"""

from __future__ import annotations

import io
import logging
import os
import stat
import tempfile
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from PIL.PngImagePlugin import PngInfo

from svgloop.config import ExportConfig, MetadataConfig, coerce_dimensions
from svgloop.exceptions import ExportCancelled, ExportIOError, RenderError
from svgloop.freezer import freeze_scene
from svgloop.gif_encoder import GifEncoder, delay_to_centiseconds, ensure_encoder_available
from svgloop.quantize import quantize_frame
from svgloop.rasterizers import Rasterizer
from svgloop.timing import TimeSampler, resolve_duration
from svgloop.types import FPS, ExportFormat, PixelBuffer, Scene

logger = logging.getLogger(__name__)

FrameCallback = Callable[[int, int], None]

# os.umask can only be read by setting it.
_UMASK = os.umask(0)
os.umask(_UMASK)


class CancelToken:
    """Cooperative cancellation flag, polled between frames only."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class ExportResult:
    """Outcome of a single export."""
    data: bytes
    format: ExportFormat
    width: int | None
    height: int | None
    frame_count: int
    duration_s: float | None
    elapsed_s: float

    def summary(self) -> str:
        size = len(self.data)
        if size < 1024:
            size_str = f"{size} B"
        elif size < 1024 * 1024:
            size_str = f"{size / 1024:.1f} KB"
        else:
            size_str = f"{size / (1024 * 1024):.1f} MB"
        parts = [self.format.value.upper()]
        if self.width and self.height:
            parts.append(f"{self.width}x{self.height}")
        if self.format == ExportFormat.GIF:
            parts.append(f"{self.frame_count} frames / {self.duration_s:.2f}s")
        parts.append(size_str)
        parts.append(f"in {self.elapsed_s:.2f}s")
        return ", ".join(parts)


def _build_comment(meta: MetadataConfig) -> str:
    parts = []
    if meta.title:
        parts.append(f"Title: {meta.title}")
    if meta.description:
        parts.append(meta.description)
    if meta.comment:
        parts.append(meta.comment)
    return " | ".join(parts)


async def _render_checked(rasterizer: Rasterizer, scene: Scene, timestamp: float,
                          width: int, height: int) -> PixelBuffer:
    frozen = freeze_scene(scene, timestamp, width, height)
    buffer = await rasterizer.render(frozen, width, height)
    if (buffer.width, buffer.height) != (width, height):
        raise RenderError(
            f"{rasterizer.name} returned {buffer.width}x{buffer.height}, "
            f"expected {width}x{height}"
        )
    return buffer


# ---------------------------------------------------------------------------
# Per-format exports
# ---------------------------------------------------------------------------

def export_svg(scene: Scene) -> bytes:
    """The original markup, unmodified."""
    return scene.markup.encode("utf-8")


async def export_png(
    scene: Scene,
    width: int,
    height: int,
    rasterizer: Rasterizer,
    timestamp: float = 0.0,
    metadata: Optional[MetadataConfig] = None,
) -> bytes:
    """Render one frame at *timestamp* and encode it as an RGBA PNG."""
    buffer = await _render_checked(rasterizer, scene, timestamp, width, height)

    info = PngInfo()
    meta = metadata or MetadataConfig()
    if meta.title:
        info.add_text("Title", meta.title)
    if meta.description:
        info.add_text("Description", meta.description)
    if meta.comment:
        info.add_text("Comment", meta.comment)
    info.add_text("Timestamp", f"{timestamp:.3f}")

    out = io.BytesIO()
    buffer.to_image().save(out, format="PNG", pnginfo=info)
    logger.info("Exported PNG %dx%d at t=%.3fs", width, height, timestamp)
    return out.getvalue()


async def export_gif(
    scene: Scene,
    width: int,
    height: int,
    rasterizer: Rasterizer,
    duration: Optional[float] = None,
    fps: int = FPS,
    metadata: Optional[MetadataConfig] = None,
    cancel: Optional[CancelToken] = None,
    on_frame: Optional[FrameCallback] = None,
) -> bytes:
    """Sample, render, quantize and encode the whole loop as an animated GIF."""
    ensure_encoder_available()

    resolved = resolve_duration(scene.markup, duration)
    sampler = TimeSampler(resolved, fps)
    total = len(sampler)
    delay_cs = delay_to_centiseconds(1000.0 / fps)
    encoder = GifEncoder(width, height, loop=0,
                         comment=_build_comment(metadata or MetadataConfig()) or None)

    logger.info(
        "Exporting GIF %dx%d: %d frames over %.3fs with %s",
        width, height, total, resolved, rasterizer.name,
    )
    if not rasterizer.animates:
        logger.warning(
            "Rasterizer '%s' does not evaluate CSS animations; "
            "every GIF frame will show the same state. Install Chromium "
            "for animated output.", rasterizer.name,
        )
    for i, timestamp in enumerate(sampler):
        if cancel is not None and cancel.cancelled:
            raise ExportCancelled(f"Export cancelled after {i}/{total} frames")

        buffer = await _render_checked(rasterizer, scene, timestamp, width, height)
        palette, indices = quantize_frame(buffer)
        encoder.append(indices, palette, delay_cs, timestamp=timestamp)
        logger.debug("Frame %d/%d t=%.3fs palette=%d", i + 1, total, timestamp, len(palette))

        if on_frame is not None:
            on_frame(i + 1, total)

    return encoder.finalize()


# ---------------------------------------------------------------------------
# Delivery
# ---------------------------------------------------------------------------

def write_output(data: bytes, path: Path | str) -> Path:
    """Atomically write *data* to *path*.

    The bytes go to a sibling temporary file that replaces *path* only
    once fully written; on failure the temporary file is removed.  The
    result keeps the mode of an existing *path*, otherwise it gets the
    mode a plain ``open(path, "wb")`` would give it.
    """
    path = Path(path)
    tmp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            mode = stat.S_IMODE(path.stat().st_mode)
        except FileNotFoundError:
            mode = 0o666 & ~_UMASK
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.chmod(tmp_name, mode)
        os.replace(tmp_name, path)
    except OSError as exc:
        if tmp_name is not None:
            Path(tmp_name).unlink(missing_ok=True)
        raise ExportIOError(f"Failed to write '{path}': {exc}") from exc
    return path


# ===================================================================
#  UNIFIED DISPATCHER
# ===================================================================

class AnimationExporter:
    """Unified entry point that dispatches on ``ExportConfig.format``.

    Usage::

        config = ExportConfig(
            format=ExportFormat.GIF,
            width=480,
            duration=3.0,
            metadata=MetadataConfig(title="Neon_Spinner"),
        )
        exporter = AnimationExporter(config)
        result = await exporter.export(Scene(markup))
        write_output(result.data, "spinner.gif")

    The rasterizer is auto-detected (or picked by ``config.backend``) on
    first use unless one is injected.
    """

    def __init__(self, config: ExportConfig, rasterizer: Optional[Rasterizer] = None) -> None:
        self.config = config
        self._rasterizer = rasterizer

    @property
    def rasterizer(self) -> Rasterizer:
        if self._rasterizer is None:
            from svgloop.detection import select_rasterizer
            self._rasterizer = select_rasterizer(preferred=self.config.backend)
        return self._rasterizer

    async def export(
        self,
        scene: Scene,
        cancel: Optional[CancelToken] = None,
        on_frame: Optional[FrameCallback] = None,
    ) -> ExportResult:
        cfg = self.config
        t_start = time.perf_counter()

        if cfg.format == ExportFormat.SVG:
            data = export_svg(scene)
            return ExportResult(data=data, format=cfg.format, width=None, height=None,
                                frame_count=0, duration_s=None,
                                elapsed_s=time.perf_counter() - t_start)

        width, height = coerce_dimensions(scene, cfg.width, cfg.height)
        if cfg.format == ExportFormat.PNG:
            data = await export_png(scene, width, height, self.rasterizer,
                                    timestamp=cfg.timestamp, metadata=cfg.metadata)
            frames, duration = 1, None
        elif cfg.format == ExportFormat.GIF:
            duration = resolve_duration(scene.markup, cfg.duration)
            data = await export_gif(scene, width, height, self.rasterizer,
                                    duration=cfg.duration, fps=cfg.fps,
                                    metadata=cfg.metadata, cancel=cancel,
                                    on_frame=on_frame)
            frames = len(TimeSampler(duration, cfg.fps))
        else:
            raise ValueError(f"Unsupported export format: {cfg.format}")

        return ExportResult(data=data, format=cfg.format, width=width, height=height,
                            frame_count=frames, duration_s=duration,
                            elapsed_s=time.perf_counter() - t_start)

    async def export_to_file(self, scene: Scene, path: Path | str,
                             cancel: Optional[CancelToken] = None,
                             on_frame: Optional[FrameCallback] = None) -> ExportResult:
        """Export and deliver; nothing is written if the export fails."""
        result = await self.export(scene, cancel=cancel, on_frame=on_frame)
        write_output(result.data, path)
        logger.info("Wrote %s", path)
        return result
