"""
Loop-duration inference and presentation timestamp sampling.

SVG scenes animated with CSS keyframes carry no structured duration
field, so the loop length is estimated from the time tokens found in
the markup (``animation: spin 2.5s linear infinite``,
``animation-duration: 800ms`` ...) and reconciled with the duration the
caller asked for.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Iterator

from svgloop.types import FPS

logger = logging.getLogger(__name__)

DEFAULT_DURATION_S = 2.0
MIN_PLAUSIBLE_S = 0.5
MAX_PLAUSIBLE_S = 20.0
MAX_DURATION_S = 10.0

# A number directly followed by ``s`` or ``ms``, preceded by ``:`` or whitespace.
_TIME_TOKEN_RE = re.compile(r"[:\s](\d*\.?\d+)(s|ms)\b", re.IGNORECASE | re.ASCII)

# Absorbs float error so that e.g. 3.0 * 30 yields exactly 90 frames.
_EPSILON = 1e-9


def estimate_duration(markup: str) -> float | None:
    """Return the longest plausible time token in *markup*, in seconds.

    Tokens outside ``[MIN_PLAUSIBLE_S, MAX_PLAUSIBLE_S]`` are ignored.
    Returns None when nothing plausible is found.
    """
    detected: float | None = None
    for match in _TIME_TOKEN_RE.finditer(markup):
        value = float(match.group(1))
        if match.group(2).lower() == "ms":
            value /= 1000.0
        if MIN_PLAUSIBLE_S <= value <= MAX_PLAUSIBLE_S:
            detected = value if detected is None else max(detected, value)
    return detected


def resolve_duration(markup: str, requested: float | None = None) -> float:
    """Reconcile the requested duration with the one detected in *markup*.

    ``min(max(requested or 2.0, detected), 10.0)``. Never raises.
    """
    if requested is not None and not (math.isfinite(requested) and requested > 0):
        logger.debug("Ignoring unusable requested duration %r", requested)
        requested = None

    duration = requested if requested is not None else DEFAULT_DURATION_S
    detected = estimate_duration(markup)
    if detected is not None and detected > duration:
        logger.debug("Detected loop duration %.3fs overrides %.3fs", detected, duration)
        duration = detected

    if duration > MAX_DURATION_S:
        logger.info("Clamping loop duration %.3fs to %.1fs", duration, MAX_DURATION_S)
        duration = MAX_DURATION_S
    return duration


def frame_count(duration: float, fps: int = FPS) -> int:
    """Number of frames needed to cover *duration* seconds at *fps*."""
    if fps <= 0:
        raise ValueError(f"fps must be positive, got {fps}")
    if duration <= 0:
        return 0
    return math.ceil(duration * fps - _EPSILON)


class TimeSampler:
    """Restartable sequence of presentation timestamps ``i / fps``.

    The first timestamp is exactly 0.0 and the last is strictly less
    than *duration*.
    """

    def __init__(self, duration: float, fps: int = FPS) -> None:
        self.duration = duration
        self.fps = fps
        self._count = frame_count(duration, fps)

    def __len__(self) -> int:
        return self._count

    def __iter__(self) -> Iterator[float]:
        for i in range(self._count):
            yield i / self.fps

    def __repr__(self) -> str:
        return f"TimeSampler(duration={self.duration!r}, fps={self.fps!r}, frames={self._count})"
