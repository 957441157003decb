"""
Custom exception hierarchy for svgloop.

All svgloop exceptions inherit from SvgLoopError so callers can catch
the entire family with a single except clause.
"""

from __future__ import annotations


class SvgLoopError(Exception):
    """Base exception for all svgloop errors."""


class RenderError(SvgLoopError):
    """Raised when a rasterizer cannot decode or paint a frozen scene."""

    def __init__(self, message: str, stderr: str = "") -> None:
        super().__init__(message)
        self.stderr = stderr


class SceneParseError(RenderError):
    """Raised when scene markup is not well-formed XML."""


class RasterizerNotFoundError(SvgLoopError):
    """Raised when no rasterizer backend is available."""


class EncoderUnavailableError(SvgLoopError):
    """Raised when the GIF encoding stack failed to initialize."""


class EncoderStateError(SvgLoopError):
    """Raised when the encoder is used out of order (e.g. append after finalize)."""


class FrameOrderError(SvgLoopError):
    """Raised when frames are appended out of timestamp order."""


class ExportIOError(SvgLoopError):
    """Raised when the exported file cannot be delivered."""


class ExportCancelled(SvgLoopError):
    """Raised when an export is cancelled between frames."""


class ConfigError(SvgLoopError):
    """Raised when an export config or asset sidecar is invalid."""


class SvgLoopWarning(UserWarning):
    """Base class for non-fatal svgloop conditions."""


class QuantizationDegenerate(SvgLoopWarning):
    """Emitted when a frame has no opaque pixels to build a palette from."""
