"""
GIF89a bitstream writer.

Frames are appended already indexed, each with its own local colour
table.  The file layout produced by ``GifEncoder.finalize``::

    Header               "GIF89a"
    Logical screen       width, height, no global colour table
    Application ext.     NETSCAPE2.0 loop count (0 = forever)
    Comment ext.         optional
    per frame:
        Graphic control  disposal, transparency flag, delay (cs), transparent index
        Image descriptor full canvas, local colour table flag + size
        Local colour table
        Image data       LZW minimum code size + <=255-byte sub-blocks
    Trailer              0x3B
"""

from __future__ import annotations

import importlib.util
import logging
import struct

from svgloop.exceptions import EncoderStateError, EncoderUnavailableError, FrameOrderError
from svgloop.types import DisposalMode, Frame, IndexBuffer, Palette

logger = logging.getLogger(__name__)

GIF_HEADER = b"GIF89a"
GIF_TRAILER = b"\x3b"
TRANSPARENT_INDEX = 0
MAX_CODE_BITS = 12
MAX_CODES = 1 << MAX_CODE_BITS


def delay_to_centiseconds(delay_ms: float) -> int:
    """Convert a millisecond delay to GIF centiseconds (at least 1)."""
    return max(1, int(round(delay_ms / 10.0)))


def ensure_encoder_available() -> None:
    """Verify the quantization stack the encoder depends on.

    Raises ``EncoderUnavailableError`` listing what is missing.  Called
    once per export, before any frame is rendered.
    """
    missing = [name for name in ("PIL", "numpy") if importlib.util.find_spec(name) is None]
    if missing:
        raise EncoderUnavailableError(
            f"GIF encoding requires {', '.join(missing)}. "
            f"Install with: pip install Pillow numpy"
        )
    from PIL import Image

    if not hasattr(Image, "Quantize"):
        raise EncoderUnavailableError(
            "Pillow is too old for median-cut quantization (need >= 9.1)."
        )


# ---------------------------------------------------------------------------
# LZW
# ---------------------------------------------------------------------------

class _BitWriter:
    """Packs variable-width codes LSB-first."""

    def __init__(self) -> None:
        self.out = bytearray()
        self._buffer = 0
        self._count = 0

    def write(self, code: int, width: int) -> None:
        self._buffer |= code << self._count
        self._count += width
        while self._count >= 8:
            self.out.append(self._buffer & 0xFF)
            self._buffer >>= 8
            self._count -= 8

    def finish(self) -> bytes:
        if self._count:
            self.out.append(self._buffer & 0xFF)
            self._buffer = 0
            self._count = 0
        return bytes(self.out)


def lzw_compress(indices: bytes, min_code_size: int) -> bytes:
    """GIF-flavoured variable-width LZW.

    The code width grows in lockstep with the decoder's table and the
    table is reset with a clear code once all 4096 codes are in use.
    """
    if not 2 <= min_code_size <= 8:
        raise ValueError(f"min_code_size must be in 2..8, got {min_code_size}")

    clear_code = 1 << min_code_size
    end_code = clear_code + 1
    code_size = min_code_size + 1
    next_code = end_code + 1
    table: dict[int, int] = {}
    writer = _BitWriter()

    writer.write(clear_code, code_size)
    if not indices:
        writer.write(end_code, code_size)
        return writer.finish()

    data = memoryview(indices)
    prefix = data[0]
    for k in data[1:]:
        key = (prefix << 8) | k
        code = table.get(key)
        if code is not None:
            prefix = code
            continue

        writer.write(prefix, code_size)
        if next_code < MAX_CODES:
            table[key] = next_code
            next_code += 1
            if next_code > (1 << code_size) and code_size < MAX_CODE_BITS:
                code_size += 1
        else:
            writer.write(clear_code, code_size)
            table.clear()
            code_size = min_code_size + 1
            next_code = end_code + 1
        prefix = k

    writer.write(prefix, code_size)
    # The decoder widens after reading the last code too.
    if next_code < MAX_CODES and next_code + 1 > (1 << code_size) and code_size < MAX_CODE_BITS:
        code_size += 1
    writer.write(end_code, code_size)
    return writer.finish()


def _sub_blocks(payload: bytes) -> bytes:
    out = bytearray()
    for i in range(0, len(payload), 255):
        chunk = payload[i:i + 255]
        out.append(len(chunk))
        out.extend(chunk)
    out.append(0)
    return bytes(out)


def _color_table_bits(n_colors: int) -> int:
    """Smallest N >= 1 with 2**N >= n_colors."""
    bits = 1
    while (1 << bits) < n_colors:
        bits += 1
    return bits


# ---------------------------------------------------------------------------
# Encoder
# ---------------------------------------------------------------------------

class GifEncoder:
    """Accumulates indexed frames and serialises one animated GIF.

    Usage::

        encoder = GifEncoder(320, 240)
        for t in TimeSampler(duration):
            palette, indices = quantize_frame(render(t))
            encoder.append(indices, palette, delay_cs=3, timestamp=t)
        data = encoder.finalize()

    Frames must be appended in strictly increasing timestamp order.
    """

    def __init__(self, width: int, height: int, loop: int = 0,
                 comment: str | None = None) -> None:
        if width <= 0 or height <= 0 or width > 0xFFFF or height > 0xFFFF:
            raise ValueError(f"Invalid canvas size {width}x{height}")
        if not 0 <= loop <= 0xFFFF:
            raise ValueError(f"loop must be in 0..65535, got {loop}")
        self.width = width
        self.height = height
        self.loop = loop
        self.comment = comment
        self.frames: list[Frame] = []
        self._finalized = False

    def __len__(self) -> int:
        return len(self.frames)

    def append(
        self,
        indices: IndexBuffer,
        palette: Palette,
        delay_cs: int,
        *,
        transparent: bool = True,
        disposal: DisposalMode = DisposalMode.RESTORE_BACKGROUND,
        timestamp: float | None = None,
    ) -> Frame:
        """Queue one frame. Order-sensitive; see class docstring."""
        if self._finalized:
            raise EncoderStateError("Cannot append frames after finalize().")
        if (indices.width, indices.height) != (self.width, self.height):
            raise ValueError(
                f"Frame size {indices.width}x{indices.height} "
                f"!= canvas {self.width}x{self.height}"
            )
        if indices.indices and max(indices.indices) >= len(palette):
            raise ValueError(
                f"Palette index {max(indices.indices)} out of range for "
                f"{len(palette)}-entry palette"
            )
        if timestamp is not None:
            last = self.frames[-1].timestamp if self.frames else None
            if last is not None and timestamp <= last:
                raise FrameOrderError(
                    f"Frame at t={timestamp:.4f}s appended after t={last:.4f}s"
                )

        frame = Frame(
            indices=indices,
            palette=palette,
            delay_cs=delay_cs,
            disposal=disposal,
            transparent=transparent,
            timestamp=timestamp,
        )
        self.frames.append(frame)
        return frame

    def finalize(self) -> bytes:
        """Serialise all queued frames into a complete GIF89a file."""
        if self._finalized:
            raise EncoderStateError("finalize() already called.")
        if not self.frames:
            raise EncoderStateError("At least one frame is required.")
        self._finalized = True

        out = bytearray(GIF_HEADER)
        # Logical screen: no global colour table, 8-bit colour resolution.
        out += struct.pack("<HHBBB", self.width, self.height, 0x70, 0, 0)
        out += b"\x21\xff\x0bNETSCAPE2.0\x03\x01" + struct.pack("<H", self.loop) + b"\x00"
        if self.comment:
            out += b"\x21\xfe" + _sub_blocks(self.comment.encode("utf-8"))

        for frame in self.frames:
            out += self._encode_frame(frame)

        out += GIF_TRAILER
        logger.debug("Encoded %d frames into %d bytes", len(self.frames), len(out))
        return bytes(out)

    def _encode_frame(self, frame: Frame) -> bytes:
        bits = _color_table_bits(len(frame.palette))
        table = bytearray()
        for r, g, b in frame.palette.colors:
            table += bytes((r, g, b))
        table += b"\x00" * (3 * (1 << bits) - len(table))

        packed_gce = (frame.disposal.value << 2) | (1 if frame.transparent else 0)
        gce = b"\x21\xf9\x04" + struct.pack(
            "<BHBB", packed_gce, frame.delay_cs, TRANSPARENT_INDEX, 0
        )
        descriptor = b"\x2c" + struct.pack(
            "<HHHHB", 0, 0, self.width, self.height, 0x80 | (bits - 1)
        )
        min_code_size = max(2, bits)
        compressed = lzw_compress(frame.indices.indices, min_code_size)
        return gce + descriptor + bytes(table) + bytes((min_code_size,)) + _sub_blocks(compressed)
