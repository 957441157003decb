"""
Tests for the GIF89a writer.

Output is decoded with Pillow to check that the LZW stream, colour
tables and control blocks are readable by an independent decoder.
"""

from __future__ import annotations

import io
import struct

import numpy as np
import pytest
from PIL import Image

from svgloop.exceptions import EncoderStateError, FrameOrderError
from svgloop.gif_encoder import (
    GifEncoder,
    delay_to_centiseconds,
    ensure_encoder_available,
    lzw_compress,
)
from svgloop.types import DisposalMode, IndexBuffer, Palette


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _palette(n: int) -> Palette:
    return Palette(colors=tuple(((i * 7) % 256, (i * 13) % 256, (i * 29) % 256)
                                for i in range(n)))


def _random_indices(width: int, height: int, n_colors: int, seed: int = 0) -> IndexBuffer:
    rng = np.random.default_rng(seed)
    data = rng.integers(0, n_colors, size=width * height, dtype=np.uint8)
    return IndexBuffer(width, height, data.tobytes())


def _decode_first_frame(data: bytes) -> np.ndarray:
    img = Image.open(io.BytesIO(data))
    img.seek(0)
    assert img.mode == "P"
    return np.asarray(img)


def _find_gce(data: bytes) -> list[bytes]:
    """Raw graphic control extension payloads, in file order."""
    out = []
    start = 0
    while True:
        pos = data.find(b"\x21\xf9\x04", start)
        if pos < 0:
            return out
        out.append(data[pos + 3:pos + 7])
        start = pos + 8


# ---------------------------------------------------------------------------
# LZW
# ---------------------------------------------------------------------------

class TestLzw:
    @pytest.mark.parametrize(
        "width,height,n_colors",
        [(1, 1, 2), (16, 16, 4), (64, 64, 16), (200, 200, 256)],
    )
    def test_decodes_with_pillow(self, width, height, n_colors):
        indices = _random_indices(width, height, n_colors, seed=width)
        palette = _palette(n_colors)
        encoder = GifEncoder(width, height)
        encoder.append(indices, palette, delay_cs=3, transparent=False)
        decoded = _decode_first_frame(encoder.finalize())
        expected = np.frombuffer(indices.indices, dtype=np.uint8).reshape(height, width)
        np.testing.assert_array_equal(decoded, expected)

    def test_long_runs(self):
        data = bytes([1] * 5000 + [2] * 3000 + [0] * 2000)
        indices = IndexBuffer(100, 100, data)
        encoder = GifEncoder(100, 100)
        encoder.append(indices, _palette(4), delay_cs=3, transparent=False)
        decoded = _decode_first_frame(encoder.finalize())
        np.testing.assert_array_equal(decoded.reshape(-1), np.frombuffer(data, dtype=np.uint8))

    def test_starts_with_clear_code(self):
        out = lzw_compress(b"\x00\x01", 2)
        assert out[0] & 0b111 == 4

    def test_empty(self):
        assert lzw_compress(b"", 2) == bytes([0b00101100])

    def test_invalid_code_size(self):
        with pytest.raises(ValueError):
            lzw_compress(b"\x00", 9)


# ---------------------------------------------------------------------------
# Container structure
# ---------------------------------------------------------------------------

class TestGifStructure:
    def test_header_and_screen(self):
        encoder = GifEncoder(320, 240)
        encoder.append(IndexBuffer(320, 240, bytes(320 * 240)), _palette(2), delay_cs=3)
        data = encoder.finalize()
        assert data[:6] == b"GIF89a"
        assert struct.unpack("<HH", data[6:10]) == (320, 240)
        assert data[10] & 0x80 == 0  # no global colour table
        assert data[-1] == 0x3B

    def test_loop_forever(self):
        encoder = GifEncoder(4, 4)
        encoder.append(IndexBuffer(4, 4, bytes(16)), _palette(2), delay_cs=3)
        data = encoder.finalize()
        assert b"NETSCAPE2.0\x03\x01\x00\x00\x00" in data
        assert Image.open(io.BytesIO(data)).info["loop"] == 0

    def test_graphic_control_blocks(self):
        encoder = GifEncoder(4, 4)
        for i in range(3):
            encoder.append(IndexBuffer(4, 4, bytes(16)), _palette(2), delay_cs=3,
                           timestamp=i / 30)
        gces = _find_gce(encoder.finalize())
        assert len(gces) == 3
        for payload in gces:
            packed, delay, transparent_index = struct.unpack("<BHB", payload)
            assert (packed >> 2) & 0b111 == DisposalMode.RESTORE_BACKGROUND.value
            assert packed & 1 == 1
            assert delay == 3
            assert transparent_index == 0

    def test_frames_and_timing_decode(self):
        encoder = GifEncoder(8, 8)
        for i in range(5):
            encoder.append(_random_indices(8, 8, 4, seed=i), _palette(4), delay_cs=3,
                           timestamp=i / 30)
        img = Image.open(io.BytesIO(encoder.finalize()))
        assert img.n_frames == 5
        assert img.info["duration"] == 30

    def test_transparent_pixels_decode_transparent(self):
        data = bytes([0, 1] * 8)
        encoder = GifEncoder(4, 4)
        encoder.append(IndexBuffer(4, 4, data), Palette(((0, 0, 0), (255, 0, 0))), delay_cs=3)
        img = Image.open(io.BytesIO(encoder.finalize()))
        assert img.info.get("transparency") == 0
        rgba = np.asarray(img.convert("RGBA")).reshape(-1, 4)
        assert list(rgba[0]) == [0, 0, 0, 0]
        assert list(rgba[1]) == [255, 0, 0, 255]

    def test_local_color_table_padded(self):
        encoder = GifEncoder(2, 2)
        encoder.append(IndexBuffer(2, 2, bytes([0, 1, 2, 0])), _palette(3), delay_cs=3)
        data = encoder.finalize()
        pos = data.find(b"\x2c")
        packed = data[pos + 9]
        assert packed & 0x80
        assert (packed & 0b111) + 1 == 2  # 4-entry table

    def test_comment_block(self):
        encoder = GifEncoder(2, 2, comment="Title: Spinner")
        encoder.append(IndexBuffer(2, 2, bytes(4)), _palette(2), delay_cs=3)
        img = Image.open(io.BytesIO(encoder.finalize()))
        assert img.info["comment"] == b"Title: Spinner"


# ---------------------------------------------------------------------------
# Append / finalize contract
# ---------------------------------------------------------------------------

class TestAppendContract:
    def _frame(self):
        return IndexBuffer(2, 2, bytes(4))

    def test_out_of_order_rejected(self):
        encoder = GifEncoder(2, 2)
        encoder.append(self._frame(), _palette(2), 3, timestamp=0.1)
        with pytest.raises(FrameOrderError):
            encoder.append(self._frame(), _palette(2), 3, timestamp=0.05)

    def test_duplicate_timestamp_rejected(self):
        encoder = GifEncoder(2, 2)
        encoder.append(self._frame(), _palette(2), 3, timestamp=0.0)
        with pytest.raises(FrameOrderError):
            encoder.append(self._frame(), _palette(2), 3, timestamp=0.0)

    def test_increasing_accepted(self):
        encoder = GifEncoder(2, 2)
        for t in (0.0, 1 / 30, 2 / 30):
            encoder.append(self._frame(), _palette(2), 3, timestamp=t)
        assert len(encoder) == 3
        assert [f.timestamp for f in encoder.frames] == [0.0, 1 / 30, 2 / 30]

    def test_zero_delay_rejected(self):
        with pytest.raises(ValueError):
            GifEncoder(2, 2).append(self._frame(), _palette(2), 0)

    def test_size_mismatch(self):
        with pytest.raises(ValueError):
            GifEncoder(3, 3).append(self._frame(), _palette(2), 3)

    def test_index_out_of_range(self):
        with pytest.raises(ValueError):
            GifEncoder(2, 2).append(IndexBuffer(2, 2, bytes([0, 1, 2, 3])), _palette(2), 3)

    def test_finalize_without_frames(self):
        with pytest.raises(EncoderStateError):
            GifEncoder(2, 2).finalize()

    def test_append_after_finalize(self):
        encoder = GifEncoder(2, 2)
        encoder.append(self._frame(), _palette(2), 3)
        encoder.finalize()
        with pytest.raises(EncoderStateError):
            encoder.append(self._frame(), _palette(2), 3)

    def test_degenerate_palette_frame(self):
        encoder = GifEncoder(4, 4)
        encoder.append(IndexBuffer(4, 4, bytes(16)), Palette(((0, 0, 0),), degenerate=True), 3)
        img = Image.open(io.BytesIO(encoder.finalize()))
        rgba = np.asarray(img.convert("RGBA"))
        assert np.all(rgba[..., 3] == 0)

    @pytest.mark.parametrize("size", [(0, 1), (1, 0), (70000, 1)])
    def test_invalid_canvas(self, size):
        with pytest.raises(ValueError):
            GifEncoder(*size)


class TestHelpers:
    def test_delay_for_30fps(self):
        assert delay_to_centiseconds(1000 / 30) == 3

    def test_delay_minimum(self):
        assert delay_to_centiseconds(1) == 1

    def test_encoder_available(self):
        ensure_encoder_available()
