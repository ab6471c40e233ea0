"""Sprite to monochrome bitmap conversion.

The display firmware draws with ``drawXBitmap``-style routines that expect
whole-byte scanlines: each byte holds 8 horizontal pixels, most significant
bit first, rows stored top to bottom. Conversion is:

1. Fit the source dimensions inside the display box, preserving aspect ratio.
2. Round the width up to a multiple of 8.
3. Contain-resize into that box, padding with fully transparent pixels.
4. Set a bit only where the pixel is opaque (alpha > 128) and dark (luma < 180).

Padding columns introduced by the byte alignment are transparent and therefore
always render as unset bits.
"""

from __future__ import annotations

import io
import logging
import math
from dataclasses import dataclass
from typing import List, Tuple

from PIL import Image, UnidentifiedImageError

from . import constants

LOGGER = logging.getLogger(__name__)

_ERROR_PREFIX = "failed to convert image to bitmap"

TRANSPARENT = (0, 0, 0, 0)


class BitmapConversionError(Exception):
    """Raised when an image cannot be decoded or converted."""


@dataclass(frozen=True, slots=True)
class Bitmap:
    """Packed 1-bit image ready for the OLED display."""

    width: int
    """Pixel width, always a multiple of 8."""

    height: int
    """Pixel height (number of scanlines)."""

    data: bytes
    """Row-major scanlines, ``bytes_per_row`` bytes each, MSB = leftmost pixel."""

    def __post_init__(self) -> None:
        if self.width % 8 != 0:
            raise ValueError(f"bitmap width {self.width} is not byte aligned")
        expected = self.height * (self.width // 8)
        if len(self.data) != expected:
            raise ValueError(
                f"bitmap data holds {len(self.data)} bytes, expected {expected}"
            )

    @property
    def bytes_per_row(self) -> int:
        return self.width // 8

    def pixel(self, x: int, y: int) -> bool:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"pixel ({x}, {y}) outside {self.width}x{self.height}")
        byte = self.data[y * self.bytes_per_row + x // 8]
        return bool(byte & (0x80 >> (x % 8)))

    def as_payload(self) -> List[int]:
        """Return the data as a list of ints for JSON envelopes."""
        return list(self.data)

    def render(self, on: str = "#", off: str = ".") -> str:
        """Render the bitmap as text, one line per scanline."""
        rows = []
        for y in range(self.height):
            rows.append(
                "".join(on if self.pixel(x, y) else off for x in range(self.width))
            )
        return "\n".join(rows)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def compute_target_size(
    width: int, height: int, max_width: int, max_height: int
) -> Tuple[int, int]:
    """Scale ``(width, height)`` to fit inside the box, preserving aspect ratio.

    Dimensions that already fit are returned unchanged. Otherwise the limiting
    side is picked by comparing the image aspect ratio with the box's, and the
    other side is re-checked in case rounding pushed it over.
    """

    if width <= 0 or height <= 0:
        raise ValueError(f"invalid image dimensions {width}x{height}")

    if width <= max_width and height <= max_height:
        return width, height

    aspect = width / height
    if aspect > max_width / max_height:
        target_width = max_width
        target_height = _round_half_up(max_width / aspect)
        if target_height > max_height:
            target_height = max_height
            target_width = _round_half_up(max_height * aspect)
    else:
        target_height = max_height
        target_width = _round_half_up(max_height * aspect)
        if target_width > max_width:
            target_width = max_width
            target_height = _round_half_up(max_width / aspect)

    # Extremely thin images would otherwise collapse to zero pixels
    return max(1, target_width), max(1, target_height)


def byte_aligned(width: int) -> int:
    return -(-width // 8) * 8


def decode_image(data: bytes) -> Image.Image:
    """Decode raw image bytes into a Pillow image."""

    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        OSError,
        ValueError,
    ) as exc:
        raise BitmapConversionError(f"{_ERROR_PREFIX}: {exc}") from exc
    return image


def _contain(image: Image.Image, size: Tuple[int, int]) -> Image.Image:
    """Scale ``image`` to fit inside ``size`` and centre it on a transparent canvas."""

    box_width, box_height = size
    scale = min(box_width / image.width, box_height / image.height)
    fitted = (
        max(1, min(box_width, _round_half_up(image.width * scale))),
        max(1, min(box_height, _round_half_up(image.height * scale))),
    )
    if fitted != image.size:
        image = image.resize(fitted, Image.Resampling.LANCZOS)

    canvas = Image.new("RGBA", size, TRANSPARENT)
    canvas.paste(
        image, ((box_width - fitted[0]) // 2, (box_height - fitted[1]) // 2)
    )
    return canvas


def _pack_rows(alpha: bytes, luma: bytes, width: int, height: int) -> bytes:
    packed = bytearray()
    for y in range(height):
        row_start = y * width
        for x in range(0, width, 8):
            byte = 0
            for bit in range(8):
                index = row_start + x + bit
                if (
                    alpha[index] > constants.ALPHA_THRESHOLD
                    and luma[index] < constants.LUMA_THRESHOLD
                ):
                    byte |= 0x80 >> bit
            packed.append(byte)
    return bytes(packed)


def convert_to_bitmap(
    image: Image.Image,
    max_width: int = constants.DISPLAY_MAX_WIDTH,
    max_height: int = constants.DISPLAY_MAX_HEIGHT,
) -> Bitmap:
    """Convert a decoded image into a packed monochrome bitmap."""

    width, height = compute_target_size(
        image.width, image.height, max_width, max_height
    )
    aligned_width = byte_aligned(width)

    rgba = image if image.mode == "RGBA" else image.convert("RGBA")
    padded = _contain(rgba, (aligned_width, height))

    alpha = padded.getchannel("A").tobytes()
    luma = padded.convert("L").tobytes()

    bitmap = Bitmap(
        width=aligned_width,
        height=height,
        data=_pack_rows(alpha, luma, aligned_width, height),
    )
    LOGGER.debug(
        "Converted %dx%d image to %dx%d bitmap (%d bytes)",
        image.width,
        image.height,
        bitmap.width,
        bitmap.height,
        len(bitmap.data),
    )
    return bitmap


def convert_image_bytes(
    data: bytes,
    max_width: int = constants.DISPLAY_MAX_WIDTH,
    max_height: int = constants.DISPLAY_MAX_HEIGHT,
) -> Bitmap:
    """Decode ``data`` and convert it, wrapping every failure in one error type."""

    image = decode_image(data)
    try:
        return convert_to_bitmap(image, max_width, max_height)
    except (Image.DecompressionBombError, OSError, ValueError) as exc:
        raise BitmapConversionError(f"{_ERROR_PREFIX}: {exc}") from exc
