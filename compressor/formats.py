"""
compressor/formats.py

Output policy per input format, and conversion of the public 1-100 quality
into the native parameter of each encoder family.

Everything here is pure: no I/O, no state, safe from any thread.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class InputFormat(Enum):
    """Container detected when decoding an upload."""

    JPEG = "Jpeg"
    JPEG_411 = "Jpeg411"
    JPEG_422 = "Jpeg422"
    PNG = "Png"
    GIF = "Gif"
    BMP = "Bmp"
    BMP_RLE = "BmpRle"
    TIF = "Tif"
    TIF_JPEG = "TifJpeg"
    TIF_JPEG_411 = "TifJpeg411"
    TIF_JPEG_422 = "TifJpeg422"
    WEBP = "Webp"
    UNKNOWN = "Unknown"


class OutputContainer(Enum):
    """Container the compressed image is written as."""

    JPEG = "Jpeg"
    PNG = "Png"
    GIF = "Gif"
    BMP = "Bmp"
    TIF_JPEG = "TifJpeg"
    WEBP = "Webp"


@dataclass(frozen=True)
class OutputPolicy:
    container: OutputContainer
    mime_type: str
    file_extension: str
    bits_per_pixel: int


# (container, mime, extension); bpp rule is applied in resolve_output_policy
_JPEG_TRIPLE = (OutputContainer.JPEG, "image/jpeg", ".jpg")

_POLICY_TABLE: Dict[InputFormat, tuple] = {
    InputFormat.PNG:          (OutputContainer.PNG, "image/png", ".png"),
    InputFormat.JPEG:         _JPEG_TRIPLE,
    InputFormat.JPEG_411:     _JPEG_TRIPLE,
    InputFormat.JPEG_422:     _JPEG_TRIPLE,
    InputFormat.GIF:          (OutputContainer.GIF, "image/gif", ".gif"),
    InputFormat.BMP:          (OutputContainer.BMP, "image/bmp", ".bmp"),
    InputFormat.BMP_RLE:      (OutputContainer.BMP, "image/bmp", ".bmp"),
    InputFormat.TIF:          (OutputContainer.TIF_JPEG, "image/tiff", ".tif"),
    InputFormat.TIF_JPEG:     (OutputContainer.TIF_JPEG, "image/tiff", ".tif"),
    InputFormat.TIF_JPEG_411: (OutputContainer.TIF_JPEG, "image/tiff", ".tif"),
    InputFormat.TIF_JPEG_422: (OutputContainer.TIF_JPEG, "image/tiff", ".tif"),
    InputFormat.WEBP:         (OutputContainer.WEBP, "image/webp", ".webp"),
}


def normalize_jpeg_bits_per_pixel(bits_per_pixel: int) -> int:
    """JPEG has no alpha: grayscale stays 8, 12-bit stays 12, the rest is 24-bit RGB."""
    if bits_per_pixel <= 8:
        return 8
    if bits_per_pixel == 12:
        return 12
    return 24


def resolve_output_policy(input_format: Any, bits_per_pixel: int) -> OutputPolicy:
    """Decide container, MIME type, extension and bit depth for an input format.

    Total over any value: formats outside the table (including UNKNOWN or
    values that are not InputFormat members at all) get the JPEG default.

    Args:
        input_format (InputFormat): Detected input container.
        bits_per_pixel (int): Bit depth of the decoded image.

    Returns:
        OutputPolicy: Policy to encode with.
    """
    container, mime, ext = _POLICY_TABLE.get(input_format, _JPEG_TRIPLE)

    if container is OutputContainer.JPEG:
        bpp = normalize_jpeg_bits_per_pixel(bits_per_pixel)
    elif container is OutputContainer.GIF:
        bpp = 8
    else:
        bpp = bits_per_pixel

    return OutputPolicy(container=container, mime_type=mime, file_extension=ext, bits_per_pixel=bpp)


def jpeg_quality_factor(quality: int) -> int:
    """Public quality -> inverted 2..255 JPEG factor (smaller = better).

    round(257 - q * 2.53) with half-up rounding, done in integers
    (25700 - 253q) / 100 so float error never moves a .5 boundary.
    """
    raw = (25700 - 253 * quality + 50) // 100
    return max(2, min(255, raw))


def png_compress_level(quality: int) -> int:
    """Public quality -> zlib level 9..0 (quality 1 -> 9, quality 100 -> 0)."""
    return 9 - ((quality - 1) * 9 // 99)


def resolve_encoder_quality(container: OutputContainer, quality: int) -> Optional[int]:
    """Convert the public 1-100 quality into the encoder's native parameter.

    Out-of-range input is clamped into [1, 100] first so the function never fails.

    Args:
        container (OutputContainer): Container chosen by resolve_output_policy.
        quality (int): Public quality, higher = better.

    Returns:
        int | None: Native value, or None for encoders without a quality knob (GIF, BMP).
    """
    q = max(1, min(100, int(quality)))

    if container is OutputContainer.PNG:
        return png_compress_level(q)
    if container in (OutputContainer.JPEG, OutputContainer.TIF_JPEG):
        return jpeg_quality_factor(q)
    if container is OutputContainer.WEBP:
        return q
    return None
