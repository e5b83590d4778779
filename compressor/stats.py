"""
compressor/stats.py

Size statistics and naming shared by image_ops and pdf_ops.
"""

from __future__ import annotations
import base64
from pathlib import PurePath


def compression_ratio(original_size: int, compressed_size: int) -> float:
    """Size reduction in percent, rounded to 2 decimals (negative if the output grew)."""
    if original_size == 0:
        return 0.0
    return round((original_size - compressed_size) / original_size * 100, 2)


def output_file_name(original_name: str, extension: str) -> str:
    """'photo.png' + '.jpg' -> 'compressed_photo.jpg'."""
    stem = PurePath(original_name or "file").stem or "file"
    return f"compressed_{stem}{extension}"


def data_url(mime_type: str, data: bytes) -> str:
    return f"data:{mime_type};base64," + base64.b64encode(data).decode("ascii")
