"""
compressor/validation.py

Upload gating done before any decoding: presence, size, extension and the
compress parameters. Every failure raises FileValidationError with a message
fit for the client.
"""

from __future__ import annotations
from pathlib import PurePath
from typing import Iterable

from loguru import logger

from . import engine_config
from .engine_config import PDF_MODES
from .exceptions import FileValidationError


def _extension(filename: str | None) -> str:
    return PurePath(filename or "").suffix.lower()


def _validate(data: bytes, filename: str | None, max_size: int, allowed: Iterable[str], type_msg: str) -> None:
    if not data:
        raise FileValidationError("No file uploaded")

    if len(data) > max_size:
        raise FileValidationError(f"File size exceeds maximum limit of {max_size // (1024 * 1024)}MB")

    if _extension(filename) not in allowed:
        raise FileValidationError(type_msg)

    logger.debug("File validated: {}, Size: {} bytes", filename, len(data))


def validate_image_file(data: bytes, filename: str | None) -> None:
    allowed = engine_config.ALLOWED_IMAGE_EXTENSIONS
    _validate(
        data, filename, engine_config.MAX_IMAGE_SIZE, allowed,
        f"Invalid file type. Allowed types: {', '.join(allowed)}",
    )


def validate_pdf_file(data: bytes, filename: str | None) -> None:
    _validate(
        data, filename, engine_config.MAX_PDF_SIZE, engine_config.ALLOWED_PDF_EXTENSIONS,
        "Invalid file type. Only PDF files are supported",
    )


def validate_quality(quality: int) -> int:
    if quality < 1 or quality > 100:
        raise FileValidationError("Quality must be between 1 and 100")
    return quality


def parse_pdf_mode(value: str | None) -> str:
    """Case-insensitive match against PDF_MODES; returns the canonical name."""
    wanted = (value or engine_config.DEFAULT_PDF_MODE).strip().lower()
    for name in PDF_MODES:
        if name.lower() == wanted:
            return name
    raise FileValidationError(f"Invalid quality mode. Valid options: {', '.join(PDF_MODES)}")


def validate_custom_params(dpi: int | None, jpeg_quality: int | None) -> None:
    if dpi is not None and not 36 <= dpi <= 600:
        raise FileValidationError("DPI must be between 36 and 600")
    if jpeg_quality is not None and not 1 <= jpeg_quality <= 100:
        raise FileValidationError("JPEG quality must be between 1 and 100")
