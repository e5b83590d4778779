"""
image_ops.py

Image compression pipeline:
load -> output policy -> native quality -> encode -> statistics -> result.
"""

from __future__ import annotations

from loguru import logger

from . import codecs
from .formats import resolve_encoder_quality, resolve_output_policy
from .schemas import CompressionResult, ImageAnalysisResult
from .stats import compression_ratio, data_url, output_file_name


def compress_image(data: bytes, filename: str, quality: int) -> CompressionResult:
    """Re-encode an image at the given public quality.

    The output container follows the input (see formats.resolve_output_policy);
    unknown inputs become JPEG.

    Args:
        data (bytes): Uploaded image.
        filename (str): Original file name (used for the output name).
        quality (int): 1-100, higher = better quality / larger file.

    Returns:
        CompressionResult: Statistics plus the compressed image as a data URL.
    """
    decoded = codecs.decode(data)
    policy = resolve_output_policy(decoded.input_format, decoded.bits_per_pixel)
    native = resolve_encoder_quality(policy.container, quality)

    logger.info(
        "Compressing image: Format {} -> {}, Quality {}%, BPP: {} -> {}",
        decoded.input_format.value, policy.container.value, quality,
        decoded.bits_per_pixel, policy.bits_per_pixel,
    )

    out = codecs.encode(decoded, policy, native)

    original_size = len(data)
    compressed_size = len(out)
    ratio = compression_ratio(original_size, compressed_size)

    logger.info(
        "Compressed image: {}, Original: {} bytes, Compressed: {} bytes, Ratio: {:.2f}%",
        filename, original_size, compressed_size, ratio,
    )

    return CompressionResult(
        file_name=output_file_name(filename, policy.file_extension),
        original_size=original_size,
        compressed_size=compressed_size,
        compression_ratio=ratio,
        quality=quality,
        format=policy.container.value,
        image_data=data_url(policy.mime_type, out),
    )


def analyze_image(data: bytes, filename: str) -> ImageAnalysisResult:
    info = codecs.inspect(data)
    return ImageAnalysisResult(
        file_name=filename,
        original_size=len(data),
        width=info.width,
        height=info.height,
        bits_per_pixel=info.bits_per_pixel,
        format=info.input_format.value,
        compression_type=info.compression_type,
    )
