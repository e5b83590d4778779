"""
compressor/codecs.py

Pillow-backed codec layer:
- `init_codecs()`: one-time start-up (pixel limit + feature probe)
- `decode()` / `inspect()`: read an upload, detect its container variant
- `encode()`: write an image following an OutputPolicy and a native quality

The policy itself is decided in formats.py; this module only applies it.
"""

from __future__ import annotations

import io
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional

from loguru import logger
from PIL import Image, UnidentifiedImageError, features

from . import engine_config
from .exceptions import DecodeError, EncodeError
from .formats import InputFormat, OutputContainer, OutputPolicy

_init_lock = threading.Lock()
_capabilities: Optional[Dict[str, bool]] = None

_PROBED_FEATURES = ("jpg", "zlib", "libtiff", "webp")

_MODE_BPP: Dict[str, int] = {
    "1": 1,
    "L": 8, "P": 8,
    "LA": 16, "La": 16, "PA": 16,
    "I;16": 16, "I;16B": 16, "I;16L": 16, "I;16N": 16,
    "RGB": 24, "YCbCr": 24, "LAB": 24, "HSV": 24,
    "RGBA": 32, "RGBa": 32, "RGBX": 32, "CMYK": 32, "I": 32, "F": 32,
}

# luma (h, v) sampling factors -> variant; 4:4:4 and 4:2:0 are plain JPEG
_JPEG_SUBSAMPLING = {(2, 1): InputFormat.JPEG_422, (4, 1): InputFormat.JPEG_411}
_TIFF_SUBSAMPLING = {(2, 1): InputFormat.TIF_JPEG_422, (4, 1): InputFormat.TIF_JPEG_411}

_TIFF_COMPRESSION_NAMES = {
    "raw": "None",
    "tiff_lzw": "Lzw",
    "tiff_deflate": "Deflate",
    "tiff_adobe_deflate": "Deflate",
    "packbits": "PackBits",
    "jpeg": "Jpeg",
    "tiff_jpeg": "Jpeg",
    "group3": "CcittGroup3",
    "group4": "CcittGroup4",
    "tiff_ccitt": "Ccitt",
}

_WEBP_CHUNKS = {b"VP8 ": "WebpLossy", b"VP8L": "WebpLossless", b"VP8X": "WebpExtended"}

_PIL_FORMAT = {
    OutputContainer.JPEG: "JPEG",
    OutputContainer.PNG: "PNG",
    OutputContainer.GIF: "GIF",
    OutputContainer.BMP: "BMP",
    OutputContainer.TIF_JPEG: "TIFF",
    OutputContainer.WEBP: "WEBP",
}


@dataclass
class DecodedImage:
    image: Image.Image
    input_format: InputFormat
    bits_per_pixel: int
    frame_count: int = 1


@dataclass
class ImageInfo:
    width: int
    height: int
    bits_per_pixel: int
    input_format: InputFormat
    compression_type: str


# ===========================
#   START-UP
# ===========================
def init_codecs() -> Dict[str, bool]:
    """Apply the decompression-bomb limit and probe Pillow's codecs, once per process.

    Safe to call from several threads; later calls return the first result.

    Returns:
        Dict[str, bool]: feature name -> available.
    """
    global _capabilities
    with _init_lock:
        if _capabilities is not None:
            return dict(_capabilities)

        Image.MAX_IMAGE_PIXELS = engine_config.MAX_IMAGE_PIXELS
        caps = {name: bool(features.check(name)) for name in _PROBED_FEATURES}

        missing = [name for name, ok in caps.items() if not ok]
        if missing:
            logger.warning("Pillow built without: {}; those formats will fail to encode", ", ".join(missing))
        else:
            logger.info("Codecs ready: {}", ", ".join(caps))

        _capabilities = caps
        return dict(caps)


# ===========================
#   DETECTION
# ===========================
def bits_per_pixel(img: Image.Image) -> int:
    return _MODE_BPP.get(img.mode, len(img.getbands()) * 8)


def _has_alpha(img: Image.Image) -> bool:
    if img.mode in ("RGBA", "RGBa", "LA", "La", "PA"):
        return True
    return img.mode == "P" and "transparency" in img.info


def _jpeg_variant(img: Image.Image) -> InputFormat:
    layers = getattr(img, "layer", None) or []
    if not layers:
        return InputFormat.JPEG
    _, h, v, _ = layers[0]
    return _JPEG_SUBSAMPLING.get((h, v), InputFormat.JPEG)


def _tiff_variant(img: Image.Image) -> InputFormat:
    if img.info.get("compression") not in ("jpeg", "tiff_jpeg"):
        return InputFormat.TIF
    tags: Any = getattr(img, "tag_v2", {})
    subsampling = tags.get(530)  # YCbCrSubSampling
    if subsampling:
        return _TIFF_SUBSAMPLING.get(tuple(subsampling), InputFormat.TIF_JPEG)
    return InputFormat.TIF_JPEG


def detect_input_format(img: Image.Image) -> InputFormat:
    """Map Pillow's format name (plus container details) to an InputFormat."""
    fmt = (img.format or "").upper()

    if fmt in ("JPEG", "MPO"):
        return _jpeg_variant(img)
    if fmt == "PNG":
        return InputFormat.PNG
    if fmt == "GIF":
        return InputFormat.GIF
    if fmt in ("BMP", "DIB"):
        # BI_RLE8 = 1, BI_RLE4 = 2
        return InputFormat.BMP_RLE if img.info.get("compression") in (1, 2) else InputFormat.BMP
    if fmt == "TIFF":
        return _tiff_variant(img)
    if fmt == "WEBP":
        return InputFormat.WEBP
    return InputFormat.UNKNOWN


def _compression_type(img: Image.Image, input_format: InputFormat, data: bytes) -> str:
    if input_format in (InputFormat.JPEG, InputFormat.JPEG_411, InputFormat.JPEG_422):
        progressive = img.info.get("progressive") or img.info.get("progression")
        return "JpegProgressive" if progressive else "JpegBaseline"
    if input_format is InputFormat.PNG:
        return "Deflate"
    if input_format is InputFormat.GIF:
        return "Lzw"
    if input_format is InputFormat.BMP_RLE:
        return "Rle"
    if input_format is InputFormat.BMP:
        return "None"
    if input_format.value.startswith("Tif"):
        raw = str(img.info.get("compression", "raw"))
        return _TIFF_COMPRESSION_NAMES.get(raw, raw)
    if input_format is InputFormat.WEBP:
        return _WEBP_CHUNKS.get(data[12:16], "Webp")
    return "Unknown"


# ===========================
#   DECODE / INSPECT
# ===========================
def decode(data: bytes) -> DecodedImage:
    """Fully decode an upload.

    Raises:
        DecodeError: bytes are not a readable image (or exceed the pixel limit).
    """
    try:
        img = Image.open(io.BytesIO(data))
        input_format = detect_input_format(img)
        frame_count = int(getattr(img, "n_frames", 1))
        img.load()
    except (UnidentifiedImageError, OSError, EOFError, SyntaxError, ValueError, Image.DecompressionBombError) as e:
        raise DecodeError(f"Unsupported or corrupt image: {e}") from e

    return DecodedImage(
        image=img,
        input_format=input_format,
        bits_per_pixel=bits_per_pixel(img),
        frame_count=frame_count,
    )


def inspect(data: bytes) -> ImageInfo:
    """Read header information only (no pixel decode)."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            input_format = detect_input_format(img)
            w, h = img.size
            return ImageInfo(
                width=int(w),
                height=int(h),
                bits_per_pixel=bits_per_pixel(img),
                input_format=input_format,
                compression_type=_compression_type(img, input_format, data),
            )
    except (UnidentifiedImageError, OSError, EOFError, SyntaxError, ValueError, Image.DecompressionBombError) as e:
        raise DecodeError(f"Unsupported or corrupt image: {e}") from e


# ===========================
#   ENCODE
# ===========================
def factor_to_pillow_quality(factor: int) -> int:
    """Inverted 2..255 JPEG factor -> Pillow's 1..100 quality."""
    return max(1, min(100, round((257 - factor) / 2.53)))


def _flatten(img: Image.Image, target_mode: str) -> Image.Image:
    """Drop alpha onto a white background, then convert to `target_mode`."""
    if _has_alpha(img):
        rgba = img.convert("RGBA")
        background = Image.new("RGB", img.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[-1])
        img = background
    if img.mode != target_mode:
        img = img.convert(target_mode)
    return img


def _prepare(img: Image.Image, policy: OutputPolicy) -> Image.Image:
    """Convert the image to a mode the target encoder accepts at the policy's depth."""
    container = policy.container
    mode = img.mode

    if container is OutputContainer.JPEG:
        # Pillow has no 12-bit JPEG writer: 12 bpp goes out as 8-bit grayscale
        return _flatten(img, "L" if policy.bits_per_pixel <= 12 else "RGB")

    if container is OutputContainer.TIF_JPEG:
        gray = mode in ("1", "L", "LA", "La", "I", "F") or mode.startswith("I;16")
        return _flatten(img, "L" if gray else "RGB")

    if container is OutputContainer.GIF:
        if mode in ("P", "L"):
            return img
        if _has_alpha(img):
            return img.convert("RGBA").quantize(colors=256, method=Image.Quantize.FASTOCTREE)
        return img.convert("RGB").quantize(colors=256)

    if container is OutputContainer.BMP:
        if mode in ("1", "L", "P", "RGB", "RGBA"):
            return img
        return img.convert("RGBA" if _has_alpha(img) else "RGB")

    if container is OutputContainer.PNG:
        if mode in ("1", "L", "LA", "I", "I;16", "P", "RGB", "RGBA"):
            return img
        return img.convert("RGBA" if _has_alpha(img) else "RGB")

    # WEBP
    if mode in ("RGB", "RGBA"):
        return img
    return img.convert("RGBA" if _has_alpha(img) else "RGB")


def _save_params(policy: OutputPolicy, native_quality: Optional[int]) -> Dict[str, Any]:
    container = policy.container
    params: Dict[str, Any] = {"format": _PIL_FORMAT[container]}
    if container is OutputContainer.TIF_JPEG:
        params["compression"] = "jpeg"

    if native_quality is None:
        return params

    if container is OutputContainer.JPEG:
        params.update(quality=factor_to_pillow_quality(native_quality), optimize=True)
    elif container is OutputContainer.TIF_JPEG:
        params.update(quality=factor_to_pillow_quality(native_quality))
    elif container is OutputContainer.PNG:
        # no optimize=True here: it would force compress_level 9
        params.update(compress_level=native_quality)
    elif container is OutputContainer.WEBP:
        params.update(quality=native_quality)
    return params


def encode(decoded: DecodedImage, policy: OutputPolicy, native_quality: Optional[int]) -> bytes:
    """Write `decoded` in the policy's container.

    Animated GIF/WebP keep every frame; everything else is a single frame.

    Raises:
        EncodeError: the encoder rejected the image or is not available.
    """
    params = _save_params(policy, native_quality)
    animated = decoded.frame_count > 1 and policy.container in (OutputContainer.GIF, OutputContainer.WEBP)

    try:
        if animated:
            img = decoded.image
            params["save_all"] = True
            if "loop" in img.info:
                params["loop"] = img.info["loop"]
        else:
            img = _prepare(decoded.image, policy)

        buf = io.BytesIO()
        img.save(buf, **params)
        return buf.getvalue()
    except (OSError, ValueError, KeyError) as e:
        raise EncodeError(f"Could not encode {policy.container.value}: {e}") from e
