"""
Tests for the Pillow codec layer: detection, decode/encode per container, start-up.
"""
import io
import struct

import pytest
from PIL import Image, features

from compressor import codecs, engine_config
from compressor.exceptions import DecodeError
from compressor.formats import InputFormat, OutputContainer, OutputPolicy, resolve_encoder_quality

from conftest import gradient_image, image_bytes, noise_image, save

needs_webp = pytest.mark.skipif(not features.check("webp"), reason="Pillow built without WebP")
needs_libtiff = pytest.mark.skipif(not features.check("libtiff"), reason="Pillow built without libtiff")


def reopen(data):
    img = Image.open(io.BytesIO(data))
    img.load()
    return img


# ---------- detection ----------
@pytest.mark.parametrize("fmt,expected", [
    ("PNG", InputFormat.PNG),
    ("GIF", InputFormat.GIF),
    ("BMP", InputFormat.BMP),
    ("TIFF", InputFormat.TIF),
    ("PPM", InputFormat.UNKNOWN),
])
def test_detects_container(fmt, expected):
    assert codecs.decode(image_bytes(fmt)).input_format is expected


@needs_webp
def test_detects_webp():
    assert codecs.decode(image_bytes("WEBP")).input_format is InputFormat.WEBP


@pytest.mark.parametrize("subsampling,expected", [
    (0, InputFormat.JPEG),      # 4:4:4
    (1, InputFormat.JPEG_422),
    (2, InputFormat.JPEG),      # 4:2:0
])
def test_detects_jpeg_subsampling(subsampling, expected):
    data = image_bytes("JPEG", size=(32, 32), subsampling=subsampling)
    assert codecs.decode(data).input_format is expected


def with_luma_sampling(sampling_byte):
    """Baseline JPEG whose SOF0 luma sampling factors are rewritten to `sampling_byte` (h << 4 | v)."""
    data = bytearray(image_bytes("JPEG", size=(32, 32), subsampling=0))
    sof = data.index(b"\xff\xc0")
    # marker(2) length(2) precision(1) height(2) width(2) ncomp(1) id(1) -> sampling
    data[sof + 11] = sampling_byte
    return bytes(data)


@pytest.mark.parametrize("sampling_byte,expected", [
    (0x11, InputFormat.JPEG),
    (0x21, InputFormat.JPEG_422),
    (0x22, InputFormat.JPEG),
    (0x41, InputFormat.JPEG_411),
])
def test_detects_jpeg_variant_from_luma_sampling(sampling_byte, expected):
    img = Image.open(io.BytesIO(with_luma_sampling(sampling_byte)))
    assert codecs.detect_input_format(img) is expected


def test_inspect_jpeg_411():
    info = codecs.inspect(with_luma_sampling(0x41))
    assert info.input_format is InputFormat.JPEG_411
    assert info.compression_type == "JpegBaseline"


def rle8_bmp():
    """4x2 BI_RLE8 bitmap with a red/blue palette."""
    pixels = b"\x04\x00\x00\x00" + b"\x04\x01\x00\x00" + b"\x00\x01"
    palette = b"\x00\x00\xff\x00" + b"\xff\x00\x00\x00"
    offset = 14 + 40 + len(palette)
    info_header = struct.pack("<IiiHHIIiiII", 40, 4, 2, 1, 8, 1, len(pixels), 2835, 2835, 2, 0)
    file_header = b"BM" + struct.pack("<IHHI", offset + len(pixels), 0, 0, offset)
    return file_header + info_header + palette + pixels


def test_detects_bmp_rle():
    assert codecs.decode(rle8_bmp()).input_format is InputFormat.BMP_RLE


def test_inspect_bmp_rle():
    info = codecs.inspect(rle8_bmp())
    assert info.input_format is InputFormat.BMP_RLE
    assert info.compression_type == "Rle"
    assert (info.width, info.height) == (4, 2)


def jpeg_tagged_tiff(subsampling):
    """TIFF header that declares JPEG compression (259 = 7) and a YCbCrSubSampling tag (530)."""
    data = bytearray(save(gradient_image((16, 16)), "TIFF", tiffinfo={530: subsampling}))
    # little-endian IFD entry: tag 259, type SHORT, count 1, value 1 (raw)
    entry = b"\x03\x01\x03\x00\x01\x00\x00\x00\x01\x00"
    at = data.index(entry)
    data[at + 8] = 7
    return bytes(data)


@pytest.mark.parametrize("subsampling,expected", [
    ((2, 1), InputFormat.TIF_JPEG_422),
    ((4, 1), InputFormat.TIF_JPEG_411),
    ((2, 2), InputFormat.TIF_JPEG),
    ((1, 1), InputFormat.TIF_JPEG),
])
def test_detects_tiff_jpeg_variant_from_subsampling_tag(subsampling, expected):
    img = Image.open(io.BytesIO(jpeg_tagged_tiff(subsampling)))
    assert img.info["compression"] == "jpeg"
    assert codecs.detect_input_format(img) is expected


def test_tiff_subsampling_tag_ignored_without_jpeg():
    data = save(gradient_image((16, 16)), "TIFF", tiffinfo={530: (2, 1)})
    assert codecs.detect_input_format(Image.open(io.BytesIO(data))) is InputFormat.TIF


@needs_libtiff
def test_detects_tiff_with_jpeg_compression():
    data = save(gradient_image((64, 64)), "TIFF", compression="jpeg")
    assert codecs.decode(data).input_format.value.startswith("TifJpeg")


@pytest.mark.parametrize("mode,bpp", [("1", 1), ("L", 8), ("P", 8), ("LA", 16), ("RGB", 24), ("RGBA", 32), ("CMYK", 32)])
def test_bits_per_pixel(mode, bpp):
    assert codecs.bits_per_pixel(Image.new(mode, (4, 4))) == bpp


def test_decode_rejects_garbage():
    with pytest.raises(DecodeError):
        codecs.decode(b"definitely not an image")


def test_decode_rejects_empty():
    with pytest.raises(DecodeError):
        codecs.decode(b"")


# ---------- encode ----------
def jpeg_policy(bpp=24):
    return OutputPolicy(OutputContainer.JPEG, "image/jpeg", ".jpg", bpp)


def test_jpeg_flattens_alpha_on_white():
    decoded = codecs.decode(image_bytes("PNG", mode="RGBA", color=(0, 0, 0, 0)))
    out = reopen(codecs.encode(decoded, jpeg_policy(), resolve_encoder_quality(OutputContainer.JPEG, 90)))
    assert out.format == "JPEG"
    assert out.mode == "RGB"
    assert all(channel > 240 for channel in out.getpixel((10, 10)))


def test_jpeg_grayscale_stays_grayscale():
    decoded = codecs.decode(image_bytes("PNG", mode="L", color=128))
    out = reopen(codecs.encode(decoded, jpeg_policy(8), 67))
    assert out.mode == "L"


def test_jpeg_lower_quality_gives_smaller_file():
    decoded = codecs.decode(save(noise_image(), "PNG"))
    low = codecs.encode(decoded, jpeg_policy(), resolve_encoder_quality(OutputContainer.JPEG, 10))
    high = codecs.encode(decoded, jpeg_policy(), resolve_encoder_quality(OutputContainer.JPEG, 90))
    assert len(low) < len(high)


def test_png_level_changes_size_not_pixels():
    decoded = codecs.decode(save(gradient_image(), "PNG"))
    policy = OutputPolicy(OutputContainer.PNG, "image/png", ".png", 24)
    smallest = codecs.encode(decoded, policy, resolve_encoder_quality(OutputContainer.PNG, 1))
    stored = codecs.encode(decoded, policy, resolve_encoder_quality(OutputContainer.PNG, 100))
    assert len(smallest) < len(stored)
    assert reopen(smallest).tobytes() == reopen(stored).tobytes()


def test_gif_output_is_palette():
    decoded = codecs.decode(save(gradient_image(), "PNG"))
    policy = OutputPolicy(OutputContainer.GIF, "image/gif", ".gif", 8)
    out = reopen(codecs.encode(decoded, policy, None))
    assert out.format == "GIF"
    assert out.mode in ("P", "L")


def test_animated_gif_keeps_frames():
    frames = [Image.new("L", (20, 20), i * 80) for i in range(3)]
    buf = io.BytesIO()
    frames[0].save(buf, format="GIF", save_all=True, append_images=frames[1:], duration=100, loop=0)
    decoded = codecs.decode(buf.getvalue())
    assert decoded.frame_count == 3

    policy = OutputPolicy(OutputContainer.GIF, "image/gif", ".gif", 8)
    out = Image.open(io.BytesIO(codecs.encode(decoded, policy, None)))
    assert out.n_frames == 3


def test_bmp_keeps_mode():
    decoded = codecs.decode(image_bytes("BMP", mode="L", color=90))
    policy = OutputPolicy(OutputContainer.BMP, "image/bmp", ".bmp", 8)
    out = reopen(codecs.encode(decoded, policy, None))
    assert out.format == "BMP"
    assert out.mode == "L"


@needs_libtiff
def test_tiff_is_written_with_jpeg_compression():
    decoded = codecs.decode(save(gradient_image(), "TIFF"))
    policy = OutputPolicy(OutputContainer.TIF_JPEG, "image/tiff", ".tif", 24)
    out = reopen(codecs.encode(decoded, policy, 67))
    assert out.format == "TIFF"
    assert out.info["compression"] == "jpeg"


@needs_webp
def test_webp_quality_changes_size():
    decoded = codecs.decode(save(noise_image(), "PNG"))
    policy = OutputPolicy(OutputContainer.WEBP, "image/webp", ".webp", 24)
    low = codecs.encode(decoded, policy, 5)
    high = codecs.encode(decoded, policy, 95)
    assert reopen(low).format == "WEBP"
    assert len(low) < len(high)


@pytest.mark.parametrize("factor,quality", [(4, 100), (67, 75), (254, 1), (255, 1), (2, 100)])
def test_factor_to_pillow_quality(factor, quality):
    assert codecs.factor_to_pillow_quality(factor) == quality


# ---------- inspect ----------
def test_inspect_png():
    info = codecs.inspect(image_bytes("PNG", size=(10, 20)))
    assert (info.width, info.height) == (10, 20)
    assert info.bits_per_pixel == 24
    assert info.input_format is InputFormat.PNG
    assert info.compression_type == "Deflate"


def test_inspect_progressive_jpeg():
    info = codecs.inspect(image_bytes("JPEG", progressive=True))
    assert info.compression_type == "JpegProgressive"


def test_inspect_baseline_jpeg():
    assert codecs.inspect(image_bytes("JPEG")).compression_type == "JpegBaseline"


@needs_webp
def test_inspect_webp():
    assert codecs.inspect(image_bytes("WEBP", lossless=True)).compression_type.startswith("Webp")


def test_inspect_rejects_garbage():
    with pytest.raises(DecodeError):
        codecs.inspect(b"this is not an image at all")


# ---------- start-up ----------
def test_init_codecs_runs_once():
    first = codecs.init_codecs()
    second = codecs.init_codecs()
    assert first == second
    assert set(first) == {"jpg", "zlib", "libtiff", "webp"}
    assert Image.MAX_IMAGE_PIXELS == engine_config.MAX_IMAGE_PIXELS
