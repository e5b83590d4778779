"""
pdf_ops.py

PDF engine (PyMuPDF + img2pdf + pypdf):
- Optimization per quality mode (optimize / smart / all) with guard-rail
- Analysis (version, producer, encryption, linearization, per-page info)

All functions work on bytes.
"""


from __future__ import annotations

import io
import math
from typing import Any, List, Tuple, cast

import fitz  # PyMuPDF
import img2pdf
from loguru import logger
from pypdf import PdfReader
from pypdf.errors import DependencyError, PdfReadError

from . import engine_config
from .engine_config import PDF_MODES
from .exceptions import PdfProcessingError
from .schemas import PdfAnalysisResult, PdfCompressionResult, PdfPageInfo
from .stats import compression_ratio, data_url, output_file_name


# ===========================
#   HELPERS
# ===========================
def _cap_dpi_for_page(page, dpi, max_megapixels=None):
    """Caps the effective DPI so a rendered page stays under `max_megapixels`."""
    if max_megapixels is None:
        max_megapixels = engine_config.PDF_MAX_MEGAPIXELS
    r = page.rect
    px = (r.width * dpi / 72.0) * (r.height * dpi / 72.0)
    max_px = max_megapixels * 1_000_000
    if px <= max_px:
        return dpi
    scale = math.sqrt(max_px / px)
    return max(72, int(dpi * scale))


def _is_image_only(page: "fitz.Page") -> bool:
    """True when the page has neither text nor vector drawings.

    Used by the 'smart' mode to decide which pages can be rasterized
    without losing text or vectors.
    """
    p = cast(Any, page)
    try:
        has_text = bool(p.get_text("text").strip())
    except (RuntimeError, ValueError):
        has_text = False
    try:
        has_vectors = len(p.get_drawings()) > 0
    except (RuntimeError, ValueError):
        has_vectors = False
    return (not has_text) and (not has_vectors)


def _render_jpeg(page: "fitz.Page", dpi: int, jpg_q: int) -> bytes:
    dpi_eff = _cap_dpi_for_page(page, dpi)
    mat = fitz.Matrix(dpi_eff / 72.0, dpi_eff / 72.0)
    pix = page.get_pixmap(matrix=mat, alpha=False, colorspace=fitz.csRGB)  # pyright: ignore[reportAttributeAccessIssue]
    # density goes into the JFIF header so img2pdf keeps the page size
    pix.set_dpi(dpi_eff, dpi_eff)
    out = pix.tobytes("jpeg", jpg_quality=jpg_q)
    del pix
    return out


def _open_pdf(pdf_bytes: bytes) -> "fitz.Document":
    """Opens a PDF from bytes, unlocking it with the empty password if encrypted."""
    try:
        doc = fitz.open(stream=pdf_bytes, filetype="pdf")
    except (RuntimeError, ValueError) as e:
        raise PdfProcessingError(f"Could not open PDF: {e}") from e
    if doc.needs_pass and not doc.authenticate(""):
        doc.close()
        raise PdfProcessingError("PDF is password protected")
    return doc


# ===========================
#   OPTIMIZATION
# ===========================
def optimize_pdf(
    pdf_bytes: bytes,
    mode_name: str,
    dpi: int | None = None,
    jpeg_quality: int | None = None,
) -> Tuple[bytes, int, int]:
    """Applies a quality mode to a PDF.

    Guard-rail: if the result is not smaller, the original bytes come back.

    Args:
        pdf_bytes (bytes): Input PDF.
        mode_name (str): Key of PDF_MODES ('BestQuality'|'Balanced'|'BestSize'|'Custom').
        dpi (int | None): Overrides the preset DPI (Custom mode).
        jpeg_quality (int | None): Overrides the preset JPEG quality (Custom mode).

    Returns:
        Tuple[bytes, int, int]: (pdf_bytes_out, page_count, rasterized_pages).
    """
    params = PDF_MODES.get(mode_name, PDF_MODES[engine_config.DEFAULT_PDF_MODE])
    mode = params["mode"]
    dpi = dpi or params["dpi"]
    jpg_q = jpeg_quality or params["jpg_q"]

    src = _open_pdf(pdf_bytes)
    page_count = src.page_count
    rasterized = 0

    try:
        # Lossless rewrite
        if mode == "optimize":
            out_bytes = src.write(garbage=4, deflate=True, clean=True)  # pyright: ignore[reportArgumentType]

        # Rasterizes every page
        elif mode == "all":
            jpg_pages: List[bytes] = []
            for i in range(page_count):
                jpg_pages.append(_render_jpeg(src.load_page(i), dpi, jpg_q))
            out_bytes = cast(bytes, img2pdf.convert(jpg_pages))
            rasterized = page_count

        # Rasterizes only "image-only" pages, copies the rest
        else:
            dst = fitz.open()
            for i in range(page_count):
                page = src.load_page(i)
                if _is_image_only(page):
                    img_bytes = _render_jpeg(page, dpi, jpg_q)
                    rect = page.rect
                    p = dst.new_page(width=rect.width, height=rect.height)  # pyright: ignore[reportAttributeAccessIssue]
                    p.insert_image(rect, stream=img_bytes)
                    rasterized += 1
                else:
                    dst.insert_pdf(src, from_page=i, to_page=i)
            out_bytes = dst.write(garbage=4, deflate=True, clean=True)  # pyright: ignore[reportArgumentType]
            dst.close()
    except (RuntimeError, ValueError, img2pdf.ImageOpenError) as e:
        raise PdfProcessingError(f"PDF optimization failed: {e}") from e
    finally:
        src.close()

    if len(out_bytes) >= len(pdf_bytes):
        logger.debug("Mode {} did not shrink the PDF ({} -> {} bytes); keeping original",
                     mode_name, len(pdf_bytes), len(out_bytes))
        return pdf_bytes, page_count, 0
    return out_bytes, page_count, rasterized


def compress_pdf_file(
    pdf_bytes: bytes,
    filename: str,
    mode_name: str,
    dpi: int | None = None,
    jpeg_quality: int | None = None,
) -> PdfCompressionResult:
    logger.info("Compressing PDF: {}, Mode: {}", filename, mode_name)

    out_bytes, page_count, rasterized = optimize_pdf(pdf_bytes, mode_name, dpi, jpeg_quality)

    original_size = len(pdf_bytes)
    compressed_size = len(out_bytes)
    ratio = compression_ratio(original_size, compressed_size)

    logger.info(
        "Compressed PDF: {}, Pages: {}, Rasterized: {}, Original: {} bytes, Compressed: {} bytes, Ratio: {:.2f}%",
        filename, page_count, rasterized, original_size, compressed_size, ratio,
    )

    return PdfCompressionResult(
        file_name=output_file_name(filename, ".pdf"),
        original_size=original_size,
        compressed_size=compressed_size,
        compression_ratio=ratio,
        quality_mode=mode_name,
        page_count=page_count,
        rasterized_pages=rasterized,
        pdf_data=data_url("application/pdf", out_bytes),
    )


# ===========================
#   ANALYSIS
# ===========================
def _raw_header_version(pdf_bytes: bytes) -> str:
    first_line = pdf_bytes[:32].split(b"\n", 1)[0].split(b"\r", 1)[0]
    if not first_line.startswith(b"%PDF-"):
        return "Unknown"
    return first_line[5:].decode("ascii", "replace").strip() or "Unknown"


def _header_info(pdf_bytes: bytes) -> Tuple[str, bool]:
    """(version, is_encrypted) read with pypdf.

    pypdf sets up the security handler while opening; when the crypto backend
    for the file's algorithm is missing the file is still reported as
    encrypted, with the version taken from the raw header line.
    """
    try:
        reader = PdfReader(io.BytesIO(pdf_bytes))
        header = reader.pdf_header
        return header.replace("%PDF-", "").strip() or "Unknown", reader.is_encrypted
    except DependencyError as e:
        logger.warning("PDF security handler unavailable: {}", e)
        return _raw_header_version(pdf_bytes), True
    except (PdfReadError, ValueError, OSError) as e:
        raise PdfProcessingError(f"Could not read PDF header: {e}") from e


def analyze_pdf(pdf_bytes: bytes, filename: str) -> PdfAnalysisResult:
    """Reads metadata and the first pages' geometry without modifying the PDF.

    Password-protected files still report version and encryption; page data
    is left at zero / empty.
    """
    version, is_encrypted = _header_info(pdf_bytes)

    try:
        doc = fitz.open(stream=pdf_bytes, filetype="pdf")
    except (RuntimeError, ValueError) as e:
        raise PdfProcessingError(f"Could not open PDF: {e}") from e

    page_count = 0
    producer = "Unknown"
    is_linearized = False
    pages: List[PdfPageInfo] = []
    try:
        unlocked = not doc.needs_pass or bool(doc.authenticate(""))
        if unlocked:
            page_count = doc.page_count
            producer = (doc.metadata or {}).get("producer") or "Unknown"
            is_linearized = bool(doc.is_fast_webaccess)

            for i in range(min(page_count, engine_config.PDF_ANALYSIS_PAGE_LIMIT)):
                page = doc.load_page(i)
                pages.append(PdfPageInfo(
                    page_number=i + 1,
                    width=round(page.rect.width, 2),
                    height=round(page.rect.height, 2),
                    image_count=len(page.get_images(full=True)),
                ))
    finally:
        doc.close()

    return PdfAnalysisResult(
        file_name=filename,
        file_size=len(pdf_bytes),
        page_count=page_count,
        version=version,
        producer=producer,
        is_linearized=is_linearized,
        is_encrypted=is_encrypted,
        pages=pages,
    )
