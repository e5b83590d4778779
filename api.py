# api.py
"""
HTTP layer (FastAPI) in front of the compressor engine.

Routes keep the original controller paths:
  /api/ImageCompression/{compress,analyze}
  /api/PdfCompression/{compress,analyze}
Uploads are multipart; results are JSON with base64 data URLs.
"""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from loguru import logger

from compressor import engine_config
from compressor.codecs import init_codecs
from compressor.exceptions import DecodeError, FileValidationError
from compressor.image_ops import analyze_image, compress_image
from compressor.pdf_ops import analyze_pdf, compress_pdf_file
from compressor.schemas import (
    CompressionResult,
    ImageAnalysisResult,
    PdfAnalysisResult,
    PdfCompressionResult,
)
from compressor.validation import (
    parse_pdf_mode,
    validate_custom_params,
    validate_image_file,
    validate_pdf_file,
    validate_quality,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.codecs = init_codecs()
    yield


app = FastAPI(title="Image & PDF Compressor", version=engine_config.SERVICE_VERSION, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=engine_config.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(RequestValidationError)
async def form_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed form fields (e.g. quality=abc) are client errors: 400 with one message."""
    errors = exc.errors()
    if not errors:
        return JSONResponse(status_code=400, content={"detail": "Invalid request"})
    first = errors[0]
    field = str(first.get("loc", ("",))[-1])
    return JSONResponse(status_code=400, content={"detail": f"Invalid value for {field}: {first.get('msg', '')}"})


images = APIRouter(prefix="/api/ImageCompression", tags=["images"])
pdfs = APIRouter(prefix="/api/PdfCompression", tags=["pdf"])


# ---------- helpers ----------
async def _read_upload(file: Optional[UploadFile]) -> tuple[bytes, str]:
    if file is None:
        raise HTTPException(status_code=400, detail="No file uploaded")
    data = await file.read()
    return data, file.filename or ""


def _http_error(e: Exception, action: str) -> HTTPException:
    """Client errors -> 400 with their own message; anything else -> 500 (logged)."""
    if isinstance(e, (FileValidationError, DecodeError)):
        return HTTPException(status_code=400, detail=str(e))
    logger.exception("Error {}", action)
    return HTTPException(status_code=500, detail=f"Error {action}: {e}")


# ---------- API: HEALTH ----------
@app.get("/health")
def health() -> dict:
    return {
        "status": "healthy",
        "service": engine_config.SERVICE_NAME,
        "version": engine_config.SERVICE_VERSION,
        "codecs": init_codecs(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# ---------- API: IMAGES ----------
@images.post("/compress", response_model=CompressionResult)
async def compress_image_route(
    file: Optional[UploadFile] = File(None),
    quality: int = Form(engine_config.DEFAULT_IMAGE_QUALITY),
):
    """Compress an image (JPEG, PNG, BMP, GIF, TIFF, WebP); quality 1-100, higher = better."""
    try:
        data, filename = await _read_upload(file)
        validate_image_file(data, filename)
        validate_quality(quality)
        return await asyncio.to_thread(compress_image, data, filename, quality)
    except HTTPException:
        raise
    except Exception as e:
        raise _http_error(e, "compressing image") from e


@images.post("/analyze", response_model=ImageAnalysisResult)
async def analyze_image_route(file: Optional[UploadFile] = File(None)):
    try:
        data, filename = await _read_upload(file)
        validate_image_file(data, filename)
        return await asyncio.to_thread(analyze_image, data, filename)
    except HTTPException:
        raise
    except Exception as e:
        raise _http_error(e, "analyzing image") from e


# ---------- API: PDF ----------
@pdfs.post("/compress", response_model=PdfCompressionResult)
async def compress_pdf_route(
    file: Optional[UploadFile] = File(None),
    quality_mode: str = Form(engine_config.DEFAULT_PDF_MODE, alias="qualityMode"),
    dpi: Optional[int] = Form(None),
    jpeg_quality: Optional[int] = Form(None, alias="jpegQuality"),
):
    """Compress a PDF. qualityMode: BestQuality, Balanced, BestSize, Custom (dpi/jpegQuality apply to Custom)."""
    try:
        data, filename = await _read_upload(file)
        validate_pdf_file(data, filename)
        mode = parse_pdf_mode(quality_mode)
        if mode != "Custom":
            dpi = jpeg_quality = None
        validate_custom_params(dpi, jpeg_quality)
        return await asyncio.to_thread(compress_pdf_file, data, filename, mode, dpi, jpeg_quality)
    except HTTPException:
        raise
    except Exception as e:
        raise _http_error(e, "compressing PDF") from e


@pdfs.post("/analyze", response_model=PdfAnalysisResult)
async def analyze_pdf_route(file: Optional[UploadFile] = File(None)):
    try:
        data, filename = await _read_upload(file)
        validate_pdf_file(data, filename)
        return await asyncio.to_thread(analyze_pdf, data, filename)
    except HTTPException:
        raise
    except Exception as e:
        raise _http_error(e, "analyzing PDF") from e


app.include_router(images)
app.include_router(pdfs)

# Built front-end, served last so it never shadows the API
if Path(engine_config.STATIC_DIR).is_dir():
    app.mount("/", StaticFiles(directory=engine_config.STATIC_DIR, html=True), name="static")
