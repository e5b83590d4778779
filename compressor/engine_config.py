"""
compressor/engine_config.py

Service settings (read from the environment) and the PDF quality-mode presets.
`PDF_MODES` maps: 'BestQuality'|'Balanced'|'BestSize'|'Custom' -> {mode, dpi, jpg_q}
"""

from __future__ import annotations
import os
from typing import Dict, List

SERVICE_NAME = os.getenv("SERVICE_NAME", "image-pdf-compressor")
SERVICE_VERSION = "1.0.0"
HOST = os.getenv("HOST", "127.0.0.1")
PORT = int(os.getenv("PORT", "5000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Upload limits (bytes)
MAX_IMAGE_SIZE = int(os.getenv("MAX_IMAGE_SIZE", str(10 * 1024 * 1024)))
MAX_PDF_SIZE = int(os.getenv("MAX_PDF_SIZE", str(50 * 1024 * 1024)))

ALLOWED_IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp", ".tiff", ".tif")
ALLOWED_PDF_EXTENSIONS = (".pdf",)

# Pillow decompression-bomb guard, applied once by codecs.init_codecs()
MAX_IMAGE_PIXELS = int(os.getenv("MAX_IMAGE_PIXELS", str(178_956_970)))

DEFAULT_IMAGE_QUALITY = 75
DEFAULT_PDF_MODE = "Balanced"

# Rendered pages are capped at this many megapixels regardless of the preset DPI
PDF_MAX_MEGAPIXELS = int(os.getenv("PDF_MAX_MEGAPIXELS", "80"))
PDF_ANALYSIS_PAGE_LIMIT = int(os.getenv("PDF_ANALYSIS_PAGE_LIMIT", "10"))

CORS_ORIGINS: List[str] = [
    o.strip()
    for o in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",")
    if o.strip()
]

# Built front-end (index.html + assets); mounted at "/" only if the folder exists
STATIC_DIR = os.getenv("STATIC_DIR", "wwwroot")

PDF_MODES: Dict[str, dict] = {
    # "optimize": lossless rewrite only (garbage collection, deflate, clean)
    "BestQuality": {"mode": "optimize", "dpi": None, "jpg_q": None},
    # "smart": rasterizes only image-only pages (keeps text and vectors)
    "Balanced":    {"mode": "smart",    "dpi": 150,  "jpg_q": 75},
    # "all": rasterizes every page (largest reduction on heavy PDFs)
    "BestSize":    {"mode": "all",      "dpi": 110,  "jpg_q": 50},
    # "smart" with caller-supplied dpi / jpeg quality; these are the defaults
    "Custom":      {"mode": "smart",    "dpi": 200,  "jpg_q": 85},
}
