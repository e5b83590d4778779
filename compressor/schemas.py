"""
compressor/schemas.py

Response models for the compress/analyze endpoints.
Fields are snake_case in Python and camelCase on the wire
(`fileName`, `originalSize`, `imageData`, ...), which is what the front-end reads.
"""

from __future__ import annotations
from typing import List
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CompressionResult(CamelModel):
    file_name: str
    original_size: int
    compressed_size: int
    compression_ratio: float
    quality: int
    format: str
    image_data: str  # data:<mime>;base64,...


class ImageAnalysisResult(CamelModel):
    file_name: str
    original_size: int
    width: int
    height: int
    bits_per_pixel: int
    format: str
    compression_type: str


class PdfCompressionResult(CamelModel):
    file_name: str
    original_size: int
    compressed_size: int
    compression_ratio: float
    quality_mode: str
    page_count: int
    rasterized_pages: int
    pdf_data: str  # data:application/pdf;base64,...


class PdfPageInfo(CamelModel):
    page_number: int
    width: float   # points
    height: float  # points
    image_count: int


class PdfAnalysisResult(CamelModel):
    file_name: str
    file_size: int
    page_count: int
    version: str
    producer: str
    is_linearized: bool
    is_encrypted: bool
    pages: List[PdfPageInfo] = Field(default_factory=list)
