"""
compressor/exceptions.py

Errors raised by the engine. The HTTP layer maps them to status codes:
validation and decode problems are the client's fault, everything else is ours.
"""


class CompressorError(Exception):
    """Base class for engine errors."""
    pass


class FileValidationError(CompressorError):
    """Upload rejected before any processing (size, extension, parameters)."""
    pass


class DecodeError(CompressorError):
    """The uploaded bytes could not be read as an image."""
    pass


class EncodeError(CompressorError):
    """The codec failed while writing the output image."""
    pass


class PdfProcessingError(CompressorError):
    """The PDF could not be opened, optimized or analyzed."""
    pass
