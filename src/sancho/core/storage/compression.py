"""
Compression helpers for storage backends.

Text formats (JSON documents) are gzip-compressed on disk; anything that
is already compressed passes through untouched.
"""

import gzip
from enum import Enum
from io import BytesIO


class CompressionType(Enum):
    """Supported compression types."""

    NONE = "none"
    GZIP = "gzip"


def compress_bytes(data: bytes, compression: CompressionType = CompressionType.GZIP) -> bytes:
    """Compress binary data."""
    if compression == CompressionType.NONE:
        return data
    buffer = BytesIO()
    with gzip.GzipFile(fileobj=buffer, mode="wb", compresslevel=6) as gz:
        gz.write(data)
    return buffer.getvalue()


def decompress_bytes(data: bytes, compression: CompressionType = CompressionType.GZIP) -> bytes:
    """Decompress binary data."""
    if compression == CompressionType.NONE:
        return data
    return gzip.decompress(data)


def get_compression_for_content_type(content_type: str) -> CompressionType:
    """Pick a compression type for a MIME type."""
    if any(ct in content_type for ct in ["image/", "video/", "audio/", "zip", "gzip"]):
        return CompressionType.NONE
    return CompressionType.GZIP
