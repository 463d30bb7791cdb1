"""
Storage backends for sancho.

Async blob storage (local filesystem by default) for gateway documents,
and small synchronous key-value stores for settings and legacy caches.
"""

from .base import StorageBackend, StorageError, StorageKeyError, StoragePermissionError
from .compression import CompressionType, compress_bytes, decompress_bytes, get_compression_for_content_type
from .kv import JsonFileKeyValueStore, KeyValueStore, MemoryKeyValueStore
from .local import LocalStorage

__all__ = [
    "CompressionType",
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "LocalStorage",
    "MemoryKeyValueStore",
    "StorageBackend",
    "StorageError",
    "StorageKeyError",
    "StoragePermissionError",
    "compress_bytes",
    "decompress_bytes",
    "get_compression_for_content_type",
]
