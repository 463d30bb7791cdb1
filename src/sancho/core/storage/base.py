"""
Abstract base class for storage backends.

Provides a unified async interface over byte blobs addressed by string
keys, plus JSON helpers used by the journal gateway.
"""

import json
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any


class StorageBackend(ABC):
    """Abstract base class for storage backends."""

    def __init__(self, **config):
        self.config = config

    @abstractmethod
    async def save(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> int:
        """Save data under *key*, replacing any previous value. Returns bytes written."""

    @abstractmethod
    async def load(self, key: str) -> bytes:
        """Load data from storage. Raises StorageKeyError if not found."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check if a key exists in storage."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete an object. Returns True if deleted, False if it didn't exist."""

    @abstractmethod
    def list_keys(self, prefix: str = "", limit: int | None = None) -> AsyncIterator[str]:
        """List keys with optional prefix filter."""

    async def save_json(self, key: str, obj: Any) -> int:
        data = json.dumps(obj, ensure_ascii=False).encode("utf-8")
        return await self.save(key, data, content_type="application/json")

    async def load_json(self, key: str) -> Any:
        return json.loads((await self.load(key)).decode("utf-8"))


class StorageError(Exception):
    """Base exception for storage errors."""


class StorageKeyError(StorageError, KeyError):
    """Raised when a storage key doesn't exist."""


class StoragePermissionError(StorageError):
    """Raised when a storage operation is not permitted."""
