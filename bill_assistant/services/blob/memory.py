"""In-process blob storage for local runs and tests."""

import threading
from typing import Optional

from bill_assistant.models.files import StoredObject
from bill_assistant.services.blob.interface import (
    BlobStorageInterface,
    build_object_key,
    extension_of,
)


class InMemoryBlobStorage(BlobStorageInterface):
    """Keeps objects in a dict and serves them under a memory:// URL."""

    def __init__(self, folder: str = "invoice", base_url: str = "memory://blobs"):
        self._folder = folder
        self._base_url = base_url
        self._lock = threading.Lock()
        self._objects: dict[str, bytes] = {}

    async def put(self, data: bytes, suggested_name: str, mime_type: str) -> StoredObject:
        key = build_object_key(self._folder, extension_of(suggested_name))
        with self._lock:
            self._objects[key] = bytes(data)
        return StoredObject(key=key, url=f"{self._base_url}/{key}", size=len(data))

    async def delete(self, key: str) -> bool:
        with self._lock:
            return self._objects.pop(key, None) is not None

    async def read_url(self, url: str) -> bytes:
        """Serve an object by the URL put() returned, for local model calls."""
        data = self.get(url.removeprefix(f"{self._base_url}/"))
        if data is None:
            raise FileNotFoundError(url)
        return data

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._objects.get(key)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._objects)
