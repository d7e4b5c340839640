"""
Blob Storage Interface

Raw receipt bytes live in a remote object store. The relational store only
keeps the key and URL. Implementations must make `put` all-or-nothing:
either the object is stored and a StoredObject is returned, or
BlobStorageError is raised and nothing needs undoing.
"""

import uuid
from abc import ABC, abstractmethod
from datetime import date
from typing import Optional

from bill_assistant.models.files import StoredObject


class BlobStorageError(Exception):
    """Upload to the object store failed."""
    pass


class BlobStorageInterface(ABC):

    @abstractmethod
    async def put(self, data: bytes, suggested_name: str, mime_type: str) -> StoredObject:
        """
        Store bytes under a freshly generated key.

        Raises:
            BlobStorageError: If the upload did not complete
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """
        Remove an object.

        Returns:
            True if the object was removed, False if it could not be
        """
        pass


def build_object_key(folder: str, extension: str, today: Optional[date] = None) -> str:
    """
    Generate a collision-free object key.

    Format: {folder}/YYYY/MM/DD/{32 hex chars}.{ext}
    """
    today = today or date.today()
    key = f"{folder}/{today:%Y/%m/%d}/{uuid.uuid4().hex}"
    return f"{key}.{extension}" if extension else key


def extension_of(name: str) -> str:
    """Lower-cased extension without the dot, or "" when there is none."""
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[1].lower()
