"""Blob storage for receipt bytes."""

from bill_assistant.services.blob.interface import (
    BlobStorageError,
    BlobStorageInterface,
    build_object_key,
    extension_of,
)
from bill_assistant.services.blob.cloudinary_storage import CloudinaryBlobStorage
from bill_assistant.services.blob.memory import InMemoryBlobStorage

__all__ = [
    "BlobStorageError",
    "BlobStorageInterface",
    "CloudinaryBlobStorage",
    "InMemoryBlobStorage",
    "build_object_key",
    "extension_of",
]
