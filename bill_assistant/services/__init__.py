"""Services package: external systems behind swappable interfaces."""

from bill_assistant.services.blob import (
    BlobStorageError,
    BlobStorageInterface,
    CloudinaryBlobStorage,
    InMemoryBlobStorage,
)
from bill_assistant.services.llm import (
    ExtractionError,
    GeminiModelService,
    ModelServiceInterface,
)
from bill_assistant.services.storage import (
    AuditStorageInterface,
    BillStorageInterface,
    CategoryStorageInterface,
    ConnectionError,
    DuplicateError,
    FileStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsBillStorage,
    GoogleSheetsCategoryStorage,
    GoogleSheetsClient,
    GoogleSheetsFileStorage,
    InMemoryAuditStorage,
    InMemoryStorage,
    NotFoundError,
    StorageError,
)

__all__ = [
    # Blob storage
    "BlobStorageError",
    "BlobStorageInterface",
    "CloudinaryBlobStorage",
    "InMemoryBlobStorage",
    # Model service
    "ExtractionError",
    "GeminiModelService",
    "ModelServiceInterface",
    # Relational storage
    "AuditStorageInterface",
    "BillStorageInterface",
    "CategoryStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "FileStorageInterface",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsBillStorage",
    "GoogleSheetsCategoryStorage",
    "GoogleSheetsClient",
    "GoogleSheetsFileStorage",
    "InMemoryAuditStorage",
    "InMemoryStorage",
    "NotFoundError",
    "StorageError",
]
