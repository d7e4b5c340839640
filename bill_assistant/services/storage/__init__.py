"""
Storage Services Package

Provides abstract interfaces and concrete implementations for relational storage.
Google Sheets is the persistent backend; the in-memory one serves local runs and tests.
"""

from bill_assistant.services.storage.interface import (
    AuditStorageInterface,
    BillStorageInterface,
    CategoryStorageInterface,
    ConnectionError,
    DuplicateError,
    FileStorageInterface,
    NotFoundError,
    StorageError,
)
from bill_assistant.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsBillStorage,
    GoogleSheetsCategoryStorage,
    GoogleSheetsClient,
    GoogleSheetsFileStorage,
)
from bill_assistant.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "BillStorageInterface",
    "CategoryStorageInterface",
    "FileStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsBillStorage",
    "GoogleSheetsCategoryStorage",
    "GoogleSheetsClient",
    "GoogleSheetsFileStorage",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryStorage",
]
