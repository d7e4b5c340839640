"""File ingestion: validation, upload and record keeping."""

from bill_assistant.ingestion.metadata import (
    FileMetadata,
    FileMetadataResolver,
    resolve_mime_type,
)
from bill_assistant.ingestion.pipeline import FileIngestionService

__all__ = [
    "FileIngestionService",
    "FileMetadata",
    "FileMetadataResolver",
    "resolve_mime_type",
]
