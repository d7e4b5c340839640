"""
Shared fixtures for the Bill Assistant tests.

No test talks to a real service: the model is scripted, storage and blob
storage live in memory, and faults are injected by subclassing them.
"""

import pytest
import pytest_asyncio

from bill_assistant.audit import AuditLogger
from bill_assistant.categories import CategoryMatcher, CategoryService
from bill_assistant.context import MemoryContextStore
from bill_assistant.ingestion import FileIngestionService, FileMetadataResolver
from bill_assistant.services.storage import InMemoryAuditStorage, InMemoryStorage

from fakes import FaultyBlobStorage


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def blob_storage():
    return FaultyBlobStorage()


@pytest.fixture
def resolver():
    return FileMetadataResolver(
        allowed_image_types=["jpg", "jpeg", "png", "gif", "bmp"],
        allowed_document_types=["pdf", "doc", "docx", "xls", "xlsx"],
        max_size_bytes=1024 * 1024,
    )


@pytest.fixture
def ingestion(blob_storage, storage, audit_logger, resolver):
    return FileIngestionService(blob_storage, storage, audit_logger, resolver)


@pytest.fixture
def context_store():
    return MemoryContextStore(max_stored_rounds=10, ttl_seconds=3600)


@pytest.fixture
def matcher(storage):
    return CategoryMatcher(storage)


@pytest.fixture
def category_service(storage, audit_logger):
    return CategoryService(storage, audit_logger)


@pytest_asyncio.fixture
async def seeded_storage(storage, category_service):
    """Storage holding the default system categories."""
    await category_service.seed_system_categories()
    return storage
