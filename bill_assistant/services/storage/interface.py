"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for relational storage.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

Every insert is a single call that either stores the whole row or raises.
The ingestion saga relies on that: a failed insert leaves nothing behind
in the store, so the only thing to undo is the blob upload.

Ids are integers assigned by the store on insert.
"""

from abc import ABC, abstractmethod
from typing import Optional

from bill_assistant.models.audit import AuditEvent
from bill_assistant.models.bill import Bill, Category
from bill_assistant.models.files import UploadedFile


class FileStorageInterface(ABC):
    """Storage for uploaded file records."""

    @abstractmethod
    async def insert_file(self, record: UploadedFile) -> UploadedFile:
        """
        Insert a file record.

        Returns:
            The stored record with its id assigned

        Raises:
            StorageError: If the insert fails (nothing is stored)
        """
        pass

    @abstractmethod
    async def get_file(self, file_id: int) -> Optional[UploadedFile]:
        """
        Retrieve a file record by id.

        Returns:
            The record, or None if it does not exist or was deleted
        """
        pass

    @abstractmethod
    async def soft_delete_file(self, file_id: int) -> bool:
        """
        Mark a file record as deleted.

        Returns:
            True if a live record was marked, False otherwise
        """
        pass


class BillStorageInterface(ABC):
    """Storage for filed bills."""

    @abstractmethod
    async def insert_bill(self, bill: Bill) -> Bill:
        """
        Insert a bill.

        Returns:
            The stored bill with its id assigned

        Raises:
            DuplicateError: If the owner already has a bill from the same
                source file
            StorageError: If the insert fails
        """
        pass

    @abstractmethod
    async def get_bill_by_id(self, bill_id: int) -> Optional[Bill]:
        """Retrieve a bill by id, None if missing or deleted."""
        pass

    @abstractmethod
    async def list_bills(self, owner_id: int) -> list[Bill]:
        """List an owner's live bills, newest issue date first."""
        pass

    @abstractmethod
    async def bill_exists_for_file(self, owner_id: int, source_file_id: int) -> bool:
        """Check whether a live bill was already filed from this file."""
        pass


class CategoryStorageInterface(ABC):
    """
    Storage for bill categories.

    "Visible" categories for an owner are the system categories plus the
    owner's private ones. Deleted categories are never returned.
    """

    @abstractmethod
    async def insert_category(self, category: Category) -> Category:
        """Insert a category and return it with its id assigned."""
        pass

    @abstractmethod
    async def get_category(self, category_id: int) -> Optional[Category]:
        """Retrieve a category by id, None if missing or deleted."""
        pass

    @abstractmethod
    async def update_category(self, category: Category) -> bool:
        """
        Replace a stored category.

        Raises:
            NotFoundError: If the category does not exist
        """
        pass

    @abstractmethod
    async def list_categories(
        self,
        owner_id: Optional[int],
        include_disabled: bool = False,
    ) -> list[Category]:
        """
        List categories visible to an owner.

        Ordered by (sort_order, id), the natural order used for tie-breaks.
        owner_id=None lists system categories only.
        """
        pass

    @abstractmethod
    async def category_value_taken(
        self,
        field: str,
        value: str,
        owner_id: int,
        exclude_id: Optional[int] = None,
    ) -> bool:
        """
        Check whether a live private category of this owner already uses
        this value for `field` ("name" or "code").
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity, in chronological order.
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events (newest first).
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
