"""
In-Memory Storage Implementation

Holds files, bills and categories in process memory. Used for local runs
without a spreadsheet and throughout the test suite.

Background extraction jobs run on worker threads, each with its own event
loop, so state is guarded by a threading lock rather than an asyncio one.
No lock is ever held across an await.
"""

import threading
from datetime import datetime
from itertools import count
from typing import Optional

from bill_assistant.models.audit import AuditEvent
from bill_assistant.models.bill import Bill, Category
from bill_assistant.models.files import UploadedFile
from bill_assistant.services.storage.interface import (
    AuditStorageInterface,
    BillStorageInterface,
    CategoryStorageInterface,
    DuplicateError,
    FileStorageInterface,
    NotFoundError,
)


class InMemoryStorage(
    FileStorageInterface,
    BillStorageInterface,
    CategoryStorageInterface,
):
    """One object standing in for all three relational tables."""

    def __init__(self):
        self._lock = threading.Lock()
        self._files: dict[int, UploadedFile] = {}
        self._bills: dict[int, Bill] = {}
        self._categories: dict[int, Category] = {}
        self._file_ids = count(1)
        self._bill_ids = count(1)
        self._category_ids = count(1)

    # ------------------------------------------------------------------ files

    async def insert_file(self, record: UploadedFile) -> UploadedFile:
        with self._lock:
            stored = record.model_copy(update={"id": next(self._file_ids)})
            self._files[stored.id] = stored
            return stored

    async def get_file(self, file_id: int) -> Optional[UploadedFile]:
        with self._lock:
            record = self._files.get(file_id)
        if record is None or record.deleted:
            return None
        return record

    async def soft_delete_file(self, file_id: int) -> bool:
        with self._lock:
            record = self._files.get(file_id)
            if record is None or record.deleted:
                return False
            self._files[file_id] = record.model_copy(update={"deleted": True})
            return True

    @property
    def file_count(self) -> int:
        """Number of file records, deleted ones included."""
        with self._lock:
            return len(self._files)

    # ------------------------------------------------------------------ bills

    async def insert_bill(self, bill: Bill) -> Bill:
        with self._lock:
            if bill.source_file_id is not None and any(
                b.owner_id == bill.owner_id
                and b.source_file_id == bill.source_file_id
                and not b.deleted
                for b in self._bills.values()
            ):
                raise DuplicateError(f"Bill already filed from file {bill.source_file_id}")
            stored = bill.model_copy(update={"id": next(self._bill_ids)})
            self._bills[stored.id] = stored
            return stored

    async def get_bill_by_id(self, bill_id: int) -> Optional[Bill]:
        with self._lock:
            bill = self._bills.get(bill_id)
        if bill is None or bill.deleted:
            return None
        return bill

    async def list_bills(self, owner_id: int) -> list[Bill]:
        with self._lock:
            bills = [
                b for b in self._bills.values()
                if b.owner_id == owner_id and not b.deleted
            ]
        bills.sort(key=lambda b: (b.issue_date, b.id), reverse=True)
        return bills

    async def bill_exists_for_file(self, owner_id: int, source_file_id: int) -> bool:
        with self._lock:
            return any(
                b.owner_id == owner_id
                and b.source_file_id == source_file_id
                and not b.deleted
                for b in self._bills.values()
            )

    # ------------------------------------------------------------- categories

    async def insert_category(self, category: Category) -> Category:
        with self._lock:
            stored = category.model_copy(update={"id": next(self._category_ids)})
            self._categories[stored.id] = stored
            return stored

    async def get_category(self, category_id: int) -> Optional[Category]:
        with self._lock:
            category = self._categories.get(category_id)
        if category is None or category.deleted:
            return None
        return category

    async def update_category(self, category: Category) -> bool:
        with self._lock:
            if category.id not in self._categories:
                raise NotFoundError(f"Category not found: {category.id}")
            self._categories[category.id] = category.model_copy(
                update={"updated_at": datetime.utcnow()}
            )
            return True

    async def list_categories(
        self,
        owner_id: Optional[int],
        include_disabled: bool = False,
    ) -> list[Category]:
        with self._lock:
            visible = [
                c for c in self._categories.values()
                if c.is_visible_to(owner_id) and (include_disabled or c.enabled)
            ]
        visible.sort(key=lambda c: (c.sort_order, c.id))
        return visible

    async def category_value_taken(
        self,
        field: str,
        value: str,
        owner_id: int,
        exclude_id: Optional[int] = None,
    ) -> bool:
        with self._lock:
            return any(
                c.owner_id == owner_id
                and not c.deleted
                and c.id != exclude_id
                and getattr(c, field) == value
                for c in self._categories.values()
            )


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log kept in a list."""

    def __init__(self):
        self._lock = threading.Lock()
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        with self._lock:
            self._events.append(event)
        return True

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        with self._lock:
            events = [
                e for e in self._events
                if e.entity_type == entity_type and e.entity_id == entity_id
            ]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        with self._lock:
            events = list(self._events)
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
