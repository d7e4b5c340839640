"""
Category management.

System categories are shared by every user and are read-only: attempts to
edit, disable or delete them are refused with a False result, not an
exception. Private categories belong to one owner and must have a unique
name (and code, when given) among that owner's live categories.
"""

from typing import Optional

import structlog

from bill_assistant.audit import AuditLogger
from bill_assistant.categories.keywords import DEFAULT_SYSTEM_CATEGORIES
from bill_assistant.models.audit import AuditEventType
from bill_assistant.models.bill import Category
from bill_assistant.services.storage import CategoryStorageInterface

logger = structlog.get_logger(__name__)

EDITABLE_FIELDS = {"name", "code", "description", "sort_order"}


class CategoryService:

    def __init__(
        self,
        category_storage: CategoryStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._categories = category_storage
        self._audit = audit_logger or AuditLogger()

    async def list_categories(
        self,
        owner_id: int,
        include_disabled: bool = True,
    ) -> list[Category]:
        return await self._categories.list_categories(owner_id, include_disabled)

    async def has_access(self, category_id: Optional[int], owner_id: Optional[int]) -> bool:
        """System categories are visible to all, private ones to their owner."""
        if category_id is None or owner_id is None:
            return False
        category = await self._categories.get_category(category_id)
        return category is not None and category.is_visible_to(owner_id)

    async def is_duplicate(
        self,
        field: str,
        value: Optional[str],
        owner_id: int,
        exclude_id: Optional[int] = None,
    ) -> bool:
        if value is None or not value.strip():
            return False
        return await self._categories.category_value_taken(
            field, value.strip(), owner_id, exclude_id
        )

    async def _editable(self, category_id: int, owner_id: int, action: str) -> Optional[Category]:
        """Load a category the owner may change, or None with a warning."""
        category = await self._categories.get_category(category_id)
        if category is None:
            logger.warning("category_not_found", category_id=category_id, action=action)
            return None
        if category.is_system:
            logger.warning("system_category_read_only", category_id=category_id, action=action)
            return None
        if category.owner_id != owner_id:
            logger.warning(
                "category_access_denied",
                category_id=category_id,
                owner_id=owner_id,
                action=action,
            )
            return None
        return category

    async def create_category(
        self,
        owner_id: int,
        name: str,
        code: Optional[str] = None,
        description: Optional[str] = None,
        sort_order: int = 0,
    ) -> Optional[Category]:
        """
        Create a private category.

        Returns:
            The stored category, or None if the name or code is taken
        """
        name = name.strip()
        code = code.strip() if code else None
        if await self.is_duplicate("name", name, owner_id):
            logger.info("category_name_taken", name=name, owner_id=owner_id)
            return None
        if await self.is_duplicate("code", code, owner_id):
            logger.info("category_code_taken", code=code, owner_id=owner_id)
            return None

        category = await self._categories.insert_category(Category(
            owner_id=owner_id,
            name=name,
            code=code or None,
            description=description or None,
            sort_order=sort_order,
        ))
        await self._audit.log_category_changed(
            AuditEventType.CATEGORY_CREATED, category.id, owner_id, category.name
        )
        return category

    async def update_category(self, category_id: int, owner_id: int, **changes) -> bool:
        """Change name, code, description or sort order of a private category."""
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be edited: {sorted(unknown)}")

        category = await self._editable(category_id, owner_id, "update")
        if category is None:
            return False

        for field in ("name", "code"):
            if isinstance(changes.get(field), str):
                changes[field] = changes[field].strip()
            if field in changes and await self.is_duplicate(
                field, changes[field], owner_id, exclude_id=category_id
            ):
                logger.info("category_value_taken", field=field, owner_id=owner_id)
                return False

        updated = Category.model_validate({**category.model_dump(), **changes})
        await self._categories.update_category(updated)
        await self._audit.log_category_changed(
            AuditEventType.CATEGORY_UPDATED, category_id, owner_id, updated.name
        )
        return True

    async def set_enabled(self, category_id: int, owner_id: int, enabled: bool) -> bool:
        category = await self._editable(category_id, owner_id, "set_enabled")
        if category is None:
            return False
        await self._categories.update_category(category.model_copy(update={"enabled": enabled}))
        await self._audit.log_category_changed(
            AuditEventType.CATEGORY_UPDATED, category_id, owner_id, category.name
        )
        return True

    async def delete_category(self, category_id: int, owner_id: int) -> bool:
        """Logically delete a private category."""
        category = await self._editable(category_id, owner_id, "delete")
        if category is None:
            return False
        await self._categories.update_category(category.model_copy(update={"deleted": True}))
        await self._audit.log_category_changed(
            AuditEventType.CATEGORY_DELETED, category_id, owner_id, category.name
        )
        return True

    async def seed_system_categories(self) -> int:
        """
        Insert the default system categories that are missing.

        Returns:
            Number of categories inserted
        """
        existing = {
            c.name for c in await self._categories.list_categories(None, include_disabled=True)
            if c.is_system
        }
        inserted = 0
        for sort_order, (name, code, description) in enumerate(DEFAULT_SYSTEM_CATEGORIES, start=1):
            if name in existing:
                continue
            await self._categories.insert_category(Category(
                owner_id=None,
                name=name,
                code=code,
                description=description,
                sort_order=sort_order,
                is_system=True,
            ))
            inserted += 1
        if inserted:
            logger.info("system_categories_seeded", count=inserted)
        return inserted
