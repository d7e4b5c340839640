"""
Structured bill extraction from an uploaded receipt.

One attempt per file, no retries. Every failure (missing record, fetch or
transport error, output that does not fit BillDraft) ends in None plus a
log line and an audit event. Callers never see the cause.
"""

from datetime import date
from typing import Callable, Optional

import structlog

from bill_assistant.audit import AuditLogger
from bill_assistant.categories import CategoryMatcher
from bill_assistant.extraction import prompts
from bill_assistant.models.bill import BillDraft
from bill_assistant.models.files import Attachment, UploadedFile
from bill_assistant.services.llm import ModelServiceInterface
from bill_assistant.services.storage import FileStorageInterface

logger = structlog.get_logger(__name__)


class BillExtractor:

    def __init__(
        self,
        model: ModelServiceInterface,
        file_storage: FileStorageInterface,
        matcher: CategoryMatcher,
        audit_logger: Optional[AuditLogger] = None,
        today: Callable[[], date] = date.today,
    ):
        self._model = model
        self._files = file_storage
        self._matcher = matcher
        self._audit = audit_logger or AuditLogger()
        self._today = today

    async def load_record(self, file_id: int) -> Optional[UploadedFile]:
        """Fetch a live file record, auditing a failed lookup."""
        try:
            record = await self._files.get_file(file_id)
        except Exception as e:
            logger.error("extraction_file_lookup_failed", file_id=file_id, error=str(e))
            await self._audit.log_extraction_failed(file_id, f"file lookup failed: {e}")
            return None

        if record is None:
            logger.warning("extraction_file_missing", file_id=file_id)
            await self._audit.log_extraction_failed(file_id, "file record missing or deleted")
        return record

    async def extract_bill(self, file_id: int) -> Optional[BillDraft]:
        """Load the file record and extract a draft from it."""
        record = await self.load_record(file_id)
        if record is None:
            return None
        return await self.extract_from_record(record)

    async def extract_from_record(self, record: UploadedFile) -> Optional[BillDraft]:
        log = logger.bind(file_id=record.id, owner_id=record.owner_id)

        try:
            categories = await self._matcher.available_category_names(record.owner_id)
            draft = await self._model.extract(
                system_prompt=prompts.system_prompt(categories),
                user_prompt=prompts.image_prompt(self._today(), categories, record.id),
                attachment=Attachment(url=record.storage_url, mime_type=record.mime_type),
                schema=BillDraft,
            )
        except Exception as e:
            log.error("extraction_failed", error=str(e))
            await self._audit.log_extraction_failed(record.id, str(e), record.owner_id)
            return None

        if draft is None:
            log.warning("extraction_unusable_output")
            await self._audit.log_extraction_failed(
                record.id, "model output did not match the bill schema", record.owner_id
            )
            return None

        if draft.source_file_id is not None and draft.source_file_id != record.id:
            log.warning("extraction_file_id_mismatch", echoed=draft.source_file_id)
        draft = draft.model_copy(update={"source_file_id": record.id})

        log.info("extraction_completed", bill_name=draft.name, total=str(draft.total_amount))
        await self._audit.log_extraction_completed(record.id, record.owner_id, draft.name)
        return draft
