"""
Filing an extracted draft into the user's bills.

Flow:
1. Validate the draft (blocking issues raise BillValidationError)
2. Resolve its category label through the matching engine
3. Persist the bill

The category label falls back to the bill name when the model left
billType empty.
"""

from datetime import date
from typing import Callable, Optional

import structlog

from bill_assistant.audit import AuditLogger
from bill_assistant.categories import CategoryMatcher
from bill_assistant.models.bill import Bill, BillDraft, ValidationIssue, ValidationResult
from bill_assistant.services.storage import BillStorageInterface, DuplicateError
from bill_assistant.validation import BillValidationError, BillValidator

logger = structlog.get_logger(__name__)


class BillFilingService:

    def __init__(
        self,
        bill_storage: BillStorageInterface,
        matcher: CategoryMatcher,
        validator: Optional[BillValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        today: Callable[[], date] = date.today,
    ):
        self._bills = bill_storage
        self._matcher = matcher
        self._validator = validator or BillValidator(bill_storage)
        self._audit = audit_logger or AuditLogger()
        self._today = today

    async def file_draft(self, draft: BillDraft, owner_id: int) -> Bill:
        """
        Validate, categorize and store a draft.

        The draft's category_id is filled in place.

        Raises:
            BillValidationError: If validation found blocking issues, or
                another bill from the same file got stored first
            StorageError: If the bill could not be stored
        """
        log = logger.bind(owner_id=owner_id, source_file_id=draft.source_file_id)

        result = await self._validator.validate(draft, owner_id, today=self._today())
        for warning in result.warnings:
            log.warning("bill_validation_warning", message=warning)
        if not result.is_valid:
            issues = [issue.model_dump() for issue in result.issues if issue.severity == "error"]
            log.warning("bill_validation_failed", issues=issues)
            await self._audit.log_validation_failed(draft.source_file_id, owner_id, issues)
            raise BillValidationError(result)

        # name is required on a draft, so it always backs up an empty label
        label = draft.category_label or draft.name
        draft.category_id = await self._matcher.match_category(label, draft.direction, owner_id)

        try:
            bill = await self._bills.insert_bill(Bill.from_draft(draft, owner_id))
        except DuplicateError as e:
            # Lost a race with another job filing the same file
            log.warning("bill_duplicate_on_insert", error=str(e))
            raise BillValidationError(ValidationResult(
                is_valid=False,
                issues=[ValidationIssue(
                    field="source_file_id",
                    issue_type="duplicate",
                    message=str(e),
                    severity="error",
                )],
            )) from e
        log.info("bill_filed", bill_id=bill.id, category_id=bill.category_id)
        await self._audit.log_bill_filed(
            bill_id=bill.id,
            owner_id=owner_id,
            name=bill.name,
            amount=str(bill.total_amount),
            currency=bill.currency_code.value,
            category_id=bill.category_id,
        )
        return bill
