"""
Bill Validation

DESIGN DECISION: The draft has already passed SCHEMA validation by the time
it gets here: it was decoded strictly from the model's JSON, so types,
required fields and enum values are known to be right.

This module does the SEMANTIC stage:
- Amount sanity (positive total, tax + net consistent with total)
- Date sanity (not in the future)
- Duplicate detection (one bill per source file)

Only amount and duplicate problems block filing. The rest are warnings
that get logged with the bill.

IMPORTANT: Validation NEVER silently fixes issues. It reports them.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

import structlog

from bill_assistant.models.bill import (
    BillDraft,
    ValidationIssue,
    ValidationResult,
)
from bill_assistant.services.storage import BillStorageInterface, StorageError

logger = structlog.get_logger(__name__)

# Rounding slack when comparing net + tax against total
AMOUNT_TOLERANCE = Decimal("0.01")

FUTURE_DATE_TOLERANCE_DAYS = 1


class BillValidator:
    """
    Validates a bill draft before it is filed.

    Duplicate checking needs storage; without it that check is skipped.
    """

    def __init__(
        self,
        bill_storage: Optional[BillStorageInterface] = None,
    ):
        self._storage = bill_storage

    def _validate_amounts(self, draft: BillDraft) -> list[ValidationIssue]:
        issues = []

        if draft.total_amount is None or draft.total_amount <= 0:
            issues.append(ValidationIssue(
                field="total_amount",
                issue_type="invalid_value",
                message="Total amount must be greater than zero",
                severity="error",
            ))
            return issues

        if draft.net_amount is not None and draft.tax_amount is not None:
            expected_total = draft.net_amount + draft.tax_amount
            if abs(draft.total_amount - expected_total) > AMOUNT_TOLERANCE:
                issues.append(ValidationIssue(
                    field="total_amount",
                    issue_type="inconsistent",
                    message=(
                        f"Total ({draft.total_amount}) doesn't match "
                        f"net + tax ({expected_total})"
                    ),
                    severity="warning",
                ))

        return issues

    def _validate_dates(self, draft: BillDraft, today: date) -> list[ValidationIssue]:
        issues = []
        if draft.issue_date > today + timedelta(days=FUTURE_DATE_TOLERANCE_DAYS):
            issues.append(ValidationIssue(
                field="issue_date",
                issue_type="future_date",
                message=f"Issue date ({draft.issue_date}) is in the future",
                severity="warning",
            ))
        return issues

    async def _check_duplicates(
        self,
        draft: BillDraft,
        owner_id: int,
    ) -> list[ValidationIssue]:
        if self._storage is None or draft.source_file_id is None:
            return []

        try:
            exists = await self._storage.bill_exists_for_file(owner_id, draft.source_file_id)
        except StorageError as e:
            logger.warning(
                "duplicate_check_failed",
                source_file_id=draft.source_file_id,
                error=str(e),
            )
            return []

        if not exists:
            return []
        return [ValidationIssue(
            field="source_file_id",
            issue_type="duplicate",
            message=f"A bill was already filed from file {draft.source_file_id}",
            severity="error",
        )]

    async def validate(
        self,
        draft: BillDraft,
        owner_id: int,
        today: Optional[date] = None,
        check_duplicates: bool = True,
    ) -> ValidationResult:
        """
        Run semantic validation.

        Args:
            draft: The decoded bill draft
            owner_id: Owner the bill would be filed for
            today: Reference date for the future-date check
            check_duplicates: Whether to check for duplicates (requires storage)
        """
        issues = self._validate_amounts(draft)
        issues.extend(self._validate_dates(draft, today or date.today()))
        if check_duplicates:
            issues.extend(await self._check_duplicates(draft, owner_id))

        return ValidationResult(
            is_valid=not any(issue.severity == "error" for issue in issues),
            issues=issues,
        )
