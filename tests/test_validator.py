"""Tests for semantic bill validation."""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from bill_assistant.models.bill import Bill, BillDraft, TransactionType
from bill_assistant.services.storage import InMemoryStorage, StorageError
from bill_assistant.validation import BillValidator

from fakes import TODAY


def make_draft(**overrides) -> BillDraft:
    fields = {
        "name": "午餐",
        "direction": TransactionType.EXPENSE,
        "total_amount": Decimal("113.00"),
        "currency_code": "CNY",
        "issue_date": TODAY,
    }
    fields.update(overrides)
    return BillDraft(**fields)


class BrokenBillStorage(InMemoryStorage):
    async def bill_exists_for_file(self, owner_id: int, source_file_id: int) -> bool:
        raise StorageError("sheet unavailable")


class TestAmounts:

    @pytest.mark.asyncio
    async def test_consistent_amounts(self):
        result = await BillValidator().validate(
            make_draft(net_amount=Decimal("100.00"), tax_amount=Decimal("13.00")),
            owner_id=1,
            today=TODAY,
        )
        assert result.is_valid
        assert result.issues == []

    @pytest.mark.asyncio
    async def test_within_rounding_tolerance(self):
        result = await BillValidator().validate(
            make_draft(net_amount=Decimal("100.00"), tax_amount=Decimal("12.99")),
            owner_id=1,
            today=TODAY,
        )
        assert result.issues == []

    @pytest.mark.asyncio
    async def test_inconsistent_amounts_warn(self):
        """Test net + tax disagreeing with the total is only a warning."""
        result = await BillValidator().validate(
            make_draft(net_amount=Decimal("90.00"), tax_amount=Decimal("13.00")),
            owner_id=1,
            today=TODAY,
        )
        assert result.is_valid
        assert len(result.warnings) == 1
        assert result.issues[0].issue_type == "inconsistent"

    @pytest.mark.asyncio
    async def test_partial_breakdown_not_checked(self):
        result = await BillValidator().validate(
            make_draft(net_amount=Decimal("1.00")),
            owner_id=1,
            today=TODAY,
        )
        assert result.issues == []


class TestDates:

    @pytest.mark.asyncio
    async def test_tomorrow_tolerated(self):
        result = await BillValidator().validate(
            make_draft(issue_date=TODAY + timedelta(days=1)), owner_id=1, today=TODAY
        )
        assert result.issues == []

    @pytest.mark.asyncio
    async def test_future_date_warns(self):
        result = await BillValidator().validate(
            make_draft(issue_date=date(2025, 6, 1)), owner_id=1, today=TODAY
        )
        assert result.is_valid
        assert result.issues[0].issue_type == "future_date"


class TestDuplicates:

    @pytest.mark.asyncio
    async def test_duplicate_file_blocks(self):
        storage = InMemoryStorage()
        await storage.insert_bill(Bill.from_draft(make_draft(source_file_id=7), owner_id=1))

        result = await BillValidator(storage).validate(
            make_draft(source_file_id=7), owner_id=1, today=TODAY
        )
        assert not result.is_valid
        assert result.issues[0].issue_type == "duplicate"

    @pytest.mark.asyncio
    async def test_duplicate_check_can_be_skipped(self):
        storage = InMemoryStorage()
        await storage.insert_bill(Bill.from_draft(make_draft(source_file_id=7), owner_id=1))

        result = await BillValidator(storage).validate(
            make_draft(source_file_id=7), owner_id=1, today=TODAY, check_duplicates=False
        )
        assert result.is_valid

    @pytest.mark.asyncio
    async def test_text_bills_never_duplicate(self):
        """Test bills without a source file are not checked."""
        storage = InMemoryStorage()
        await storage.insert_bill(Bill.from_draft(make_draft(), owner_id=1))

        result = await BillValidator(storage).validate(make_draft(), owner_id=1, today=TODAY)
        assert result.is_valid

    @pytest.mark.asyncio
    async def test_storage_failure_skips_check(self):
        result = await BillValidator(BrokenBillStorage()).validate(
            make_draft(source_file_id=7), owner_id=1, today=TODAY
        )
        assert result.is_valid
