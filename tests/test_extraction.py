"""Tests for structured extraction and bill filing."""

from datetime import date
from decimal import Decimal

import pytest

from bill_assistant.extraction import BillExtractor, BillFilingService, prompts
from bill_assistant.models.audit import AuditEventType
from bill_assistant.models.bill import BillDraft, TransactionType
from bill_assistant.services.llm import ExtractionError
from bill_assistant.validation import BillValidationError, BillValidator

from fakes import TODAY, FakeModelService

RECEIPT = b"\xff\xd8\xff\xe0fake-jpeg"


def make_draft(**overrides) -> BillDraft:
    fields = {
        "name": "团队晚餐",
        "direction": TransactionType.EXPENSE,
        "counterparty_name": "海底捞火锅",
        "category_label": "餐饮",
        "total_amount": Decimal("875.50"),
        "currency_code": "CNY",
        "issue_date": date(2025, 5, 18),
    }
    fields.update(overrides)
    return BillDraft(**fields)


def make_extractor(model, storage, matcher, audit_logger) -> BillExtractor:
    return BillExtractor(model, storage, matcher, audit_logger, today=lambda: TODAY)


class TestPrompts:

    def test_system_prompt_lists_categories(self):
        text = prompts.system_prompt(["餐饮", "交通"])
        assert "餐饮, 交通" in text
        assert "transactionType" in text
        assert "{" in text and "{{" not in text

    def test_text_prompt_leads_with_date(self):
        text = prompts.text_prompt(TODAY, ["餐饮"], "昨天晚饭花了50")
        assert text.startswith("今天的日期是 2025-05-19。")
        assert text.endswith("昨天晚饭花了50")

    def test_image_prompts_embed_file_id(self):
        assert "fileId是'42'" in prompts.image_prompt(TODAY, ["餐饮"], 42)
        combined = prompts.image_text_prompt(TODAY, ["餐饮"], "帮我记一下", 42)
        assert "帮我记一下" in combined
        assert "fileId是'42'" in combined


class TestBillExtractor:

    @pytest.mark.asyncio
    async def test_extracts_with_file_reference(
        self, seeded_storage, ingestion, matcher, audit_logger, audit_storage
    ):
        """Test the prompt carries the file and the result is tied to it."""
        record = await ingestion.ingest(RECEIPT, "dinner.jpg", owner_id=1)
        model = FakeModelService(extraction=make_draft(source_file_id=999))
        extractor = make_extractor(model, seeded_storage, matcher, audit_logger)

        draft = await extractor.extract_bill(record.id)

        assert draft is not None
        assert draft.source_file_id == record.id
        call = model.extract_calls[0]
        assert call["schema"] is BillDraft
        assert call["attachment"].url == record.storage_url
        assert call["attachment"].mime_type == "image/jpeg"
        assert f"fileId是'{record.id}'" in call["user_prompt"]
        assert "2025-05-19" in call["user_prompt"]
        assert "餐饮" in call["system_prompt"]
        events = await audit_storage.get_events_by_entity("file", str(record.id))
        assert AuditEventType.EXTRACTION_COMPLETED in [e.event_type for e in events]

    @pytest.mark.asyncio
    async def test_missing_file(self, storage, matcher, audit_logger):
        model = FakeModelService(extraction=make_draft())
        extractor = make_extractor(model, storage, matcher, audit_logger)

        assert await extractor.extract_bill(404) is None
        assert model.extract_calls == []

    @pytest.mark.asyncio
    async def test_deleted_file(self, storage, ingestion, matcher, audit_logger):
        record = await ingestion.ingest(RECEIPT, "dinner.jpg", owner_id=1)
        await ingestion.delete_file(record.id)
        extractor = make_extractor(FakeModelService(), storage, matcher, audit_logger)

        assert await extractor.extract_bill(record.id) is None

    @pytest.mark.asyncio
    async def test_model_failure_is_no_result(
        self, storage, ingestion, matcher, audit_logger, audit_storage
    ):
        """Test a failed model call never escapes the extractor."""
        record = await ingestion.ingest(RECEIPT, "dinner.jpg", owner_id=1)
        model = FakeModelService(extraction=ExtractionError("quota exceeded"))
        extractor = make_extractor(model, storage, matcher, audit_logger)

        assert await extractor.extract_bill(record.id) is None
        assert len(model.extract_calls) == 1
        events = await audit_storage.get_events_by_entity("file", str(record.id))
        assert AuditEventType.EXTRACTION_FAILED in [e.event_type for e in events]

    @pytest.mark.asyncio
    async def test_unusable_output_is_no_result(self, storage, ingestion, matcher, audit_logger):
        record = await ingestion.ingest(RECEIPT, "dinner.jpg", owner_id=1)
        extractor = make_extractor(FakeModelService(extraction=None), storage, matcher, audit_logger)

        assert await extractor.extract_bill(record.id) is None


class TestBillFilingService:

    @pytest.fixture
    def filing(self, seeded_storage, matcher, audit_logger):
        return BillFilingService(
            seeded_storage, matcher, audit_logger=audit_logger, today=lambda: TODAY
        )

    @pytest.mark.asyncio
    async def test_files_with_matched_category(self, filing, seeded_storage, audit_storage):
        draft = make_draft(category_label="外卖")

        bill = await filing.file_draft(draft, owner_id=1)

        assert bill.id is not None
        assert bill.category_id == 5
        assert draft.category_id == 5
        assert await seeded_storage.list_bills(1) == [bill]
        events = await audit_storage.get_events_by_entity("bill", str(bill.id))
        assert [e.event_type for e in events] == [AuditEventType.BILL_FILED]

    @pytest.mark.asyncio
    async def test_label_falls_back_to_name(self, filing):
        """Test an empty billType is matched through the bill name."""
        bill = await filing.file_draft(
            make_draft(name="打车回家", category_label=None), owner_id=1
        )
        assert bill.category_id == 6

    @pytest.mark.asyncio
    async def test_counterparty_is_not_a_label(self, filing):
        """Test only billType and the bill name feed the matcher."""
        bill = await filing.file_draft(
            make_draft(name="Misc", category_label=None, counterparty_name="打车"),
            owner_id=1,
        )
        assert bill.category_id is None

    @pytest.mark.asyncio
    async def test_unmatched_label_still_files(self, filing):
        bill = await filing.file_draft(
            make_draft(name="Misc", category_label="Coffee", counterparty_name=None),
            owner_id=1,
        )
        assert bill.category_id is None

    @pytest.mark.asyncio
    async def test_one_bill_per_source_file(self, filing, seeded_storage):
        """Test a second bill from the same file is refused."""
        await filing.file_draft(make_draft(source_file_id=3), owner_id=1)

        with pytest.raises(BillValidationError) as exc_info:
            await filing.file_draft(make_draft(source_file_id=3), owner_id=1)

        assert exc_info.value.result.error_count == 1
        assert len(await seeded_storage.list_bills(1)) == 1

    @pytest.mark.asyncio
    async def test_same_file_other_owner_allowed(self, filing):
        await filing.file_draft(make_draft(source_file_id=3), owner_id=1)
        assert (await filing.file_draft(make_draft(source_file_id=3), owner_id=2)).owner_id == 2

    @pytest.mark.asyncio
    async def test_store_rejects_duplicate_missed_by_validator(
        self, seeded_storage, matcher, audit_logger
    ):
        """Test a duplicate that slips past validation is still refused."""
        filing = BillFilingService(
            seeded_storage,
            matcher,
            validator=BillValidator(),
            audit_logger=audit_logger,
            today=lambda: TODAY,
        )
        await filing.file_draft(make_draft(source_file_id=3), owner_id=1)

        with pytest.raises(BillValidationError) as exc_info:
            await filing.file_draft(make_draft(source_file_id=3), owner_id=1)

        assert exc_info.value.result.issues[0].issue_type == "duplicate"
        assert len(await seeded_storage.list_bills(1)) == 1
