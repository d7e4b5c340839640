"""Tests for the Gemini model service and the blob helpers."""

from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest

from bill_assistant.models.bill import BillDraft
from bill_assistant.models.chat import ChatTurn, TurnRole
from bill_assistant.models.files import Attachment
from bill_assistant.services.blob import InMemoryBlobStorage
from bill_assistant.services.blob.cloudinary_storage import resource_type_for
from bill_assistant.services.blob.interface import build_object_key, extension_of
from bill_assistant.services.llm import ExtractionError, GeminiModelService, slice_json_object
from bill_assistant.services.llm import gemini_service


class FakeStream:
    def __init__(self, chunks):
        self._chunks = iter(chunks)

    def __aiter__(self):
        return self

    async def __anext__(self):
        try:
            return next(self._chunks)
        except StopIteration:
            raise StopAsyncIteration


class FakeGenerativeModel:
    instances: list = []
    reply_text = ""
    stream_chunks: list = []

    def __init__(self, model_name, system_instruction, generation_config):
        self.model_name = model_name
        self.system_instruction = system_instruction
        self.generation_config = generation_config
        self.contents = None
        FakeGenerativeModel.instances.append(self)

    def generate_content(self, contents):
        self.contents = contents
        if isinstance(self.reply_text, Exception):
            raise self.reply_text
        return SimpleNamespace(text=self.reply_text)

    async def generate_content_async(self, contents, stream=False):
        self.contents = contents
        return FakeStream(self.stream_chunks)


def chunk(text):
    return SimpleNamespace(parts=[text] if text else [], text=text)


@pytest.fixture
def fake_genai(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    monkeypatch.setattr(gemini_service.genai, "configure", lambda api_key: None)
    monkeypatch.setattr(gemini_service.genai, "GenerativeModel", FakeGenerativeModel)
    FakeGenerativeModel.instances = []
    FakeGenerativeModel.reply_text = ""
    FakeGenerativeModel.stream_chunks = []
    return FakeGenerativeModel


@pytest.fixture
def blobs():
    return InMemoryBlobStorage()


class TestGeminiComplete:

    @pytest.mark.asyncio
    async def test_streams_text_and_maps_roles(self, fake_genai, blobs):
        fake_genai.stream_chunks = [chunk("好的"), chunk(""), chunk("，记下啦！")]
        service = GeminiModelService(attachment_loader=blobs.read_url)
        history = [
            ChatTurn(role=TurnRole.USER, text="午饭花了30"),
            ChatTurn(role=TurnRole.ASSISTANT, text="记下了"),
        ]

        pieces = [p async for p in service.complete("system", "晚饭50", history=history)]

        assert pieces == ["好的", "，记下啦！"]
        model = fake_genai.instances[0]
        assert model.system_instruction == "system"
        assert [c["role"] for c in model.contents] == ["user", "model", "user"]
        assert model.contents[-1]["parts"] == ["晚饭50"]

    @pytest.mark.asyncio
    async def test_attachments_sent_inline(self, fake_genai, blobs):
        stored = await blobs.put(b"jpeg-bytes", "dinner.jpg", "image/jpeg")
        fake_genai.stream_chunks = [chunk("收到")]
        service = GeminiModelService(attachment_loader=blobs.read_url)

        attachment = Attachment(url=stored.url, mime_type="image/jpeg")
        [p async for p in service.complete("system", "看看这张", attachments=[attachment])]

        parts = fake_genai.instances[0].contents[-1]["parts"]
        assert parts[1] == {"mime_type": "image/jpeg", "data": b"jpeg-bytes"}


class TestGeminiExtract:

    @pytest.mark.asyncio
    async def test_parses_fenced_json(self, fake_genai):
        fake_genai.reply_text = (
            '```json\n{"name": "午餐", "transactionType": "EXPENSE", '
            '"totalAmount": 113, "currencyCode": "cny", "issueDate": "2025-05-19"}\n```'
        )
        service = GeminiModelService()

        draft = await service.extract("system", "user", None, BillDraft)

        assert draft.total_amount == Decimal("113")
        assert draft.issue_date == date(2025, 5, 19)
        config = fake_genai.instances[0].generation_config
        assert config["response_mime_type"] == "application/json"
        assert config["temperature"] == 0.1

    @pytest.mark.asyncio
    async def test_no_json_is_none(self, fake_genai):
        fake_genai.reply_text = "抱歉，我看不清这张图片"
        assert await GeminiModelService().extract("s", "u", None, BillDraft) is None

    @pytest.mark.asyncio
    async def test_schema_mismatch_is_none(self, fake_genai):
        fake_genai.reply_text = '{"name": "午餐"}'
        assert await GeminiModelService().extract("s", "u", None, BillDraft) is None

    @pytest.mark.asyncio
    async def test_call_failure_raises(self, fake_genai):
        fake_genai.reply_text = RuntimeError("quota exceeded")
        with pytest.raises(ExtractionError):
            await GeminiModelService().extract("s", "u", None, BillDraft)


class TestHelpers:

    def test_slice_json_object(self):
        assert slice_json_object('Sure! {"a": {"b": 1}} done') == '{"a": {"b": 1}}'
        assert slice_json_object("no json here") is None
        assert slice_json_object("} {") is None

    def test_object_key_layout(self):
        key = build_object_key("invoice", "jpg", today=date(2025, 5, 19))
        prefix, name = key.rsplit("/", 1)
        assert prefix == "invoice/2025/05/19"
        stem, ext = name.split(".")
        assert len(stem) == 32
        assert ext == "jpg"

    def test_object_keys_unique(self):
        assert build_object_key("invoice", "png") != build_object_key("invoice", "png")

    def test_extension_of(self):
        assert extension_of("Receipt.JPG") == "jpg"
        assert extension_of("archive.tar.gz") == "gz"
        assert extension_of("README") == ""

    def test_resource_type(self):
        assert resource_type_for("pdf") == "image"
        assert resource_type_for("png") == "image"
        assert resource_type_for("xlsx") == "raw"

    @pytest.mark.asyncio
    async def test_read_url_missing(self, blobs):
        with pytest.raises(FileNotFoundError):
            await blobs.read_url("memory://blobs/invoice/nope.jpg")
