"""
Main Orchestrator for the Bill Assistant

This module ties together all the components and defines the
end-to-end flows for:
1. Chat (text and/or receipts → ingest → prompt → streamed reply)
2. Bill filing (stored receipt → extract → validate → categorize → save)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Only validation errors are shown to the caller, everything else
  becomes one opaque message
- Receipt requests never read or write conversation memory
- Extraction runs off the reply path and can never break a reply

This is the "glue" that ensures the system works correctly
even when individual components might behave unexpectedly.
"""

import asyncio
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import AsyncIterator, Callable, Optional, Sequence

import structlog

from bill_assistant.audit import AuditLogger, create_correlation_id
from bill_assistant.categories import CategoryMatcher, CategoryService
from bill_assistant.config import get_settings
from bill_assistant.context import ConversationContextStore, create_context_store
from bill_assistant.extraction import BillExtractor, BillFilingService, prompts
from bill_assistant.ingestion import FileIngestionService
from bill_assistant.models.bill import BillDraft
from bill_assistant.models.chat import UserIdentity
from bill_assistant.models.files import Attachment, FileUpload, UploadedFile
from bill_assistant.services.blob import (
    BlobStorageInterface,
    CloudinaryBlobStorage,
    InMemoryBlobStorage,
)
from bill_assistant.services.llm import GeminiModelService, ModelServiceInterface
from bill_assistant.services.storage import (
    BillStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsBillStorage,
    GoogleSheetsCategoryStorage,
    GoogleSheetsClient,
    GoogleSheetsFileStorage,
    InMemoryAuditStorage,
    InMemoryStorage,
)
from bill_assistant.validation import BillValidationError, BillValidator, ValidationError

logger = structlog.get_logger(__name__)

BUSY_MESSAGE = "咩～小咩现在有点忙，暂时连不上大脑，请稍后再试一次吧！😥"
COULD_NOT_COMPLETE_MESSAGE = "哎呀，这次没能处理好你的文件，小咩正在排查，请稍后重新上传吧 🛠️"
NO_INPUT_MESSAGE = "好像什么都没有收到呢 🤔 跟小咩说句话，或者上传一张票据试试吧！"


class RequestShape(str, Enum):
    """What kind of request arrived."""
    MEDIA = "media"
    TEXT = "text"
    EMPTY = "empty"


def classify_request(text: Optional[str], files: Sequence[FileUpload]) -> RequestShape:
    """Files with empty content do not count."""
    if any(not upload.is_empty for upload in files):
        return RequestShape.MEDIA
    if text is not None and text.strip():
        return RequestShape.TEXT
    return RequestShape.EMPTY


class BillFilingFlow:
    """
    Orchestrates filing a bill from a stored receipt.

    Flow:
    1. Load the file record
    2. Extract a draft with the model (one attempt)
    3. Validate, categorize and save through BillFilingService

    Every failure ends in None. Nothing raises past this class, so the
    flow is safe to run unattended in the background pool.
    """

    def __init__(
        self,
        extractor: BillExtractor,
        filing_service: BillFilingService,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._extractor = extractor
        self._filing = filing_service
        self._audit = audit_logger or AuditLogger()

    async def extract_and_file_bill(self, file_id: int) -> Optional[BillDraft]:
        """
        Extract and file the bill for one uploaded file.

        Returns:
            The draft with category_id filled in, or None on any failure
        """
        log = logger.bind(file_id=file_id)

        record = await self._extractor.load_record(file_id)
        if record is None:
            return None

        draft = await self._extractor.extract_from_record(record)
        if draft is None:
            return None

        try:
            bill = await self._filing.file_draft(draft, record.owner_id)
        except BillValidationError as e:
            log.warning("filing_rejected", error_count=e.result.error_count)
            return None
        except Exception as e:
            log.error("filing_failed", error=str(e))
            await self._audit.log_error(
                "filing_failed",
                str(e),
                details={"file_id": file_id, "owner_id": record.owner_id},
            )
            return None

        log.info("bill_extracted_and_filed", bill_id=bill.id)
        return draft


class BackgroundExtractionPool:
    """
    Worker threads for best-effort receipt extraction.

    Each job runs the async flow on its own event loop, so a job never
    shares loop-bound clients with the caller or with other jobs.
    """

    def __init__(self, flow: BillFilingFlow, max_workers: int = 4):
        self._flow = flow
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="bill-extraction",
        )

    def _run(self, file_id: int) -> Optional[BillDraft]:
        return asyncio.run(self._flow.extract_and_file_bill(file_id))

    def submit(self, file_id: int) -> Future:
        future = self._executor.submit(self._run, file_id)
        future.add_done_callback(lambda done: self._report(file_id, done))
        logger.info("extraction_submitted", file_id=file_id)
        return future

    @staticmethod
    def _report(file_id: int, future: Future) -> None:
        if future.cancelled():
            logger.warning("extraction_cancelled", file_id=file_id)
            return
        error = future.exception()
        if error is not None:
            logger.error("extraction_job_crashed", file_id=file_id, error=str(error))
        elif future.result() is None:
            logger.info("extraction_produced_no_bill", file_id=file_id)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


class ChatOrchestrator:
    """
    Orchestrates one chat request.

    Flow:
    1. Classify → media, text or empty
    2. Media → ingest every file, attach them, hand each to the pool
    3. Text → replay recent rounds, record the user turn, stream
    4. Stream → forward chunks, record the reply once it is complete
    """

    def __init__(
        self,
        model: ModelServiceInterface,
        context_store: ConversationContextStore,
        ingestion: FileIngestionService,
        matcher: CategoryMatcher,
        pool: Optional[BackgroundExtractionPool] = None,
        audit_logger: Optional[AuditLogger] = None,
        max_replay_rounds: Optional[int] = None,
        today: Callable[[], date] = date.today,
    ):
        self._model = model
        self._context = context_store
        self._ingestion = ingestion
        self._matcher = matcher
        self._pool = pool
        self._audit = audit_logger or AuditLogger()
        self._max_replay_rounds = (
            max_replay_rounds or get_settings().chat_context.max_replay_rounds
        )
        self._today = today

    async def handle_chat_request(
        self,
        text: Optional[str],
        files: Sequence[FileUpload],
        identity: UserIdentity,
    ) -> AsyncIterator[str]:
        """
        Answer a chat request as a stream of text chunks.

        Never raises. Failures arrive as a single user-facing message.
        """
        correlation_id = create_correlation_id()
        log = logger.bind(
            conversation_id=identity.conversation_id,
            owner_id=identity.owner_id,
            correlation_id=str(correlation_id),
        )

        try:
            uploads = [upload for upload in files if not upload.is_empty]
            shape = classify_request(text, uploads)
            log.info("chat_request_received", shape=shape.value, file_count=len(uploads))
            await self._audit.log_chat_request(
                identity.conversation_id, shape.value, len(uploads), correlation_id
            )
        except Exception as e:
            log.error("chat_classification_failed", error=str(e))
            yield BUSY_MESSAGE
            return

        if shape == RequestShape.EMPTY:
            yield NO_INPUT_MESSAGE
            return

        if shape == RequestShape.MEDIA:
            replies = self._media_reply(text, uploads, identity, correlation_id)
        else:
            replies = self._text_reply(text, identity, correlation_id)

        try:
            async for chunk in replies:
                yield chunk
        finally:
            await replies.aclose()

    async def _media_reply(
        self,
        text: Optional[str],
        uploads: Sequence[FileUpload],
        identity: UserIdentity,
        correlation_id,
    ) -> AsyncIterator[str]:
        log = logger.bind(owner_id=identity.owner_id, correlation_id=str(correlation_id))
        records: list[UploadedFile] = []

        for upload in uploads:
            try:
                record = await self._ingestion.ingest(
                    upload.content, upload.filename, identity.owner_id
                )
            except ValidationError as e:
                log.warning("upload_rejected", filename=upload.filename, reason=str(e))
                await self._audit.log_file_rejected(identity.owner_id, upload.filename, str(e))
                yield e.user_message + "\n"
                continue
            except Exception as e:
                log.error("upload_failed", filename=upload.filename, error=str(e))
                continue

            if record is not None:
                records.append(record)
                self._schedule_extraction(record.id)

        has_text = text is not None and bool(text.strip())
        if not records:
            if has_text:
                log.info("media_fallback_to_text")
                async for chunk in self._text_reply(text, identity, correlation_id):
                    yield chunk
            else:
                yield COULD_NOT_COMPLETE_MESSAGE
            return

        try:
            categories = await self._matcher.available_category_names(identity.owner_id)
            first_id = records[0].id
            if has_text:
                user_prompt = prompts.image_text_prompt(self._today(), categories, text, first_id)
            else:
                user_prompt = prompts.image_prompt(self._today(), categories, first_id)
            attachments = [
                Attachment(url=record.storage_url, mime_type=record.mime_type)
                for record in records
            ]
            stream = self._model.complete(
                system_prompt=prompts.system_prompt(categories),
                user_prompt=user_prompt,
                attachments=attachments,
            )
        except Exception as e:
            log.error("media_prompt_failed", error=str(e))
            yield BUSY_MESSAGE
            return

        try:
            async for chunk in stream:
                yield chunk
        except Exception as e:
            await self._stream_failed(identity, correlation_id, e)
            yield BUSY_MESSAGE

    async def _text_reply(
        self,
        text: str,
        identity: UserIdentity,
        correlation_id,
    ) -> AsyncIterator[str]:
        conversation_id = identity.conversation_id
        log = logger.bind(conversation_id=conversation_id, correlation_id=str(correlation_id))

        try:
            history = await self._context.recent_turns(conversation_id, self._max_replay_rounds)
            categories = await self._matcher.available_category_names(identity.owner_id)
            system_prompt = prompts.system_prompt(categories)
            user_prompt = prompts.text_prompt(self._today(), categories, text)
            await self._context.append_user(conversation_id, text)
            stream = self._model.complete(
                system_prompt=system_prompt,
                user_prompt=user_prompt,
                history=history,
            )
        except Exception as e:
            log.error("text_prompt_failed", error=str(e))
            yield BUSY_MESSAGE
            return

        log.debug("text_prompt_composed", history_turns=len(history))
        pieces: list[str] = []
        try:
            async for chunk in stream:
                pieces.append(chunk)
                yield chunk
        except Exception as e:
            # The round stays open with only the user turn
            await self._stream_failed(identity, correlation_id, e)
            yield BUSY_MESSAGE
            return

        reply = "".join(pieces)
        if not reply:
            return
        try:
            await self._context.append_assistant(conversation_id, reply)
        except Exception as e:
            log.error("assistant_turn_not_recorded", error=str(e))

    async def _stream_failed(self, identity: UserIdentity, correlation_id, error: Exception) -> None:
        logger.error(
            "chat_stream_failed",
            conversation_id=identity.conversation_id,
            correlation_id=str(correlation_id),
            error=str(error),
        )
        await self._audit.log_chat_failed(identity.conversation_id, str(error), correlation_id)

    def _schedule_extraction(self, file_id: int) -> None:
        if self._pool is None:
            return
        try:
            self._pool.submit(file_id)
        except RuntimeError as e:
            # Raised once the pool has been shut down
            logger.error("extraction_not_scheduled", file_id=file_id, error=str(e))


@dataclass
class AppComponents:
    chat: ChatOrchestrator
    filing_flow: BillFilingFlow
    ingestion: FileIngestionService
    categories: CategoryService
    pool: BackgroundExtractionPool
    context_store: ConversationContextStore
    bill_storage: BillStorageInterface
    sheets_client: Optional[GoogleSheetsClient] = None


def _create_blob_storage() -> BlobStorageInterface:
    try:
        return CloudinaryBlobStorage()
    except Exception as e:
        logger.warning("blob_storage_not_configured", error=str(e))
        return InMemoryBlobStorage(folder="invoice")


def create_app_components(
    use_storage: bool = True,
    model: Optional[ModelServiceInterface] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets and Cloudinary.
                    Set to False to keep everything in memory.
        model: Model service to use instead of Gemini.

    Returns:
        AppComponents wired to the same stores
    """
    settings = get_settings()
    sheets_client = None
    file_storage = bill_storage = category_storage = None
    audit_logger = None

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            sheets_client.connect()
            file_storage = GoogleSheetsFileStorage(sheets_client)
            bill_storage = GoogleSheetsBillStorage(sheets_client)
            category_storage = GoogleSheetsCategoryStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("sheets_storage_not_configured", error=str(e))
            sheets_client = None

    if sheets_client is None:
        memory = InMemoryStorage()
        file_storage = bill_storage = category_storage = memory
        audit_logger = AuditLogger(InMemoryAuditStorage())

    blob_storage = _create_blob_storage() if use_storage else InMemoryBlobStorage()
    if model is None:
        loader = blob_storage.read_url if isinstance(blob_storage, InMemoryBlobStorage) else None
        model = GeminiModelService(attachment_loader=loader)

    matcher = CategoryMatcher(category_storage)
    ingestion = FileIngestionService(blob_storage, file_storage, audit_logger)
    extractor = BillExtractor(model, file_storage, matcher, audit_logger)
    filing_service = BillFilingService(
        bill_storage,
        matcher,
        validator=BillValidator(bill_storage),
        audit_logger=audit_logger,
    )
    filing_flow = BillFilingFlow(extractor, filing_service, audit_logger)
    pool = BackgroundExtractionPool(filing_flow, max_workers=settings.app.extraction_workers)
    context_store = create_context_store()

    chat = ChatOrchestrator(
        model=model,
        context_store=context_store,
        ingestion=ingestion,
        matcher=matcher,
        pool=pool,
        audit_logger=audit_logger,
        max_replay_rounds=settings.chat_context.max_replay_rounds,
    )

    return AppComponents(
        chat=chat,
        filing_flow=filing_flow,
        ingestion=ingestion,
        categories=CategoryService(category_storage, audit_logger),
        pool=pool,
        context_store=context_store,
        bill_storage=bill_storage,
        sheets_client=sheets_client,
    )
