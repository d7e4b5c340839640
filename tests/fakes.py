"""Test doubles: a scripted model and fault-injecting stores."""

import asyncio
from datetime import date
from typing import Optional, Sequence

from bill_assistant.models.chat import ChatTurn
from bill_assistant.models.files import Attachment, UploadedFile
from bill_assistant.services.blob import BlobStorageError, InMemoryBlobStorage
from bill_assistant.services.llm import ModelServiceInterface
from bill_assistant.services.storage import InMemoryStorage

TODAY = date(2025, 5, 19)


class FakeModelService(ModelServiceInterface):
    """
    Scripted model.

    complete() yields `chunks`, raising `stream_error` after `fail_after`
    chunks when set. extract() returns `extraction` or raises it when it
    is an exception. Every call is recorded.
    """

    def __init__(
        self,
        chunks: Sequence[str] = ("好的", "，记下啦！"),
        stream_error: Optional[Exception] = None,
        fail_after: int = 0,
        extraction=None,
    ):
        self.chunks = list(chunks)
        self.stream_error = stream_error
        self.fail_after = fail_after
        self.extraction = extraction
        self.complete_calls: list[dict] = []
        self.extract_calls: list[dict] = []

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        attachments: Sequence[Attachment] = (),
        history: Sequence[ChatTurn] = (),
    ):
        self.complete_calls.append({
            "system_prompt": system_prompt,
            "user_prompt": user_prompt,
            "attachments": list(attachments),
            "history": list(history),
        })
        for index, chunk in enumerate(self.chunks):
            if self.stream_error is not None and index == self.fail_after:
                raise self.stream_error
            yield chunk
        if self.stream_error is not None and self.fail_after >= len(self.chunks):
            raise self.stream_error

    async def extract(self, system_prompt, user_prompt, attachment, schema):
        self.extract_calls.append({
            "system_prompt": system_prompt,
            "user_prompt": user_prompt,
            "attachment": attachment,
            "schema": schema,
        })
        if isinstance(self.extraction, Exception):
            raise self.extraction
        return self.extraction


class FaultyStorage(InMemoryStorage):
    """In-memory store whose file inserts can be made to fail or hang."""

    def __init__(self, insert_error: Optional[BaseException] = None, hang: bool = False):
        super().__init__()
        self.insert_error = insert_error
        self.hang = hang
        self.insert_started = asyncio.Event()

    async def insert_file(self, record: UploadedFile) -> UploadedFile:
        self.insert_started.set()
        if self.hang:
            await asyncio.sleep(3600)
        if self.insert_error is not None:
            raise self.insert_error
        return await super().insert_file(record)


class FaultyBlobStorage(InMemoryBlobStorage):
    """In-memory blob storage with injectable put/delete failures."""

    def __init__(self, put_error: bool = False, delete_error: bool = False):
        super().__init__(folder="invoice")
        self.put_error = put_error
        self.delete_error = delete_error
        self.put_calls = 0
        self.delete_calls: list[str] = []

    async def put(self, data, suggested_name, mime_type):
        self.put_calls += 1
        if self.put_error:
            raise BlobStorageError("upload refused")
        return await super().put(data, suggested_name, mime_type)

    async def delete(self, key: str) -> bool:
        self.delete_calls.append(key)
        if self.delete_error:
            raise BlobStorageError("delete refused")
        return await super().delete(key)
