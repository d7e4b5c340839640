"""
Model Service Interface

The LLM is a TRANSLATOR, not an ORACLE. It is used two ways:

1. CHAT: stream a free-text reply, given persona, history and the user turn
2. EXTRACTION: emit one JSON record that must decode into a strict schema

Decoding is the service's job. Callers get either a fully validated
record or None, never a half-parsed dict.
"""

from abc import ABC, abstractmethod
from typing import AsyncIterator, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel

from bill_assistant.models.chat import ChatTurn
from bill_assistant.models.files import Attachment

RecordT = TypeVar("RecordT", bound=BaseModel)


class ExtractionError(Exception):
    """The model call itself failed (transport, quota, attachment fetch)."""
    pass


class ModelServiceInterface(ABC):

    @abstractmethod
    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        attachments: Sequence[Attachment] = (),
        history: Sequence[ChatTurn] = (),
    ) -> AsyncIterator[str]:
        """
        Stream a reply as text chunks.

        Errors surface while iterating, so a caller forwarding chunks may
        already have sent some of them when the stream fails.
        """
        pass

    @abstractmethod
    async def extract(
        self,
        system_prompt: str,
        user_prompt: str,
        attachment: Optional[Attachment],
        schema: Type[RecordT],
    ) -> Optional[RecordT]:
        """
        Ask for one record and decode it strictly.

        Returns:
            The decoded record, or None if the output does not fit the schema

        Raises:
            ExtractionError: If the model could not be called
        """
        pass


def slice_json_object(text: str) -> Optional[str]:
    """
    Cut the outermost {...} out of a model reply.

    Models sometimes wrap JSON in prose or code fences even when asked not to.
    """
    start = text.find("{")
    end = text.rfind("}") + 1
    if start < 0 or end <= start:
        return None
    return text[start:end]
