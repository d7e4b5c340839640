"""
Gemini Model Service

Wraps google-generativeai for both chat streaming and structured extraction.

DESIGN DECISION: A GenerativeModel is built per call because the system
prompt embeds the caller's category names, which differ per user.

Attachments are referenced by URL in our own data, but the SDK wants the
bytes inline, so they are fetched with httpx first.
"""

import asyncio
from typing import AsyncIterator, Awaitable, Callable, Optional, Sequence, Type

import google.generativeai as genai
import httpx
import structlog
from pydantic import ValidationError

from bill_assistant.config import get_settings
from bill_assistant.models.chat import ChatTurn, TurnRole
from bill_assistant.models.files import Attachment
from bill_assistant.services.llm.interface import (
    ExtractionError,
    ModelServiceInterface,
    RecordT,
    slice_json_object,
)

logger = structlog.get_logger(__name__)

AttachmentLoader = Callable[[str], Awaitable[bytes]]

# Gemini calls the assistant side of a conversation "model"
_ROLE_NAMES = {
    TurnRole.USER: "user",
    TurnRole.ASSISTANT: "model",
}


class GeminiModelService(ModelServiceInterface):
    """
    Chat and extraction on Gemini.

    Extraction runs at a low temperature and asks for a JSON response,
    chat uses the configured temperature.
    """

    def __init__(self, attachment_loader: Optional[AttachmentLoader] = None):
        self._settings = get_settings().gemini
        self._load_attachment = attachment_loader or self._fetch_attachment
        self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)

    def _model(self, system_prompt: str, **generation_config) -> genai.GenerativeModel:
        config = {
            "temperature": self._settings.temperature,
            "max_output_tokens": self._settings.max_tokens,
        }
        config.update(generation_config)
        return genai.GenerativeModel(
            model_name=self._settings.model_name,
            system_instruction=system_prompt,
            generation_config=config,
        )

    async def _fetch_attachment(self, url: str) -> bytes:
        async with httpx.AsyncClient(
            timeout=self._settings.attachment_timeout_seconds,
            follow_redirects=True,
        ) as client:
            response = await client.get(url)
            response.raise_for_status()
            return response.content

    async def _user_parts(
        self,
        user_prompt: str,
        attachments: Sequence[Attachment],
    ) -> list:
        parts: list = [user_prompt]
        for attachment in attachments:
            data = await self._load_attachment(attachment.url)
            parts.append({"mime_type": attachment.mime_type, "data": data})
        return parts

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        attachments: Sequence[Attachment] = (),
        history: Sequence[ChatTurn] = (),
    ) -> AsyncIterator[str]:
        contents = [
            {"role": _ROLE_NAMES[turn.role], "parts": [turn.text]}
            for turn in history
        ]
        contents.append({
            "role": "user",
            "parts": await self._user_parts(user_prompt, attachments),
        })

        model = self._model(system_prompt)
        response = await model.generate_content_async(contents, stream=True)
        async for chunk in response:
            # Chunks carrying only a finish reason have no parts
            if not chunk.parts:
                continue
            yield chunk.text

    async def extract(
        self,
        system_prompt: str,
        user_prompt: str,
        attachment: Optional[Attachment],
        schema: Type[RecordT],
    ) -> Optional[RecordT]:
        try:
            parts = await self._user_parts(
                user_prompt,
                [attachment] if attachment else [],
            )
        except httpx.HTTPError as e:
            raise ExtractionError(f"Could not fetch attachment: {e}") from e

        model = self._model(
            system_prompt,
            temperature=0.1,  # Low temperature for consistency
            response_mime_type="application/json",
        )
        # The sync client is used here since extraction runs on worker
        # threads, each with a short-lived event loop
        try:
            response = await asyncio.to_thread(model.generate_content, parts)
            text = response.text.strip()
        except Exception as e:
            raise ExtractionError(f"Gemini call failed: {e}") from e

        payload = slice_json_object(text)
        if payload is None:
            logger.warning("extraction_no_json", schema=schema.__name__, reply=text[:200])
            return None

        try:
            return schema.model_validate_json(payload)
        except ValidationError as e:
            logger.warning(
                "extraction_schema_mismatch",
                schema=schema.__name__,
                errors=e.errors(include_url=False),
            )
            return None
