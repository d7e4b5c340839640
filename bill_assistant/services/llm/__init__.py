"""Language model services."""

from bill_assistant.services.llm.interface import (
    ExtractionError,
    ModelServiceInterface,
    slice_json_object,
)
from bill_assistant.services.llm.gemini_service import GeminiModelService

__all__ = [
    "ExtractionError",
    "GeminiModelService",
    "ModelServiceInterface",
    "slice_json_object",
]
