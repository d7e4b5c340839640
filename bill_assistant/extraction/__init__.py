"""Structured extraction: prompts, model extraction and filing."""

from bill_assistant.extraction import prompts
from bill_assistant.extraction.extractor import BillExtractor
from bill_assistant.extraction.filing import BillFilingService
from bill_assistant.services.llm import ExtractionError

__all__ = [
    "BillExtractor",
    "BillFilingService",
    "ExtractionError",
    "prompts",
]
