"""Validation package."""

from bill_assistant.validation.errors import (
    BillValidationError,
    FileTooLargeError,
    UnsupportedFileTypeError,
    ValidationError,
)
from bill_assistant.validation.validator import BillValidator

__all__ = [
    "BillValidationError",
    "BillValidator",
    "FileTooLargeError",
    "UnsupportedFileTypeError",
    "ValidationError",
]
