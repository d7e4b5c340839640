"""
Data Models Package

This package contains all Pydantic models used in the Bill Assistant system.
All data flowing through the system must conform to these schemas.
"""

from bill_assistant.models.bill import (
    Bill,
    BillDraft,
    Category,
    CurrencyCode,
    TransactionType,
    ValidationIssue,
    ValidationResult,
)
from bill_assistant.models.chat import (
    ChatTurn,
    ConversationRound,
    TurnRole,
    UserIdentity,
)
from bill_assistant.models.files import (
    Attachment,
    FileUpload,
    StoredObject,
    UploadedFile,
)
from bill_assistant.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Bill models
    "Bill",
    "BillDraft",
    "Category",
    "CurrencyCode",
    "TransactionType",
    "ValidationIssue",
    "ValidationResult",
    # Chat models
    "ChatTurn",
    "ConversationRound",
    "TurnRole",
    "UserIdentity",
    # File models
    "Attachment",
    "FileUpload",
    "StoredObject",
    "UploadedFile",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
