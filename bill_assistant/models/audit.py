"""
Audit Models for Bill Assistant

Every significant action in the system is logged for audit purposes:
uploads, compensations, extractions, filings and category changes.

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step of a chat request and of background extraction has its own
    event type.
    """
    # Chat
    CHAT_REQUEST_RECEIVED = "chat_request_received"
    CHAT_REPLY_FAILED = "chat_reply_failed"

    # Ingestion
    FILE_UPLOADED = "file_uploaded"
    FILE_REJECTED = "file_rejected"
    FILE_DELETED = "file_deleted"
    UPLOAD_COMPENSATED = "upload_compensated"
    COMPENSATION_FAILED = "compensation_failed"

    # Extraction and filing
    EXTRACTION_COMPLETED = "extraction_completed"
    EXTRACTION_FAILED = "extraction_failed"
    SEMANTIC_VALIDATION_FAILED = "semantic_validation_failed"
    BILL_FILED = "bill_filed"

    # Categories
    CATEGORY_CREATED = "category_created"
    CATEGORY_UPDATED = "category_updated"
    CATEGORY_DELETED = "category_deleted"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'file', 'bill', 'category')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    owner_id: Optional[int] = Field(
        default=None,
        description="Owner the entity belongs to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events in one chat request)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "owner_id": self.owner_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         owner_id, correlation_id, description, details_json, error_message,
         is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.owner_id) if self.owner_id is not None else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, ensure_ascii=False, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.file_uploaded(file_id, owner_id, filename, size)
        event = AuditEventBuilder.bill_filed(bill_id, owner_id, file_id, amount)
    """

    @staticmethod
    def chat_request_received(
        conversation_id: str,
        shape: str,
        file_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CHAT_REQUEST_RECEIVED,
            entity_type="conversation",
            entity_id=conversation_id,
            correlation_id=correlation_id,
            description=f"Chat request received ({shape})",
            details={
                "shape": shape,
                "file_count": file_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def chat_reply_failed(
        conversation_id: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CHAT_REPLY_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="conversation",
            entity_id=conversation_id,
            correlation_id=correlation_id,
            description="Model reply failed",
            error_message=error_message,
        )

    @staticmethod
    def file_uploaded(
        file_id: int,
        owner_id: int,
        filename: str,
        file_size: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FILE_UPLOADED,
            entity_type="file",
            entity_id=str(file_id),
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"File uploaded: {filename}",
            details={
                "filename": filename,
                "file_size_bytes": file_size,
            },
            is_user_action=True,
        )

    @staticmethod
    def file_rejected(
        owner_id: int,
        filename: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FILE_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="file",
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"File rejected: {filename}",
            details={
                "filename": filename,
                "reason": reason,
            },
        )

    @staticmethod
    def upload_compensated(
        owner_id: int,
        storage_key: str,
        cleaned: bool,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        # A failed cleanup leaves an orphan object that someone has to remove
        return AuditEvent(
            event_type=(
                AuditEventType.UPLOAD_COMPENSATED
                if cleaned
                else AuditEventType.COMPENSATION_FAILED
            ),
            severity=AuditSeverity.WARNING if cleaned else AuditSeverity.CRITICAL,
            entity_type="blob",
            entity_id=storage_key,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=(
                "Stored object removed after record insert failed"
                if cleaned
                else "Stored object could not be removed, manual cleanup required"
            ),
            error_message=error_message,
        )

    @staticmethod
    def file_deleted(file_id: int, owner_id: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FILE_DELETED,
            entity_type="file",
            entity_id=str(file_id),
            owner_id=owner_id,
            description=f"File {file_id} deleted",
            is_user_action=True,
        )

    @staticmethod
    def extraction_completed(
        file_id: int,
        owner_id: int,
        bill_name: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_COMPLETED,
            entity_type="file",
            entity_id=str(file_id),
            owner_id=owner_id,
            description=f"Bill extracted: {bill_name}",
        )

    @staticmethod
    def extraction_failed(
        file_id: int,
        reason: str,
        owner_id: Optional[int] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="file",
            entity_id=str(file_id),
            owner_id=owner_id,
            description=f"Extraction produced no bill for file {file_id}",
            error_message=reason,
        )

    @staticmethod
    def validation_failed(
        file_id: Optional[int],
        owner_id: int,
        issues: list[dict],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SEMANTIC_VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="file",
            entity_id=str(file_id) if file_id is not None else None,
            owner_id=owner_id,
            description=f"Bill validation failed with {len(issues)} issues",
            details={
                "issues": issues,
            },
        )

    @staticmethod
    def bill_filed(
        bill_id: int,
        owner_id: int,
        name: str,
        amount: str,
        currency: str,
        category_id: Optional[int],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILL_FILED,
            entity_type="bill",
            entity_id=str(bill_id),
            owner_id=owner_id,
            description=f"Bill filed: {name} - {amount} {currency}",
            details={
                "amount": amount,
                "currency": currency,
                "category_id": category_id,
            },
        )

    @staticmethod
    def category_changed(
        event_type: AuditEventType,
        category_id: int,
        owner_id: int,
        name: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            entity_type="category",
            entity_id=str(category_id),
            owner_id=owner_id,
            description=f"Category {event_type.value.split('_')[-1]}: {name}",
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
