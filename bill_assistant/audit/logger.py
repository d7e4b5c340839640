"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Complete traceability of uploads, extractions and filings
2. A record of orphaned blobs that need manual cleanup
3. Debugging capability

The audit logger:
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace the events of one chat request
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from bill_assistant.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from bill_assistant.services.storage import AuditStorageInterface


def configure_logging(level: int = logging.INFO) -> None:
    """
    Configure structlog for JSON output through the standard library.

    Safe to call more than once.
    """
    logging.basicConfig(format="%(message)s", level=level)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(ensure_ascii=False)
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence), when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("bill_assistant.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_chat_request(
        self,
        conversation_id: str,
        shape: str,
        file_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.chat_request_received(
            conversation_id=conversation_id,
            shape=shape,
            file_count=file_count,
            correlation_id=correlation_id,
        ))

    async def log_chat_failed(
        self,
        conversation_id: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.chat_reply_failed(
            conversation_id=conversation_id,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_file_uploaded(
        self,
        file_id: int,
        owner_id: int,
        filename: str,
        file_size: int,
    ) -> None:
        """Log a file that reached both blob storage and the store."""
        await self.log(AuditEventBuilder.file_uploaded(
            file_id=file_id,
            owner_id=owner_id,
            filename=filename,
            file_size=file_size,
        ))

    async def log_file_rejected(
        self,
        owner_id: int,
        filename: str,
        reason: str,
    ) -> None:
        await self.log(AuditEventBuilder.file_rejected(
            owner_id=owner_id,
            filename=filename,
            reason=reason,
        ))

    async def log_compensation(
        self,
        owner_id: int,
        storage_key: str,
        cleaned: bool,
        error_message: str,
    ) -> None:
        """Log the outcome of undoing a blob upload."""
        await self.log(AuditEventBuilder.upload_compensated(
            owner_id=owner_id,
            storage_key=storage_key,
            cleaned=cleaned,
            error_message=error_message,
        ))

    async def log_file_deleted(self, file_id: int, owner_id: int) -> None:
        await self.log(AuditEventBuilder.file_deleted(file_id, owner_id))

    async def log_extraction_completed(
        self,
        file_id: int,
        owner_id: int,
        bill_name: str,
    ) -> None:
        await self.log(AuditEventBuilder.extraction_completed(
            file_id=file_id,
            owner_id=owner_id,
            bill_name=bill_name,
        ))

    async def log_extraction_failed(
        self,
        file_id: int,
        reason: str,
        owner_id: Optional[int] = None,
    ) -> None:
        await self.log(AuditEventBuilder.extraction_failed(
            file_id=file_id,
            reason=reason,
            owner_id=owner_id,
        ))

    async def log_validation_failed(
        self,
        file_id: Optional[int],
        owner_id: int,
        issues: list[dict],
    ) -> None:
        await self.log(AuditEventBuilder.validation_failed(
            file_id=file_id,
            owner_id=owner_id,
            issues=issues,
        ))

    async def log_bill_filed(
        self,
        bill_id: int,
        owner_id: int,
        name: str,
        amount: str,
        currency: str,
        category_id: Optional[int],
    ) -> None:
        await self.log(AuditEventBuilder.bill_filed(
            bill_id=bill_id,
            owner_id=owner_id,
            name=name,
            amount=amount,
            currency=currency,
            category_id=category_id,
        ))

    async def log_category_changed(
        self,
        event_type: AuditEventType,
        category_id: int,
        owner_id: int,
        name: str,
    ) -> None:
        await self.log(AuditEventBuilder.category_changed(
            event_type=event_type,
            category_id=category_id,
            owner_id=owner_id,
            name=name,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a chat request).
    Pass it through all subsequent operations.
    """
    return uuid4()
