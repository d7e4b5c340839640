"""
File Ingestion Pipeline

Puts an uploaded file into blob storage and records it in the relational
store. The two systems share no transaction, so the pipeline runs as a
small saga:

1. Validate the name and size (raises, nothing has happened yet)
2. Upload the bytes (failure: nothing to undo)
3. Insert the file record in one store call
4. If the insert fails, delete the uploaded object again

CRITICAL: A file record exists only if BOTH writes succeeded. An object
left behind because step 4 also failed is logged and audited for manual
cleanup, it never turns into a record.
"""

from typing import Optional

import structlog

from bill_assistant.audit import AuditLogger
from bill_assistant.ingestion.metadata import FileMetadataResolver
from bill_assistant.models.files import UploadedFile
from bill_assistant.services.blob import BlobStorageError, BlobStorageInterface
from bill_assistant.services.storage import FileStorageInterface
from bill_assistant.validation import ValidationError

logger = structlog.get_logger(__name__)


class FileIngestionService:
    """Upload-then-record with compensation."""

    def __init__(
        self,
        blob_storage: BlobStorageInterface,
        file_storage: FileStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        resolver: Optional[FileMetadataResolver] = None,
    ):
        self._blob = blob_storage
        self._files = file_storage
        self._audit = audit_logger or AuditLogger()
        self._resolver = resolver or FileMetadataResolver()

    @property
    def resolver(self) -> FileMetadataResolver:
        return self._resolver

    async def ingest(self, data: bytes, name: str, owner_id: int) -> Optional[UploadedFile]:
        """
        Run the saga for one file.

        Returns:
            The stored record, or None if the upload or the insert failed

        Raises:
            ValidationError: If the file is rejected before upload
        """
        metadata = self._resolver.validate_and_resolve(name, len(data))

        try:
            stored = await self._blob.put(data, name, metadata.mime_type)
        except BlobStorageError as e:
            logger.error("blob_upload_failed", filename=name, owner_id=owner_id, error=str(e))
            await self._audit.log_external_service_error("blob_storage", str(e))
            return None

        committed_key: Optional[str] = stored.key
        failure = "cancelled"
        try:
            record = await self._files.insert_file(UploadedFile(
                original_name=name,
                storage_key=stored.key,
                storage_url=stored.url,
                mime_type=metadata.mime_type,
                size_bytes=stored.size if stored.size > 0 else len(data),
                owner_id=owner_id,
            ))
            committed_key = None
        except Exception as e:
            failure = str(e)
            logger.error(
                "file_record_insert_failed",
                filename=name,
                owner_id=owner_id,
                storage_key=stored.key,
                error=failure,
            )
            return None
        finally:
            # Runs on failure and on cancellation alike
            if committed_key is not None:
                await self._compensate(committed_key, owner_id, name, failure)

        logger.info(
            "file_uploaded",
            file_id=record.id,
            filename=name,
            owner_id=owner_id,
            storage_key=record.storage_key,
        )
        await self._audit.log_file_uploaded(record.id, owner_id, name, record.size_bytes)
        return record

    async def _compensate(self, key: str, owner_id: int, name: str, failure: str) -> None:
        """Delete an object whose record could not be written."""
        logger.warning("compensating_upload", storage_key=key, filename=name)
        try:
            cleaned = await self._blob.delete(key)
        except Exception as e:
            cleaned = False
            failure = f"{failure}; delete raised: {e}"

        if cleaned:
            logger.info("upload_compensated", storage_key=key)
        else:
            logger.error(
                "compensation_failed",
                storage_key=key,
                filename=name,
                owner_id=owner_id,
                action="manual cleanup required",
            )
        await self._audit.log_compensation(owner_id, key, cleaned, failure)

    async def upload_file(self, data: bytes, name: str, owner_id: int) -> Optional[int]:
        """Same as ingest, with rejections reported as None."""
        try:
            record = await self.ingest(data, name, owner_id)
        except ValidationError as e:
            logger.warning("file_rejected", filename=name, owner_id=owner_id, reason=str(e))
            await self._audit.log_file_rejected(owner_id, name, str(e))
            return None
        return record.id if record else None

    async def get_file(self, file_id: int) -> Optional[UploadedFile]:
        return await self._files.get_file(file_id)

    async def delete_file(self, file_id: int) -> bool:
        """Logically delete a file record. The stored object is kept."""
        record = await self._files.get_file(file_id)
        if record is None:
            logger.warning("file_delete_missing", file_id=file_id)
            return False
        deleted = await self._files.soft_delete_file(file_id)
        if deleted:
            logger.info("file_deleted", file_id=file_id)
            await self._audit.log_file_deleted(file_id, record.owner_id)
        return deleted
