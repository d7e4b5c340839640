"""
Upload metadata resolution.

Runs before any network call: a file that fails here is never uploaded,
so there is nothing to compensate.
"""

from typing import Optional, Sequence

from pydantic import BaseModel, ConfigDict

from bill_assistant.config import AppSettings, get_settings
from bill_assistant.services.blob import extension_of
from bill_assistant.validation import FileTooLargeError, UnsupportedFileTypeError

MIME_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "bmp": "image/bmp",
    "pdf": "application/pdf",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "xls": "application/vnd.ms-excel",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}

DEFAULT_MIME_TYPE = "application/octet-stream"


class FileMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    extension: str
    mime_type: str


def resolve_mime_type(extension: str) -> str:
    return MIME_TYPES.get(extension.lower(), DEFAULT_MIME_TYPE)


class FileMetadataResolver:
    """Checks a file against the allow-list and size limit."""

    def __init__(
        self,
        allowed_image_types: Optional[Sequence[str]] = None,
        allowed_document_types: Optional[Sequence[str]] = None,
        max_size_bytes: Optional[int] = None,
        settings: Optional[AppSettings] = None,
    ):
        settings = settings or get_settings().app
        self._image_types = set(
            t.lower() for t in (allowed_image_types or settings.allowed_image_types_list)
        )
        self._document_types = set(
            t.lower() for t in (allowed_document_types or settings.allowed_document_types_list)
        )
        self._max_size = max_size_bytes or settings.max_upload_size_bytes

    @property
    def allowed_extensions(self) -> list[str]:
        return sorted(self._image_types | self._document_types)

    def validate_and_resolve(self, filename: str, size: int = 0) -> FileMetadata:
        """
        Resolve extension and MIME type.

        Raises:
            UnsupportedFileTypeError: Extension missing or not allowed
            FileTooLargeError: File exceeds the size limit
        """
        extension = extension_of(filename)
        if extension not in self._image_types and extension not in self._document_types:
            raise UnsupportedFileTypeError(filename, extension, self.allowed_extensions)
        if size > self._max_size:
            raise FileTooLargeError(filename, size, self._max_size)
        return FileMetadata(extension=extension, mime_type=resolve_mime_type(extension))
