"""
File Models

An uploaded receipt lives in two places: the bytes in blob storage and a
record in the relational store. UploadedFile is that record. It is only
ever created after BOTH writes succeeded.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class StoredObject(BaseModel):
    """Result of writing bytes to blob storage."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(..., min_length=1)
    url: str
    size: int = Field(ge=0)


class UploadedFile(BaseModel):
    """File record for an ingested receipt or document."""

    id: Optional[int] = Field(
        default=None,
        description="Assigned by the store on insert"
    )
    original_name: str = Field(..., max_length=255)
    storage_key: str
    storage_url: str
    mime_type: str
    size_bytes: int = Field(ge=0)
    owner_id: int = Field(..., gt=0)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    deleted: bool = False


class FileUpload(BaseModel):
    """A file attached to an incoming chat request."""

    filename: str
    content: bytes

    @property
    def is_empty(self) -> bool:
        return len(self.content) == 0


class Attachment(BaseModel):
    """A multimodal prompt attachment, referenced by URL."""

    model_config = ConfigDict(frozen=True)

    url: str
    mime_type: str
