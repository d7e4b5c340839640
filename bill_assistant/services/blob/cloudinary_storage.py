"""
Receipt Storage using Cloudinary

Images and PDFs are stored as Cloudinary "image" resources so that a
delivery URL can be handed straight to the model. Office documents are
stored as "raw" resources.

Cloudinary keeps the format separately from the public id for image
resources, but raw resources carry the extension inside the public id.
The object key we hand out is the public id, so the resource type can be
recovered from the key alone when deleting.

Uploads are not retried: a retried upload that actually succeeded the
first time would leave an orphan the saga knows nothing about.
"""

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader
import structlog

from bill_assistant.config import get_settings
from bill_assistant.models.files import StoredObject
from bill_assistant.services.blob.interface import (
    BlobStorageError,
    BlobStorageInterface,
    build_object_key,
    extension_of,
)

logger = structlog.get_logger(__name__)

# Extensions Cloudinary can deliver as an image resource
IMAGE_RESOURCE_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "bmp", "pdf"}


def resource_type_for(extension: str) -> str:
    return "image" if extension in IMAGE_RESOURCE_EXTENSIONS else "raw"


class CloudinaryBlobStorage(BlobStorageInterface):
    """
    Blob storage backed by Cloudinary.

    Flow:
    1. Generate a date-partitioned key
    2. Upload bytes under that key
    3. Return the secure URL and stored size
    """

    def __init__(self):
        self._settings = get_settings().cloudinary
        self._configured = False

    def _configure(self):
        """Configure Cloudinary SDK."""
        if not self._configured:
            cloudinary.config(
                cloud_name=self._settings.cloud_name,
                api_key=self._settings.api_key,
                api_secret=self._settings.api_secret,
                secure=True,
            )
            self._configured = True

    async def put(self, data: bytes, suggested_name: str, mime_type: str) -> StoredObject:
        self._configure()

        extension = extension_of(suggested_name)
        resource_type = resource_type_for(extension)
        # Image resources get their format from the bytes, not the public id
        public_id = build_object_key(
            self._settings.folder,
            extension if resource_type == "raw" else "",
        )

        try:
            result = cloudinary.uploader.upload(
                data,
                public_id=public_id,
                resource_type=resource_type,
                overwrite=False,
            )
        except cloudinary.exceptions.Error as e:
            raise BlobStorageError(f"Cloudinary error: {e}") from e
        except Exception as e:
            raise BlobStorageError(f"Failed to upload {suggested_name}: {e}") from e

        url = result.get("secure_url") or result.get("url")
        if not url:
            raise BlobStorageError("No URL returned from Cloudinary")

        logger.info(
            "blob_uploaded",
            key=result.get("public_id", public_id),
            resource_type=resource_type,
            mime_type=mime_type,
        )
        return StoredObject(
            key=result.get("public_id", public_id),
            url=url,
            size=int(result.get("bytes", len(data))),
        )

    async def delete(self, key: str) -> bool:
        self._configure()

        resource_type = "raw" if extension_of(key.rsplit("/", 1)[-1]) else "image"
        try:
            result = cloudinary.uploader.destroy(
                key,
                resource_type=resource_type,
                invalidate=True,
            )
        except Exception as e:
            logger.error("blob_delete_failed", key=key, error=str(e))
            return False

        deleted = result.get("result") == "ok"
        if not deleted:
            logger.warning("blob_delete_rejected", key=key, result=result.get("result"))
        return deleted
