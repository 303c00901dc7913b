import logging
import re
import secrets
import time
from abc import ABC, abstractmethod
from typing import Optional

from cabinet.utils.exceptions import StorageFailureError

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


class ObjectStorage(ABC):
    """Primitive object store keyed by opaque path strings"""

    @abstractmethod
    async def put_object(self, path: str, data: bytes, content_type: str) -> None:
        ...

    @abstractmethod
    async def get_object(self, path: str) -> bytes:
        ...

    @abstractmethod
    async def remove_object(self, path: str) -> None:
        """Remove an object; a missing object is not an error"""
        ...

    @abstractmethod
    async def presigned_get_url(self, path: str, expires: int) -> str:
        ...

    @abstractmethod
    def public_url(self, path: str) -> str:
        ...


def sanitize_filename(filename: str) -> str:
    return _UNSAFE_CHARS.sub("_", filename)


def generate_storage_path(
    owner_key: str,
    folder_key: Optional[str],
    display_name: str,
    timestamp: Optional[int] = None,
) -> str:
    """Build the object key for an upload.

    Layout is {owner}/folders/{folder}/{ts}-{rand}-{name} or
    {owner}/root/{ts}-{rand}-{name}, so the owner and folder can be read
    from the key alone and equal display names never overwrite each other.
    """
    if timestamp is None:
        timestamp = int(time.time() * 1000)
    unique_filename = f"{timestamp}-{secrets.token_hex(4)}-{sanitize_filename(display_name)}"

    if folder_key:
        return f"{owner_key}/folders/{folder_key}/{unique_filename}"
    return f"{owner_key}/root/{unique_filename}"


class StorageAdapter:
    """Payload storage for file records.

    Every backend error surfaces as StorageFailureError with the original
    exception chained; callers decide whether to abort or swallow.
    """

    def __init__(self, backend: ObjectStorage):
        self.backend = backend

    async def put(
        self,
        owner_key: str,
        folder_key: Optional[str],
        display_name: str,
        data: bytes,
        mime_type: str,
    ) -> str:
        storage_path = generate_storage_path(owner_key, folder_key, display_name)
        try:
            await self.backend.put_object(storage_path, data, mime_type)
        except Exception as e:
            logger.error(f"Error uploading {storage_path} to storage: {e}")
            raise StorageFailureError(f"Failed to upload file to storage: {e}") from e
        return storage_path

    async def get(self, storage_path: str) -> bytes:
        try:
            return await self.backend.get_object(storage_path)
        except Exception as e:
            logger.error(f"Error downloading {storage_path} from storage: {e}")
            raise StorageFailureError(f"Failed to download file: {e}") from e

    async def delete(self, storage_path: str) -> None:
        try:
            await self.backend.remove_object(storage_path)
        except Exception as e:
            raise StorageFailureError(f"Failed to delete file: {e}") from e

    async def sign_url(self, storage_path: str, ttl_seconds: int) -> str:
        try:
            return await self.backend.presigned_get_url(storage_path, ttl_seconds)
        except Exception as e:
            logger.error(f"Error creating signed URL for {storage_path}: {e}")
            raise StorageFailureError(f"Failed to create preview URL: {e}") from e

    def public_url(self, storage_path: str) -> str:
        return self.backend.public_url(storage_path)
