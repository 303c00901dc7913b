import logging
import os
from typing import List, Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession

from cabinet.core.config import settings
from cabinet.core.legacy import LegacyFileStore
from cabinet.core.storage import StorageAdapter
from cabinet.models.file import File
from cabinet.repositories.file import ANY_FOLDER, FileRepository
from cabinet.repositories.folder import FolderRepository
from cabinet.schemas.file import FileUrl
from cabinet.services.folder import clean_description
from cabinet.utils.exceptions import (
    InvalidOperationError,
    NotFoundError,
    StorageFailureError,
    ValidationError,
)

logger = logging.getLogger(__name__)


class FileService:
    def __init__(
        self,
        db: AsyncSession,
        storage: StorageAdapter,
        legacy_store: Optional[LegacyFileStore] = None,
    ):
        self.file_repo = FileRepository(db)
        self.folder_repo = FolderRepository(db)
        self.storage = storage
        self.legacy_store = legacy_store or LegacyFileStore()

    def _validate_upload(self, original_name: str, mime_type: str, size: int) -> None:
        if size > settings.MAX_FILE_SIZE_BYTES:
            raise ValidationError(f"File exceeds the {settings.MAX_FILE_SIZE_MB}MB limit")

        file_extension = os.path.splitext(original_name)[1].lower()
        if file_extension not in settings.ALLOWED_EXTENSIONS or mime_type not in settings.ALLOWED_MIME_TYPES:
            raise ValidationError("Only specific file types are allowed")

    async def upload_file(
        self,
        owner_id: str,
        data: bytes,
        original_name: str,
        mime_type: str,
        size: Optional[int] = None,
        description: Optional[str] = None,
        is_public: bool = False,
        folder_id: Optional[str] = None,
    ) -> File:
        """Store the payload, then record its metadata.

        A folder_id the owner does not hold is dropped and the file lands
        at the root, unless STRICT_UPLOAD_FOLDER is set.
        """
        if size is not None and size != len(data):
            raise ValidationError(f"Declared size {size} does not match the {len(data)} bytes received")
        size = len(data)
        self._validate_upload(original_name, mime_type, size)
        description = clean_description(description)

        folder_id = folder_id or None
        if folder_id is not None:
            folder = await self.folder_repo.get_owned(folder_id, owner_id)
            if not folder:
                if settings.STRICT_UPLOAD_FOLDER:
                    raise InvalidOperationError("Selected folder not found")
                logger.info(f"Upload by {owner_id} named unknown folder {folder_id}, storing at root")
                folder_id = None

        # Raises StorageFailureError before any metadata exists
        storage_path = await self.storage.put(owner_id, folder_id, original_name, data, mime_type)

        try:
            return await self.file_repo.create(
                owner_id=owner_id,
                folder_id=folder_id,
                filename=storage_path.rsplit("/", 1)[-1],
                original_name=original_name,
                mime_type=mime_type,
                size=size,
                storage_path=storage_path,
                description=description,
                is_public=is_public,
            )
        except Exception as e:
            logger.error(f"Metadata write failed for {storage_path}: {e}")
            # Clean up the stored object if the database operation fails
            try:
                await self.storage.delete(storage_path)
            except StorageFailureError as cleanup_error:
                logger.error(f"Orphaned storage object {storage_path}: {cleanup_error}")
            raise

    async def list_files(self, owner_id: str, folder_id=ANY_FOLDER) -> List[File]:
        """Owner's files newest first; folder_id None lists the root level"""
        return await self.file_repo.list_for_owner(owner_id, folder_id)

    async def resolve_file(self, file_id: str, requester_id: Optional[str] = None) -> File:
        """File if the requester owns it or it is public.

        Anything else is reported as missing so callers cannot probe for
        other users' private files.
        """
        file = await self.file_repo.get_visible(file_id, requester_id)
        if not file:
            raise NotFoundError("File not found")
        return file

    async def reassign_folder(self, file_id: str, owner_id: str, folder_id: Optional[str]) -> File:
        """Move a file into one of the owner's folders, or to the root with None"""
        file = await self.file_repo.get_owned(file_id, owner_id)
        if not file:
            raise NotFoundError("File not found")

        folder_id = folder_id or None
        if folder_id is not None:
            folder = await self.folder_repo.get_owned(folder_id, owner_id)
            if not folder:
                raise InvalidOperationError("Selected folder not found")

        return await self.file_repo.set_folder(file, folder_id)

    async def download_file(self, file_id: str, requester_id: Optional[str] = None) -> Tuple[File, bytes]:
        """File metadata and payload bytes"""
        file = await self.resolve_file(file_id, requester_id)
        if file.is_legacy:
            if not file.legacy_path:
                logger.error(f"File {file.id} has neither an object key nor a legacy path")
                raise NotFoundError("File content is missing")
            return file, await self.legacy_store.read(file.legacy_path)
        return file, await self.storage.get(file.storage_path)

    async def preview_url(self, file_id: str, requester_id: Optional[str] = None) -> FileUrl:
        """Short-lived direct URL for viewing a file"""
        file = await self.resolve_file(file_id, requester_id)
        if file.is_legacy:
            return FileUrl(url=f"{settings.API_V1_PREFIX}/files/{file.id}/download")

        expires = settings.PREVIEW_URL_EXPIRE_SECONDS
        url = await self.storage.sign_url(file.storage_path, expires)
        return FileUrl(url=url, expires_in=expires)

    async def public_url(self, file_id: str, owner_id: str) -> FileUrl:
        """Permanent link for a file the owner has made public"""
        file = await self.file_repo.get_owned(file_id, owner_id)
        if not file:
            raise NotFoundError("File not found")
        if not file.is_public:
            raise InvalidOperationError("File is not public")
        if file.is_legacy:
            raise InvalidOperationError("File has not been migrated to object storage")
        return FileUrl(url=self.storage.public_url(file.storage_path))

    async def delete_file(self, file_id: str, owner_id: str) -> None:
        """Delete the payload (best effort) and the metadata record"""
        file = await self.file_repo.get_owned(file_id, owner_id)
        if not file:
            raise NotFoundError("File not found")

        try:
            if file.is_legacy:
                if file.legacy_path:
                    await self.legacy_store.delete(file.legacy_path)
            else:
                await self.storage.delete(file.storage_path)
        except StorageFailureError as e:
            # Continue with database deletion even if storage deletion fails
            logger.warning(f"Error deleting payload of file {file.id}: {e}")

        await self.file_repo.delete(file)
