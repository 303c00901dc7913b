import logging
import re
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from cabinet.core.config import settings
from cabinet.core.redis import RedisClient
from cabinet.models.folder import Folder
from cabinet.repositories.folder import FolderRepository
from cabinet.schemas.folder import FolderSummary
from cabinet.services.share import share_cache_key
from cabinet.utils.exceptions import (
    ConflictError,
    InvalidOperationError,
    NotEmptyError,
    NotFoundError,
    ValidationError,
)
from cabinet.utils.tree import CorruptTreeError, walk_ancestors

logger = logging.getLogger(__name__)

FOLDER_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9\s\-_.]+$")
MAX_FOLDER_NAME_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500


def clean_folder_name(name: str) -> str:
    name = (name or "").strip()
    if not 1 <= len(name) <= MAX_FOLDER_NAME_LENGTH:
        raise ValidationError(f"Folder name must be between 1 and {MAX_FOLDER_NAME_LENGTH} characters")
    if not FOLDER_NAME_PATTERN.match(name):
        raise ValidationError(
            "Folder name can only contain letters, numbers, spaces, hyphens, underscores, and periods"
        )
    return name


def clean_description(description: Optional[str]) -> Optional[str]:
    description = (description or "").strip()
    if len(description) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(f"Description must be less than {MAX_DESCRIPTION_LENGTH} characters")
    return description or None


class FolderService:
    """Per-owner folder tree: listing, create, rename/move, guarded delete."""

    def __init__(self, db: AsyncSession, redis_client: Optional[RedisClient] = None):
        self.folder_repo = FolderRepository(db)
        self.redis_client = redis_client

    async def get_folder(self, folder_id: str, owner_id: str) -> Folder:
        """Get a folder the owner holds"""
        folder = await self.folder_repo.get_owned(folder_id, owner_id)
        if not folder:
            raise NotFoundError("Folder not found")
        return folder

    async def list_folders(self, owner_id: str, parent_id: Optional[str] = None) -> List[FolderSummary]:
        """Immediate children of parent_id (roots when None) with content counts"""
        parent_id = parent_id or None
        if parent_id is not None:
            await self.get_folder(parent_id, owner_id)

        rows = await self.folder_repo.list_with_counts(owner_id, parent_id)
        return [
            FolderSummary.model_validate(folder).model_copy(
                update={"child_count": child_count, "file_count": file_count}
            )
            for folder, child_count, file_count in rows
        ]

    async def list_all_folders(self, owner_id: str) -> List[Folder]:
        """Every folder of the owner, for move and upload pickers"""
        return await self.folder_repo.list_all(owner_id)

    async def create_folder(
        self,
        owner_id: str,
        name: str,
        description: Optional[str] = None,
        parent_id: Optional[str] = None,
    ) -> Folder:
        """Create a folder under parent_id, or at the root"""
        name = clean_folder_name(name)
        description = clean_description(description)
        parent_id = parent_id or None

        if parent_id is not None:
            parent = await self.folder_repo.get_owned(parent_id, owner_id)
            if not parent:
                raise NotFoundError("Parent folder not found")
            parent_depth = len(await self._ancestors_of_target(parent_id))
            if parent_depth + 1 > settings.MAX_FOLDER_DEPTH:
                raise InvalidOperationError(f"Folders cannot be nested more than {settings.MAX_FOLDER_DEPTH} levels deep")

        if await self.folder_repo.find_sibling(owner_id, parent_id, name):
            raise ConflictError("A folder with this name already exists in this location")

        folder = await self.folder_repo.create(owner_id, name, description, parent_id)
        if not folder:
            # Lost a race for the same sibling slot
            raise ConflictError("A folder with this name already exists in this location")
        return folder

    async def update_folder(
        self,
        folder_id: str,
        owner_id: str,
        name: str,
        description: Optional[str] = None,
        parent_id: Optional[str] = None,
    ) -> Folder:
        """Rename and/or move a folder; parent_id None moves it to the root"""
        folder = await self.get_folder(folder_id, owner_id)
        name = clean_folder_name(name)
        description = clean_description(description)
        parent_id = parent_id or None

        if parent_id is not None:
            await self._check_move_target(folder, parent_id, owner_id)

        if await self.folder_repo.find_sibling(owner_id, parent_id, name, exclude_id=folder.id):
            raise ConflictError("A folder with this name already exists in this location")

        updated = await self.folder_repo.update(folder, name, description, parent_id)
        if not updated:
            raise ConflictError("A folder with this name already exists in this location")
        return updated

    async def _check_move_target(self, folder: Folder, parent_id: str, owner_id: str) -> None:
        if parent_id == folder.id:
            raise InvalidOperationError("A folder cannot be its own parent")

        parent = await self.folder_repo.get_owned(parent_id, owner_id)
        if not parent:
            raise InvalidOperationError("Target parent folder not found")

        ancestors = await self._ancestors_of_target(parent_id)
        if folder.id in ancestors:
            raise InvalidOperationError("Cannot move a folder into one of its own subfolders")

        if len(ancestors) + await self._subtree_height(folder.id) > settings.MAX_FOLDER_DEPTH:
            raise InvalidOperationError(f"Folders cannot be nested more than {settings.MAX_FOLDER_DEPTH} levels deep")

    async def _ancestors_of_target(self, parent_id: str) -> List[str]:
        try:
            return await walk_ancestors(parent_id, self.folder_repo.get_parent_id, settings.MAX_FOLDER_DEPTH)
        except (CorruptTreeError, LookupError) as e:
            logger.error(f"Refusing to place a folder under {parent_id}: {e}")
            raise InvalidOperationError("Target parent folder has a corrupted hierarchy") from e

    async def _subtree_height(self, folder_id: str) -> int:
        """Levels in the subtree rooted at folder_id, itself included; stops one past the depth budget"""
        height = 0
        level = [folder_id]
        seen = set(level)
        while level and height <= settings.MAX_FOLDER_DEPTH:
            height += 1
            level = [fid for fid in await self.folder_repo.list_child_ids(level) if fid not in seen]
            seen.update(level)
        return height

    async def delete_folder(self, folder_id: str, owner_id: str) -> None:
        """Delete an empty folder; contents are never cascaded"""
        # Held until commit so no child can be added between the count and the delete
        folder = await self.folder_repo.lock_owned(folder_id, owner_id)
        if not folder:
            raise NotFoundError("Folder not found")

        child_count, file_count = await self.folder_repo.count_contents(folder.id)
        if child_count > 0 or file_count > 0:
            raise NotEmptyError("Cannot delete folder that contains files or subfolders")

        revoked_tokens = await self.folder_repo.delete(folder)
        if revoked_tokens is None:
            raise NotEmptyError("Cannot delete folder that contains files or subfolders")
        if self.redis_client:
            for token in revoked_tokens:
                await self.redis_client.delete(share_cache_key(token))

        logger.info(f"Deleted folder {folder_id} of user {owner_id}, revoked {len(revoked_tokens)} share link(s)")

    async def resolve_path(self, folder_id: str, owner_id: str) -> List[Folder]:
        """Ancestor chain from the root down to folder_id, for breadcrumbs"""
        await self.get_folder(folder_id, owner_id)

        chain = await walk_ancestors(
            folder_id, self.folder_repo.get_parent_id, settings.MAX_FOLDER_DEPTH, strict=False
        )
        by_id = {f.id: f for f in await self.folder_repo.get_many(chain)}
        return [by_id[fid] for fid in reversed(chain) if fid in by_id and by_id[fid].owner_id == owner_id]
