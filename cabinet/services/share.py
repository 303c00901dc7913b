import logging
import re
import secrets
from datetime import datetime, timezone
from typing import Callable, List, NamedTuple, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from cabinet.core.config import settings
from cabinet.core.redis import RedisClient
from cabinet.core.storage import StorageAdapter
from cabinet.models.folder import Folder
from cabinet.models.shared_folder import SharedFolder
from cabinet.repositories.file import FileRepository
from cabinet.repositories.folder import FolderRepository
from cabinet.repositories.shared_folder import SharedFolderRepository
from cabinet.schemas.file import File as FileSchema, FileUrl
from cabinet.schemas.folder import Folder as FolderSchema, FolderCrumb
from cabinet.schemas.share import SharedFolder as SharedFolderSchema, SharedFolderView
from cabinet.utils.duration import as_utc, get_expiration_date, is_expired
from cabinet.utils.exceptions import (
    ConflictError,
    ExpiredError,
    ForbiddenError,
    InvalidFormatError,
    InvalidOperationError,
    NotFoundError,
)
from cabinet.utils.tree import is_within_subtree

logger = logging.getLogger(__name__)

# Prefixed and longer than a UUID so tokens can never be mistaken for record ids
TOKEN_PREFIX = "shr_"
TOKEN_PATTERN = re.compile(r"shr_[A-Za-z0-9_-]{43}")


def generate_share_token() -> str:
    return f"{TOKEN_PREFIX}{secrets.token_urlsafe(32)}"


def share_cache_key(token: str) -> str:
    return f"share:token:{token}"


class ShareGrant(NamedTuple):
    token: str
    folder_id: str
    expires_at: datetime


class ShareService:
    """Expiring public links to a folder subtree.

    Apart from issuing and listing links, nothing here takes a user: access
    rests on holding an unexpired token and on the target lying under the
    shared folder.
    """

    def __init__(
        self,
        db: AsyncSession,
        storage: Optional[StorageAdapter] = None,
        redis_client: Optional[RedisClient] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.folder_repo = FolderRepository(db)
        self.file_repo = FileRepository(db)
        self.share_repo = SharedFolderRepository(db)
        self.storage = storage
        self.redis_client = redis_client
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def issue_share(self, folder_id: str, owner_id: str, duration: str) -> SharedFolder:
        """Create a share link for an owned folder valid for `duration`"""
        folder = await self.folder_repo.get_owned(folder_id, owner_id)
        if not folder:
            raise NotFoundError("Folder not found")

        now = self.clock()
        expires_at = get_expiration_date(duration, now)

        share = await self.share_repo.create(
            token=generate_share_token(),
            folder_id=folder.id,
            owner_id=owner_id,
            created_at=now,
            expires_at=expires_at,
        )
        if not share:
            raise ConflictError("Share token collision, please try again")

        await self._cache_grant(ShareGrant(share.token, share.folder_id, as_utc(share.expires_at)))
        logger.info(f"User {owner_id} shared folder {folder.id} until {share.expires_at.isoformat()}")
        return share

    async def list_shares(self, folder_id: str, owner_id: str) -> List[SharedFolderSchema]:
        """Share links of an owned folder, newest first"""
        folder = await self.folder_repo.get_owned(folder_id, owner_id)
        if not folder:
            raise NotFoundError("Folder not found")

        now = self.clock()
        return [
            SharedFolderSchema.model_validate(share).model_copy(
                update={"is_expired": is_expired(share.expires_at, now)}
            )
            for share in await self.share_repo.list_for_folder(folder.id, owner_id)
        ]

    async def resolve_share(self, token: str) -> SharedFolderView:
        """Shared root folder with its immediate files and subfolders"""
        grant = await self._load_grant(token)
        root = await self._load_root(grant)
        return await self._build_view(grant, root, root, [])

    async def resolve_subfolder(self, token: str, folder_id: str) -> SharedFolderView:
        """Contents of a folder inside the shared subtree, with a breadcrumb from the shared root"""
        grant = await self._load_grant(token)
        root = await self._load_root(grant)

        path_ids = await is_within_subtree(
            folder_id, root.id, self.folder_repo.get_parent_id, settings.MAX_FOLDER_DEPTH
        )
        if path_ids is None:
            raise ForbiddenError("Folder is not part of this share")

        by_id = {f.id: f for f in await self.folder_repo.get_many(path_ids)}
        breadcrumb = [by_id[fid] for fid in path_ids]
        target = breadcrumb[-1] if breadcrumb else root
        return await self._build_view(grant, root, target, breadcrumb)

    async def shared_file_url(self, token: str, file_id: str) -> FileUrl:
        """Short-lived URL for a file stored anywhere inside the shared subtree"""
        grant = await self._load_grant(token)
        root = await self._load_root(grant)

        file = await self.file_repo.get_by_id(file_id)
        if not file:
            raise NotFoundError("File not found")
        if file.folder_id is None:
            raise ForbiddenError("File is not part of this share")

        inside = await is_within_subtree(
            file.folder_id, root.id, self.folder_repo.get_parent_id, settings.MAX_FOLDER_DEPTH
        )
        if inside is None:
            raise ForbiddenError("File is not part of this share")

        if file.is_legacy:
            raise InvalidOperationError("File has not been migrated to object storage")

        url = await self.storage.sign_url(file.storage_path, settings.PREVIEW_URL_EXPIRE_SECONDS)
        return FileUrl(url=url, expires_in=settings.PREVIEW_URL_EXPIRE_SECONDS)

    async def _load_grant(self, token: str) -> ShareGrant:
        if not TOKEN_PATTERN.fullmatch(token or ""):
            raise InvalidFormatError("Malformed share token")

        grant = await self._cached_grant(token)
        if grant is None:
            share = await self.share_repo.get_by_token(token)
            if not share:
                raise NotFoundError("Share link not found")
            grant = ShareGrant(share.token, share.folder_id, as_utc(share.expires_at))
            await self._cache_grant(grant)

        if is_expired(grant.expires_at, self.clock()):
            raise ExpiredError("Share link has expired")
        return grant

    async def _load_root(self, grant: ShareGrant) -> Folder:
        root = await self.folder_repo.get_by_id(grant.folder_id)
        if not root:
            # Folder deleted after the grant was cached
            if self.redis_client:
                await self.redis_client.delete(share_cache_key(grant.token))
            raise NotFoundError("Share link not found")
        return root

    async def _build_view(
        self,
        grant: ShareGrant,
        root: Folder,
        folder: Folder,
        breadcrumb: List[Folder],
    ) -> SharedFolderView:
        folders = await self.folder_repo.list_children(folder.id)
        files = await self.file_repo.list_in_folder(folder.id)
        return SharedFolderView(
            token=grant.token,
            expires_at=grant.expires_at,
            root=FolderSchema.model_validate(root),
            folder=FolderSchema.model_validate(folder),
            breadcrumb=[FolderCrumb.model_validate(f) for f in breadcrumb],
            folders=[FolderSchema.model_validate(f) for f in folders],
            files=[FileSchema.model_validate(f) for f in files],
        )

    async def _cached_grant(self, token: str) -> Optional[ShareGrant]:
        if not self.redis_client:
            return None
        cached = await self.redis_client.get_json(share_cache_key(token))
        if not cached:
            return None
        try:
            return ShareGrant(token, cached["folder_id"], as_utc(datetime.fromisoformat(cached["expires_at"])))
        except (KeyError, TypeError, ValueError):
            return None

    async def _cache_grant(self, grant: ShareGrant) -> None:
        if not self.redis_client:
            return
        remaining = int((grant.expires_at - as_utc(self.clock())).total_seconds())
        ttl = min(settings.SHARE_CACHE_TTL, remaining)
        if ttl <= 0:
            return
        await self.redis_client.set_json(
            share_cache_key(grant.token),
            {"folder_id": grant.folder_id, "expires_at": grant.expires_at.isoformat()},
            expire=ttl,
        )
