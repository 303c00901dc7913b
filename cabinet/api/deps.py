from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from cabinet.core.database import get_db
from cabinet.core.minio import MinioClient, get_minio
from cabinet.core.redis import RedisClient, get_redis
from cabinet.core.security import decode_token
from cabinet.core.storage import StorageAdapter
from cabinet.repositories.user import UserRepository
from cabinet.schemas.user import Principal
from cabinet.services.file import FileService
from cabinet.services.folder import FolderService
from cabinet.services.share import ShareService
from cabinet.utils.exceptions import AuthenticationError

bearer_scheme = HTTPBearer(auto_error=False)


async def get_storage(minio: MinioClient = Depends(get_minio)) -> StorageAdapter:
    return StorageAdapter(minio)


async def _principal_from_credentials(
    credentials: Optional[HTTPAuthorizationCredentials],
    db: AsyncSession,
) -> Optional[Principal]:
    if not credentials:
        return None

    payload = decode_token(credentials.credentials)
    if not payload or payload.get("type") != "access" or not payload.get("sub"):
        return None

    user = await UserRepository(db).get_by_id(payload["sub"])
    if not user:
        return None
    return Principal.model_validate(user)


async def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Principal:
    """Authenticated caller, or 401"""
    principal = await _principal_from_credentials(credentials, db)
    if not principal:
        raise AuthenticationError("Could not validate credentials")
    return principal


async def get_optional_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Optional[Principal]:
    """Authenticated caller, or None for anonymous access to public files"""
    return await _principal_from_credentials(credentials, db)


async def get_folder_service(
    db: AsyncSession = Depends(get_db),
    redis_client: RedisClient = Depends(get_redis),
) -> FolderService:
    return FolderService(db, redis_client)


async def get_file_service(
    db: AsyncSession = Depends(get_db),
    storage: StorageAdapter = Depends(get_storage),
) -> FileService:
    return FileService(db, storage)


async def get_share_service(
    db: AsyncSession = Depends(get_db),
    storage: StorageAdapter = Depends(get_storage),
    redis_client: RedisClient = Depends(get_redis),
) -> ShareService:
    return ShareService(db, storage, redis_client)
