from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_, update

from cabinet.models.file import File

# Sentinel for "any folder" in list queries, since None means the root level
ANY_FOLDER = object()


class FileRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        owner_id: str,
        folder_id: Optional[str],
        filename: str,
        original_name: str,
        mime_type: str,
        size: int,
        storage_path: str,
        description: Optional[str],
        is_public: bool,
    ) -> File:
        """Create a new file record"""
        db_file = File(
            filename=filename,
            original_name=original_name,
            mime_type=mime_type,
            size=size,
            storage_path=storage_path,
            description=description,
            is_public=is_public,
            owner_id=owner_id,
            folder_id=folder_id,
        )
        self.db.add(db_file)
        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        await self.db.refresh(db_file)
        return db_file

    async def get_by_id(self, file_id: str) -> Optional[File]:
        """Get file by ID"""
        query = select(File).filter(File.id == file_id)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_owned(self, file_id: str, owner_id: str) -> Optional[File]:
        """Get file only if it belongs to owner"""
        query = select(File).filter(File.id == file_id, File.owner_id == owner_id)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_visible(self, file_id: str, requester_id: Optional[str]) -> Optional[File]:
        """Get file if requester owns it or it is public"""
        visibility = File.is_public.is_(True)
        if requester_id is not None:
            visibility = or_(File.owner_id == requester_id, visibility)
        query = select(File).filter(File.id == file_id, visibility)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def list_for_owner(self, owner_id: str, folder_id=ANY_FOLDER) -> List[File]:
        """Owner's files newest first, optionally narrowed to one folder (None = root)"""
        query = select(File).filter(File.owner_id == owner_id)
        if folder_id is None:
            query = query.filter(File.folder_id.is_(None))
        elif folder_id is not ANY_FOLDER:
            query = query.filter(File.folder_id == folder_id)
        result = await self.db.execute(query.order_by(File.uploaded_at.desc()))
        return list(result.scalars().all())

    async def list_in_folder(self, folder_id: str) -> List[File]:
        """Files directly inside a folder by original name, regardless of owner"""
        query = select(File).filter(File.folder_id == folder_id).order_by(File.original_name.asc())
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_legacy(self) -> List[File]:
        """Rows written before storage paths existed"""
        query = select(File).filter(File.storage_path.is_(None), File.legacy_path.isnot(None))
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def set_folder(self, file: File, folder_id: Optional[str]) -> File:
        file.folder_id = folder_id
        await self.db.commit()
        await self.db.refresh(file)
        return file

    async def set_storage_path(self, file_id: str, storage_path: str) -> None:
        await self.db.execute(
            update(File).where(File.id == file_id).values(storage_path=storage_path)
        )
        await self.db.commit()

    async def delete(self, file: File) -> None:
        """Delete file record"""
        await self.db.delete(file)
        await self.db.commit()
