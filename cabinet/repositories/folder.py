from typing import List, Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import aliased

from cabinet.models.folder import Folder
from cabinet.models.file import File
from cabinet.models.shared_folder import SharedFolder


class FolderRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        owner_id: str,
        name: str,
        description: Optional[str],
        parent_id: Optional[str],
    ) -> Optional[Folder]:
        """Create a folder, None if a sibling with the same name won the race"""
        try:
            folder = Folder(
                owner_id=owner_id,
                name=name,
                description=description,
                parent_id=parent_id,
            )
            self.db.add(folder)
            await self.db.commit()
            await self.db.refresh(folder)
            return folder
        except IntegrityError:
            await self.db.rollback()
            return None

    async def get_by_id(self, folder_id: str) -> Optional[Folder]:
        """Get folder by ID regardless of owner"""
        query = select(Folder).filter(Folder.id == folder_id)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_owned(self, folder_id: str, owner_id: str) -> Optional[Folder]:
        """Get folder only if it belongs to owner"""
        query = select(Folder).filter(Folder.id == folder_id, Folder.owner_id == owner_id)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def lock_owned(self, folder_id: str, owner_id: str) -> Optional[Folder]:
        """Get an owned folder with a row lock held until the transaction ends.

        Inserting a child folder or file takes a key-share lock on the parent
        row for its foreign key, so those writes wait on this lock.
        """
        query = (
            select(Folder)
            .filter(Folder.id == folder_id, Folder.owner_id == owner_id)
            .with_for_update()
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_parent_id(self, folder_id: str) -> Optional[str]:
        """Parent of a folder; raises LookupError if the folder does not exist"""
        query = select(Folder.id, Folder.parent_id).filter(Folder.id == folder_id)
        result = await self.db.execute(query)
        row = result.first()
        if row is None:
            raise LookupError(folder_id)
        return row.parent_id

    async def get_many(self, folder_ids: List[str]) -> List[Folder]:
        if not folder_ids:
            return []
        query = select(Folder).filter(Folder.id.in_(folder_ids))
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def find_sibling(
        self,
        owner_id: str,
        parent_id: Optional[str],
        name: str,
        exclude_id: Optional[str] = None,
    ) -> Optional[Folder]:
        """Folder with this name under the same parent"""
        query = select(Folder).filter(
            Folder.owner_id == owner_id,
            Folder.name == name,
            Folder.parent_id.is_(None) if parent_id is None else Folder.parent_id == parent_id,
        )
        if exclude_id is not None:
            query = query.filter(Folder.id != exclude_id)
        result = await self.db.execute(query)
        return result.scalars().first()

    async def list_child_ids(self, parent_ids: List[str]) -> List[str]:
        """Ids of the folders directly under any of parent_ids"""
        if not parent_ids:
            return []
        query = select(Folder.id).filter(Folder.parent_id.in_(parent_ids))
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_children(self, parent_id: str) -> List[Folder]:
        """Immediate child folders by name, regardless of owner"""
        query = select(Folder).filter(Folder.parent_id == parent_id).order_by(Folder.name.asc())
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_with_counts(
        self,
        owner_id: str,
        parent_id: Optional[str],
    ) -> List[Tuple[Folder, int, int]]:
        """Immediate children of parent_id (roots when None) with child-folder and file counts"""
        child = aliased(Folder)
        child_count = (
            select(func.count(child.id))
            .where(child.parent_id == Folder.id)
            .correlate(Folder)
            .scalar_subquery()
        )
        file_count = (
            select(func.count(File.id))
            .where(File.folder_id == Folder.id)
            .correlate(Folder)
            .scalar_subquery()
        )

        query = (
            select(Folder, child_count.label("child_count"), file_count.label("file_count"))
            .filter(
                Folder.owner_id == owner_id,
                Folder.parent_id.is_(None) if parent_id is None else Folder.parent_id == parent_id,
            )
            .order_by(Folder.name.asc())
        )
        result = await self.db.execute(query)
        return [(row[0], row.child_count or 0, row.file_count or 0) for row in result.all()]

    async def list_all(self, owner_id: str) -> List[Folder]:
        """Every folder the owner has, by name"""
        query = select(Folder).filter(Folder.owner_id == owner_id).order_by(Folder.name.asc())
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def count_contents(self, folder_id: str) -> Tuple[int, int]:
        """(child folder count, file count)"""
        children = await self.db.execute(
            select(func.count(Folder.id)).filter(Folder.parent_id == folder_id)
        )
        files = await self.db.execute(
            select(func.count(File.id)).filter(File.folder_id == folder_id)
        )
        return children.scalar_one(), files.scalar_one()

    async def update(
        self,
        folder: Folder,
        name: str,
        description: Optional[str],
        parent_id: Optional[str],
    ) -> Optional[Folder]:
        """Rename/move a folder, None if the new sibling slot is already taken"""
        folder.name = name
        folder.description = description
        folder.parent_id = parent_id
        try:
            await self.db.commit()
            await self.db.refresh(folder)
            return folder
        except IntegrityError:
            await self.db.rollback()
            return None

    async def delete(self, folder: Folder) -> Optional[List[str]]:
        """Delete a folder and its share links; returns the revoked tokens.

        None if the database refused because the folder gained a child.
        """
        folder_id = folder.id
        try:
            tokens_result = await self.db.execute(
                select(SharedFolder.token).filter(SharedFolder.folder_id == folder_id)
            )
            tokens = list(tokens_result.scalars().all())

            await self.db.execute(delete(SharedFolder).where(SharedFolder.folder_id == folder_id))
            await self.db.delete(folder)
            await self.db.commit()
            return tokens
        except IntegrityError:
            await self.db.rollback()
            return None
