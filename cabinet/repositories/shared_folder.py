from datetime import datetime
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from cabinet.models.shared_folder import SharedFolder


class SharedFolderRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        token: str,
        folder_id: str,
        owner_id: str,
        created_at: datetime,
        expires_at: datetime,
    ) -> Optional[SharedFolder]:
        """Persist a share link, None if the token already exists"""
        try:
            share = SharedFolder(
                token=token,
                folder_id=folder_id,
                owner_id=owner_id,
                created_at=created_at,
                expires_at=expires_at,
            )
            self.db.add(share)
            await self.db.commit()
            await self.db.refresh(share)
            return share
        except IntegrityError:
            await self.db.rollback()
            return None

    async def get_by_token(self, token: str) -> Optional[SharedFolder]:
        """Get share link by token"""
        query = select(SharedFolder).filter(SharedFolder.token == token)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def list_for_folder(self, folder_id: str, owner_id: str) -> List[SharedFolder]:
        """Share links for a folder, newest first"""
        query = (
            select(SharedFolder)
            .filter(SharedFolder.folder_id == folder_id, SharedFolder.owner_id == owner_id)
            .order_by(SharedFolder.created_at.desc())
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())
