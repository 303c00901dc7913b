from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import List

from cabinet.schemas.file import File
from cabinet.schemas.folder import Folder, FolderCrumb


class ShareCreate(BaseModel):
    duration: str = Field(..., examples=["30m", "12h", "7d"])


class SharedFolder(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    token: str
    folder_id: str
    created_at: datetime
    expires_at: datetime
    is_expired: bool = False


class SharedFolderView(BaseModel):
    """Read-only listing of one folder inside a share"""
    model_config = ConfigDict(from_attributes=True)

    token: str
    expires_at: datetime
    root: Folder
    folder: Folder
    breadcrumb: List[FolderCrumb] = []
    folders: List[Folder] = []
    files: List[File] = []
