from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import List, Optional


class FolderCreate(BaseModel):
    name: str
    description: Optional[str] = None
    parent_id: Optional[str] = None


class FolderUpdate(BaseModel):
    name: str
    description: Optional[str] = None
    # None moves the folder to the root level
    parent_id: Optional[str] = None


class Folder(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: Optional[str] = None
    owner_id: str
    parent_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class FolderSummary(Folder):
    child_count: int = 0
    file_count: int = 0


class FolderCrumb(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str


class FolderPath(BaseModel):
    folder_id: str
    path: List[FolderCrumb]
