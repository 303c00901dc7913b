from typing import Optional
from pydantic import BaseModel, ConfigDict
from datetime import datetime


class File(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    filename: str
    original_name: str
    mime_type: str
    size: int
    description: Optional[str] = None
    is_public: bool
    owner_id: str
    folder_id: Optional[str] = None
    uploaded_at: datetime


class FolderAssignment(BaseModel):
    # None moves the file back to the root level
    folder_id: Optional[str] = None


class FileUrl(BaseModel):
    url: str
    expires_in: Optional[int] = None  # seconds
