from sqlalchemy import Column, String, ForeignKey, DateTime, BigInteger, Text, Boolean
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import uuid

from cabinet.core.database import Base


class File(Base):
    __tablename__ = "files"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    filename = Column(String, nullable=False)
    original_name = Column(String, nullable=False)
    mime_type = Column(String, nullable=False)
    size = Column(BigInteger, nullable=False)

    # Object storage key; NULL only on rows written before the storage migration
    storage_path = Column(String, unique=True, nullable=True, index=True)
    legacy_path = Column(String, nullable=True)

    # Optional metadata
    description = Column(Text, nullable=True)
    is_public = Column(Boolean, nullable=False, default=False)

    # Owner relationship
    owner_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    owner = relationship("User", back_populates="files")

    folder_id = Column(String(36), ForeignKey("folders.id", ondelete="SET NULL"), nullable=True, index=True)
    folder = relationship("Folder", back_populates="files")

    uploaded_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    @property
    def is_legacy(self) -> bool:
        return self.storage_path is None
