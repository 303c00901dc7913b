from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import uuid

from cabinet.core.database import Base


class Folder(Base):
    __tablename__ = "folders"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)

    owner_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    # NULL marks a root folder. No ON DELETE action, so removing a parent that
    # still has children fails instead of cascading
    parent_id = Column(String(36), ForeignKey("folders.id"), nullable=True, index=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    owner = relationship("User", back_populates="folders")
    parent = relationship("Folder", remote_side=[id], back_populates="children")
    children = relationship("Folder", back_populates="parent", passive_deletes=True)
    files = relationship("File", back_populates="folder", passive_deletes=True)
    shares = relationship("SharedFolder", back_populates="folder", cascade="all, delete", passive_deletes=True)

    # Sibling names are unique per parent; roots need a partial index since NULLs never collide
    __table_args__ = (
        UniqueConstraint("owner_id", "parent_id", "name", name="uq_folders_owner_parent_name"),
        Index(
            "uq_folders_owner_root_name",
            "owner_id",
            "name",
            unique=True,
            postgresql_where=parent_id.is_(None),
            sqlite_where=parent_id.is_(None),
        ),
    )
