"""FileEntry SQLAlchemy model and Pydantic schemas."""

import enum
import uuid
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict
from sqlalchemy import BigInteger, DateTime, Enum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from filedock.db.session import Base

# mime_type value stored on folder rows
FOLDER_MIME_TYPE = "folder"


class FileType(str, enum.Enum):
    """Catalog category of an entry. Files get theirs from the MIME type."""

    FOLDER = "folder"
    DOCUMENT = "document"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    TEXT = "text"
    OTHER = "other"
    PDF = "pdf"


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FileEntry(Base):
    """A file or folder in the catalog.

    Folders have an empty path; a file's path is relative to the storage root
    with forward slashes. parent_id points at a folder row (None = root).
    """

    __tablename__ = "files"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[FileType] = mapped_column(
        Enum(
            FileType,
            native_enum=False,
            length=16,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
    )
    path: Mapped[str] = mapped_column(String(2048), nullable=False, default="")
    size: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    mime_type: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    parent_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("files.id"), nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    @property
    def is_folder(self) -> bool:
        return self.type == FileType.FOLDER

    def __repr__(self) -> str:
        return f"FileEntry(id={self.id!r}, name={self.name!r}, type={self.type.value!r})"


# Pydantic schemas for API
class FileEntryResponse(BaseModel):
    """Entry as returned by API. Cached content is served by /content only."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    type: FileType
    path: str
    size: int
    mime_type: str
    parent_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class FolderCreate(BaseModel):
    """Request body for creating a folder."""

    name: str
    parent_id: Optional[str] = None


class ContentUpdate(BaseModel):
    """Request body for replacing a text file's content."""

    content: str


class ContentResponse(BaseModel):
    """Text content of a file."""

    content: str


class FileTypeStats(BaseModel):
    """Per-type count and total size."""

    type: FileType
    count: int
    total_size: int
