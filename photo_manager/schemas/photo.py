"""
Photo-related Pydantic schemas.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class PhotoFile(BaseModel):
    """
    An uploaded file as handed over by the caller.
    The size used for quota checks is the byte length of ``content``.
    """

    filename: str = Field(..., min_length=1, max_length=255)
    content: bytes
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def extension(self) -> Optional[str]:
        if "." not in self.filename:
            return None
        return self.filename.rsplit(".", 1)[-1].lower() or None


class PhotoUpdate(BaseModel):
    """Schema for updating photo metadata. Both fields replace the current values."""

    description: Optional[str] = None
    hashtags: List[str] = Field(default_factory=list)


class PhotoResponse(BaseModel):
    """Schema for photo response."""

    id: str
    filename: str
    description: Optional[str] = None
    hashtags: List[str]
    author_id: str
    author_name: str
    uploaded_at: datetime
    file_size: int
    format: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    thumbnail_path: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class UndoResponse(BaseModel):
    """Schema for the result of an undo request."""

    undone: bool
    command: Optional[str] = None
    message: str
