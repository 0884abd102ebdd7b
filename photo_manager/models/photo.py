"""
Photo model for storing photo metadata.
Actual photo bytes live in the configured storage backend.
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import JSON, BigInteger, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from photo_manager.database import Base


class Photo(Base):
    """
    Photo model for storing photo metadata.

    ``id``, ``author_id``, ``author_name``, ``uploaded_at``, ``file_size``
    and ``storage_path`` are fixed at creation; only ``description`` and
    ``hashtags`` change afterwards.
    """

    __tablename__ = "photos"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    author_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    author_name: Mapped[str] = mapped_column(String(100), nullable=False)

    # File metadata
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    format: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    width: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    height: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Storage information
    storage_path: Mapped[str] = mapped_column(String(500), nullable=False)
    thumbnail_path: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Mutable metadata
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    hashtags: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    uploaded_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    def __repr__(self) -> str:
        return f"<Photo(id={self.id}, filename={self.filename})>"
