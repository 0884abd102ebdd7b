"""
Search criteria schema.
"""
from datetime import datetime
from typing import FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from photo_manager.utils.timeutils import to_naive_utc


class SearchCriteria(BaseModel):
    """
    Photo search criteria. Every field is optional; absent fields impose no
    constraint.

    - hashtags: photo matches if it carries ANY of them
    - min_size / max_size: inclusive byte bounds
    - start_date / end_date: inclusive upload time bounds
    - author: case-insensitive exact match on the author's name
    """

    hashtags: Optional[FrozenSet[str]] = None
    min_size: Optional[int] = None
    max_size: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    author: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_dates(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)
