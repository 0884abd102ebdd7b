"""
Audit log response schema.
"""
from datetime import datetime

from pydantic import BaseModel, ConfigDict


class AuditEntryResponse(BaseModel):
    """One audit entry, structured and rendered."""

    timestamp: datetime
    actor: str
    action: str
    line: str

    model_config = ConfigDict(from_attributes=True)
