"""
Pydantic schemas package.
All schemas are exported here for easy import.
"""
from photo_manager.schemas.user import (
    UserCreate,
    UserResponse,
    UserLogin,
    UserDetails,
    SubscriptionChange,
    SystemStatistics,
    Token,
    TokenPayload,
)
from photo_manager.schemas.photo import (
    PhotoFile,
    PhotoResponse,
    PhotoUpdate,
    UndoResponse,
)
from photo_manager.schemas.search import SearchCriteria
from photo_manager.schemas.audit import AuditEntryResponse

__all__ = [
    # User schemas
    "UserCreate",
    "UserResponse",
    "UserLogin",
    "UserDetails",
    "SubscriptionChange",
    "SystemStatistics",
    "Token",
    "TokenPayload",
    # Photo schemas
    "PhotoFile",
    "PhotoResponse",
    "PhotoUpdate",
    "UndoResponse",
    # Search
    "SearchCriteria",
    # Audit
    "AuditEntryResponse",
]
