"""
User-related Pydantic schemas for request/response validation.
"""
from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from photo_manager.models.subscription import SubscriptionPackage
from photo_manager.models.user import AuthProvider, UserType


class UserCreate(BaseModel):
    """Schema for user registration."""

    username: str = Field(..., min_length=3, max_length=100)
    email: EmailStr
    password: Optional[str] = Field(None, min_length=8, max_length=100)
    subscription_package: SubscriptionPackage = SubscriptionPackage.FREE
    auth_provider: AuthProvider = AuthProvider.LOCAL


class UserLogin(BaseModel):
    """Schema for user login."""

    username: str
    password: str
    auth_provider: AuthProvider = AuthProvider.LOCAL


class UserResponse(BaseModel):
    """Schema for user response (excludes sensitive data)."""

    id: str
    username: str
    email: Optional[str] = None
    user_type: UserType
    subscription_package: SubscriptionPackage
    auth_provider: AuthProvider
    registered_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SubscriptionChange(BaseModel):
    """Schema for an administrator changing a user's package."""

    subscription_package: SubscriptionPackage


class UserDetails(BaseModel):
    """Per-user summary shown to administrators."""

    user: UserResponse
    photo_count: int
    action_count: int
    storage_used: int


class SystemStatistics(BaseModel):
    """Totals across all users and photos."""

    total_users: int
    total_photos: int
    users_by_type: Dict[str, int]
    users_by_package: Dict[str, int]
    total_storage_used: int


class Token(BaseModel):
    """Schema for JWT token response."""

    access_token: str
    token_type: str = "bearer"


class TokenPayload(BaseModel):
    """Schema for JWT token payload."""

    sub: str  # User ID
    exp: datetime
