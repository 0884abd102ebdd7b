"""
User model for authentication and quota management.
"""
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, DateTime, String
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from photo_manager.database import Base
from photo_manager.models.subscription import SubscriptionPackage


class UserType(str, Enum):
    """User classes; administrators may act on any photo."""
    ANONYMOUS = "ANONYMOUS"
    REGISTERED = "REGISTERED"
    ADMINISTRATOR = "ADMINISTRATOR"


class AuthProvider(str, Enum):
    """Identity provider a user registered with."""
    LOCAL = "LOCAL"
    GOOGLE = "GOOGLE"
    GITHUB = "GITHUB"


class User(Base):
    """User model for storing user account information."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    username: Mapped[str] = mapped_column(
        String(100), unique=True, index=True, nullable=False
    )
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    hashed_password: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    user_type: Mapped[UserType] = mapped_column(
        SAEnum(UserType), nullable=False, default=UserType.REGISTERED
    )
    subscription_package: Mapped[SubscriptionPackage] = mapped_column(
        SAEnum(SubscriptionPackage), nullable=False, default=SubscriptionPackage.FREE
    )
    auth_provider: Mapped[AuthProvider] = mapped_column(
        SAEnum(AuthProvider), nullable=False, default=AuthProvider.LOCAL
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    registered_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    @property
    def is_admin(self) -> bool:
        return self.user_type == UserType.ADMINISTRATOR

    @property
    def is_anonymous(self) -> bool:
        return self.user_type == UserType.ANONYMOUS

    def __repr__(self) -> str:
        return f"<User(id={self.id}, type={self.user_type.value})>"
