"""
Models package.
All models are exported here for easy import.
"""
from photo_manager.models.photo import Photo
from photo_manager.models.subscription import PackageLimits, SubscriptionPackage, UNLIMITED
from photo_manager.models.user import AuthProvider, User, UserType

__all__ = [
    "Photo",
    "User",
    "UserType",
    "AuthProvider",
    "SubscriptionPackage",
    "PackageLimits",
    "UNLIMITED",
]
