"""
Entity stores for photos and users.
"""
from photo_manager.repositories.base import PhotoStore, UserStore
from photo_manager.repositories.memory import InMemoryPhotoStore, InMemoryUserStore
from photo_manager.repositories.sql import SqlPhotoStore, SqlUserStore

__all__ = [
    "PhotoStore",
    "UserStore",
    "InMemoryPhotoStore",
    "InMemoryUserStore",
    "SqlPhotoStore",
    "SqlUserStore",
]
