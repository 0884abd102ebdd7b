"""
Entity store interfaces.

Stores are plain persistence: no ownership checks, no quota logic. The
photo service is the only writer of the photo store.
"""
from abc import ABC, abstractmethod
from typing import List, Optional

from photo_manager.models.photo import Photo
from photo_manager.models.user import User


class PhotoStore(ABC):
    """Persistence for Photo metadata."""

    @abstractmethod
    async def save(self, photo: Photo) -> Photo:
        """Insert or replace by id. Returns the stored photo."""

    @abstractmethod
    async def find_by_id(self, photo_id: str) -> Optional[Photo]:
        ...

    @abstractmethod
    async def find_all(self) -> List[Photo]:
        """All photos, oldest upload first."""

    @abstractmethod
    async def find_by_author(self, author_id: str) -> List[Photo]:
        ...

    @abstractmethod
    async def delete(self, photo_id: str) -> bool:
        """Remove by id. False if nothing was stored under ``photo_id``."""


class UserStore(ABC):
    """Persistence for users."""

    @abstractmethod
    async def save(self, user: User) -> User:
        ...

    @abstractmethod
    async def find_by_id(self, user_id: str) -> Optional[User]:
        ...

    @abstractmethod
    async def find_by_username(self, username: str) -> Optional[User]:
        ...

    @abstractmethod
    async def find_all(self) -> List[User]:
        """All users, in registration order."""

    @abstractmethod
    async def delete(self, user_id: str) -> bool:
        ...
