"""
In-memory entity stores.

Dictionaries keyed by id; insertion order is preserved, which gives
find_all its oldest-first order.
"""
from typing import Dict, List, Optional

from photo_manager.models.photo import Photo
from photo_manager.models.user import User
from photo_manager.repositories.base import PhotoStore, UserStore


class InMemoryPhotoStore(PhotoStore):

    def __init__(self):
        self._photos: Dict[str, Photo] = {}

    async def save(self, photo: Photo) -> Photo:
        self._photos[photo.id] = photo
        return photo

    async def find_by_id(self, photo_id: str) -> Optional[Photo]:
        return self._photos.get(photo_id)

    async def find_all(self) -> List[Photo]:
        return list(self._photos.values())

    async def find_by_author(self, author_id: str) -> List[Photo]:
        return [p for p in self._photos.values() if p.author_id == author_id]

    async def delete(self, photo_id: str) -> bool:
        return self._photos.pop(photo_id, None) is not None

    def __len__(self) -> int:
        return len(self._photos)


class InMemoryUserStore(UserStore):

    def __init__(self):
        self._users: Dict[str, User] = {}

    async def save(self, user: User) -> User:
        self._users[user.id] = user
        return user

    async def find_by_id(self, user_id: str) -> Optional[User]:
        return self._users.get(user_id)

    async def find_by_username(self, username: str) -> Optional[User]:
        for user in self._users.values():
            if user.username == username:
                return user
        return None

    async def find_all(self) -> List[User]:
        return list(self._users.values())

    async def delete(self, user_id: str) -> bool:
        return self._users.pop(user_id, None) is not None
