"""
SQL entity stores on async SQLAlchemy.

Each call opens its own short-lived session and commits before returning,
so returned objects are detached and safe to hand around between tasks.
"""
import logging
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from photo_manager.models.photo import Photo
from photo_manager.models.user import User
from photo_manager.repositories.base import PhotoStore, UserStore

logger = logging.getLogger("photo_manager.db")


class SqlPhotoStore(PhotoStore):

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def save(self, photo: Photo) -> Photo:
        async with self._session_maker() as session:
            try:
                merged = await session.merge(photo)
                await session.commit()
            except Exception:
                await session.rollback()
                logger.error(
                    "Photo save failed",
                    exc_info=True,
                    extra={"event": "db", "photo_id": photo.id},
                )
                raise
            return merged

    async def find_by_id(self, photo_id: str) -> Optional[Photo]:
        async with self._session_maker() as session:
            return await session.get(Photo, photo_id)

    async def find_all(self) -> List[Photo]:
        async with self._session_maker() as session:
            result = await session.execute(select(Photo).order_by(Photo.uploaded_at, Photo.id))
            return list(result.scalars().all())

    async def find_by_author(self, author_id: str) -> List[Photo]:
        async with self._session_maker() as session:
            result = await session.execute(
                select(Photo)
                .where(Photo.author_id == author_id)
                .order_by(Photo.uploaded_at, Photo.id)
            )
            return list(result.scalars().all())

    async def delete(self, photo_id: str) -> bool:
        async with self._session_maker() as session:
            result = await session.execute(delete(Photo).where(Photo.id == photo_id))
            await session.commit()
            return result.rowcount > 0


class SqlUserStore(UserStore):

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def save(self, user: User) -> User:
        async with self._session_maker() as session:
            try:
                merged = await session.merge(user)
                await session.commit()
            except Exception:
                await session.rollback()
                logger.error(
                    "User save failed",
                    exc_info=True,
                    extra={"event": "db", "user_id": user.id},
                )
                raise
            return merged

    async def find_by_id(self, user_id: str) -> Optional[User]:
        async with self._session_maker() as session:
            return await session.get(User, user_id)

    async def find_by_username(self, username: str) -> Optional[User]:
        async with self._session_maker() as session:
            result = await session.execute(select(User).where(User.username == username))
            return result.scalar_one_or_none()

    async def find_all(self) -> List[User]:
        async with self._session_maker() as session:
            result = await session.execute(select(User).order_by(User.registered_at, User.id))
            return list(result.scalars().all())

    async def delete(self, user_id: str) -> bool:
        async with self._session_maker() as session:
            result = await session.execute(delete(User).where(User.id == user_id))
            await session.commit()
            return result.rowcount > 0
