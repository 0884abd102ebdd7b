"""
Service wiring for the HTTP layer.

One ServiceContainer is built per application and kept on ``app.state``.
It owns the stores, the storage backend, the audit log, the services and
one command invoker per user session.
"""
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine

from photo_manager.config import EntityStoreType, Settings
from photo_manager.database import close_db, create_engine, create_session_maker, init_db
from photo_manager.repositories import (
    InMemoryPhotoStore,
    InMemoryUserStore,
    PhotoStore,
    SqlPhotoStore,
    SqlUserStore,
    UserStore,
)
from photo_manager.services.audit_log import AuditLog
from photo_manager.services.commands import CommandInvoker
from photo_manager.services.photo import PhotoService
from photo_manager.services.storage import StorageBackend, create_storage_backend
from photo_manager.services.user import UserService

logger = logging.getLogger("photo_manager")


@dataclass
class ServiceContainer:
    settings: Settings
    photos: PhotoStore
    users: UserStore
    storage: StorageBackend
    audit_log: AuditLog
    photo_service: PhotoService
    user_service: UserService
    engine: Optional[AsyncEngine] = None
    max_sessions: int = 1000
    _invokers: "OrderedDict[str, CommandInvoker]" = field(default_factory=OrderedDict)

    @classmethod
    def build(cls, settings: Settings, storage: Optional[StorageBackend] = None) -> "ServiceContainer":
        """Wire every component from ``settings``. Call ``start()`` before use."""
        engine = None
        if settings.entity_store == EntityStoreType.SQL:
            engine = create_engine(settings.database_url)
            session_maker = create_session_maker(engine)
            photos: PhotoStore = SqlPhotoStore(session_maker)
            users: UserStore = SqlUserStore(session_maker)
        else:
            photos = InMemoryPhotoStore()
            users = InMemoryUserStore()

        storage = storage or create_storage_backend(settings)
        audit_log = AuditLog()
        return cls(
            settings=settings,
            photos=photos,
            users=users,
            storage=storage,
            audit_log=audit_log,
            photo_service=PhotoService(
                photos, storage, audit_log, storage_timeout=settings.storage_timeout_seconds
            ),
            user_service=UserService(users, photos, audit_log),
            engine=engine,
            max_sessions=settings.max_command_sessions,
        )

    async def start(self) -> None:
        if self.engine is not None:
            await init_db(self.engine)

    async def close(self) -> None:
        await self.storage.close()
        if self.engine is not None:
            await close_db(self.engine)

    def invoker_for(self, user_id: str) -> CommandInvoker:
        """
        Command invoker of ``user_id``'s session, created on first use.

        At most ``max_sessions`` histories are kept; the least recently used
        one is dropped first (guests never log out).
        """
        invoker = self.session_invoker(user_id)
        if invoker is None:
            invoker = CommandInvoker(self.photo_service, self.audit_log)
            self._invokers[user_id] = invoker
            while len(self._invokers) > self.max_sessions:
                evicted, _ = self._invokers.popitem(last=False)
                logger.info("Command history dropped", extra={"event": "session", "user_id": evicted})
        return invoker

    def session_invoker(self, user_id: str) -> Optional[CommandInvoker]:
        """Existing invoker of ``user_id``, or None. Never creates one."""
        invoker = self._invokers.get(user_id)
        if invoker is not None:
            self._invokers.move_to_end(user_id)
        return invoker

    @property
    def session_count(self) -> int:
        return len(self._invokers)

    def end_session(self, user_id: str) -> None:
        """Forget the session's undo history."""
        self._invokers.pop(user_id, None)


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_photo_service(request: Request) -> PhotoService:
    return get_container(request).photo_service


def get_user_service(request: Request) -> UserService:
    return get_container(request).user_service
