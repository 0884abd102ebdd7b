"""
Byte storage backends.

The facade only talks to the StorageBackend interface; which backend is used
is a configuration decision made by create_storage_backend().

Layout:
- local:  {root}/{owner}/{uuid}.{ext}
- memory: memory://{owner}/{uuid}.{ext}
- object: {container}/{owner}/{uuid}.{ext}
"""
import asyncio
import logging
import os
import re
import tempfile
import threading
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Set, Tuple

from photo_manager.config import Settings, StorageBackendType
from photo_manager.exceptions import StorageFailureError
from photo_manager.utils.metrics import storage_failures_total

logger = logging.getLogger("photo_manager.storage")

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


def _safe_segment(value: str) -> str:
    """Path segment safe for every backend (no separators, no dot-dot)."""
    cleaned = _UNSAFE_CHARS.sub("_", value).strip(".")
    return cleaned or "_"


def object_name_for(owner_id: str, filename: Optional[str] = None) -> str:
    """Unique ``owner/uuid.ext`` object name for a new upload."""
    ext = ""
    if filename and "." in filename:
        ext = "." + _safe_segment(filename.rsplit(".", 1)[-1].lower())
    return f"{_safe_segment(owner_id)}/{uuid.uuid4().hex}{ext}"


class StorageBackend(ABC):
    """
    Durable home for photo bytes.

    upload/download raise StorageFailureError; delete reports failure by
    returning False and never raises.
    """

    name: str = "base"

    @abstractmethod
    async def upload(self, content: bytes, owner_id: str, filename: Optional[str] = None) -> str:
        """Persist ``content`` and return the backend-assigned path."""

    @abstractmethod
    async def download(self, path: str) -> bytes:
        """Return the bytes stored under ``path``."""

    @abstractmethod
    async def delete(self, path: str) -> bool:
        """Release ``path``. True on success (or if it was already gone)."""

    async def close(self) -> None:
        """Release backend resources (connections, clients)."""
        return None

    def _failure(self, operation: str, message: str, exc: Optional[BaseException] = None) -> StorageFailureError:
        storage_failures_total.labels(backend=self.name, operation=operation).inc()
        logger.error(
            message,
            exc_info=exc,
            extra={"event": "storage", "backend": self.name, "operation": operation},
        )
        return StorageFailureError(message, operation=operation)


class LocalStorageBackend(StorageBackend):
    """
    Filesystem backend.

    Each owner gets a directory under ``root``; files get unique names.
    Writes go to a temporary file that is renamed into place, so a failed
    upload never leaves a partial file behind.
    """

    name = "local"

    def __init__(self, root: str):
        self.root = Path(root).resolve()
        self._abandoned: Set[asyncio.Future] = set()

    def _resolve(self, path: str) -> Path:
        target = Path(path).resolve()
        if self.root != target and self.root not in target.parents:
            raise ValueError(f"Path outside storage root: {path}")
        return target

    def _write(self, content: bytes, owner_id: str, filename: Optional[str]) -> str:
        target = self.root / object_name_for(owner_id, filename)
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=target.parent, prefix=".upload-")
        try:
            with os.fdopen(fd, "wb") as tmp:
                tmp.write(content)
            os.replace(tmp_path, target)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
        return str(target)

    async def upload(self, content: bytes, owner_id: str, filename: Optional[str] = None) -> str:
        """
        Write ``content`` in a worker thread.

        A cancelled upload (e.g. a timeout) cannot stop the thread; the file
        it produces is removed once the write completes.
        """
        write = asyncio.ensure_future(asyncio.to_thread(self._write, content, owner_id, filename))
        try:
            return await asyncio.shield(write)
        except asyncio.CancelledError:
            cleanup = asyncio.ensure_future(self._discard_when_written(write, owner_id))
            self._abandoned.add(cleanup)
            cleanup.add_done_callback(self._abandoned.discard)
            raise
        except OSError as e:
            raise self._failure("upload", f"Failed to store file for {owner_id}: {e}", e) from e

    async def _discard_when_written(self, write: "asyncio.Future[str]", owner_id: str) -> None:
        try:
            path = await write
        except OSError:
            # _write already removed its temporary file
            return
        removed = await self.delete(path)
        logger.warning(
            "Removed file of abandoned upload",
            extra={"event": "storage", "backend": self.name, "user_id": owner_id, "removed": removed},
        )

    async def close(self) -> None:
        """Wait for abandoned uploads to be cleaned up."""
        if self._abandoned:
            await asyncio.gather(*self._abandoned, return_exceptions=True)

    async def download(self, path: str) -> bytes:
        try:
            target = self._resolve(path)
            return await asyncio.to_thread(target.read_bytes)
        except (OSError, ValueError) as e:
            raise self._failure("download", f"Failed to read {path}: {e}", e) from e

    async def delete(self, path: str) -> bool:
        try:
            target = self._resolve(path)
            await asyncio.to_thread(target.unlink, True)
            return True
        except (OSError, ValueError) as e:
            storage_failures_total.labels(backend=self.name, operation="delete").inc()
            logger.error(
                "File deletion failed",
                exc_info=e,
                extra={"event": "storage", "backend": self.name, "operation": "delete"},
            )
            return False


class InMemoryStorageBackend(StorageBackend):
    """Dictionary-backed backend for tests and throwaway deployments."""

    name = "memory"
    scheme = "memory://"

    def __init__(self):
        self._objects: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    async def upload(self, content: bytes, owner_id: str, filename: Optional[str] = None) -> str:
        path = f"{self.scheme}{object_name_for(owner_id, filename)}"
        with self._lock:
            self._objects[path] = bytes(content)
        return path

    async def download(self, path: str) -> bytes:
        with self._lock:
            content = self._objects.get(path)
        if content is None:
            raise self._failure("download", f"No object stored at {path}")
        return content

    async def delete(self, path: str) -> bool:
        with self._lock:
            self._objects.pop(path, None)
        return True

    @property
    def paths(self) -> Tuple[str, ...]:
        with self._lock:
            return tuple(self._objects)

    def __contains__(self, path: object) -> bool:
        with self._lock:
            return path in self._objects

    def __len__(self) -> int:
        with self._lock:
            return len(self._objects)


def create_storage_backend(settings: Settings) -> StorageBackend:
    """Backend selected by ``settings.storage_backend``."""
    if settings.storage_backend == StorageBackendType.MEMORY:
        return InMemoryStorageBackend()
    if settings.storage_backend == StorageBackendType.OBJECT:
        # object_storage subclasses StorageBackend from this module
        from photo_manager.services.object_storage import ObjectStorageBackend

        return ObjectStorageBackend(settings)
    return LocalStorageBackend(settings.local_storage_root)
