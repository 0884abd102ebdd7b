"""
Photo service: the single entry point for photo ingestion, search and
modification.

It is the only component that writes to the photo store and the storage
backend. Quota checks, processing, storage and persistence of one upload
run under the author's lock; every mutation of one photo runs under that
photo's lock.
"""
import asyncio
import logging
import uuid
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar

from photo_manager.exceptions import (
    MutationStatus,
    ProcessingFailureError,
    QuotaExceededError,
    StorageFailureError,
)
from photo_manager.models.photo import Photo
from photo_manager.models.user import User
from photo_manager.repositories.base import PhotoStore
from photo_manager.schemas.photo import PhotoFile
from photo_manager.schemas.search import SearchCriteria
from photo_manager.services.audit_log import SYSTEM_ACTOR, AuditLog
from photo_manager.services.processing import ProcessedImage, ProcessingPipeline
from photo_manager.services.search import filter_photos
from photo_manager.services.storage import StorageBackend
from photo_manager.utils.locks import KeyedLock
from photo_manager.utils.metrics import (
    photo_mutations_total,
    photo_upload_file_size_bytes,
    photo_upload_total,
    quota_rejections_total,
)
from photo_manager.utils.timeutils import utcnow

logger = logging.getLogger("photo_manager.photo")

T = TypeVar("T")


def can_modify(user: User, photo: Photo) -> bool:
    """Administrators may modify any photo; everyone else only their own."""
    return user.is_admin or user.id == photo.author_id


class PhotoService:
    """
    Orchestrates photo ingestion, search and modification.

    Args:
        photos: photo entity store
        storage: byte storage backend
        audit_log: process-wide audit log
        storage_timeout: upper bound (seconds) for a single storage call
    """

    def __init__(
        self,
        photos: PhotoStore,
        storage: StorageBackend,
        audit_log: AuditLog,
        storage_timeout: float = 30.0,
    ):
        self.photos = photos
        self.storage = storage
        self.audit_log = audit_log
        self.storage_timeout = storage_timeout
        self._author_locks = KeyedLock()
        self._photo_locks = KeyedLock()

    can_modify = staticmethod(can_modify)

    async def _bounded(self, awaitable: Awaitable[T], operation: str) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.storage_timeout)
        except asyncio.TimeoutError as e:
            logger.error(
                f"Storage {operation} timed out after {self.storage_timeout}s",
                extra={"event": "storage", "backend": self.storage.name, "operation": operation},
            )
            raise StorageFailureError(
                f"Storage {operation} timed out after {self.storage_timeout}s",
                operation=operation,
            ) from e

    async def _release(self, path: str) -> bool:
        try:
            return await self._bounded(self.storage.delete(path), "delete")
        except StorageFailureError:
            return False

    def _reject(self, user: User, reason: str, message: str) -> QuotaExceededError:
        package = user.subscription_package
        quota_rejections_total.labels(reason=reason, package=package.value).inc()
        photo_upload_total.labels(result="quota").inc()
        self.audit_log.append(user.id, f"Upload failed: Limit exceeded ({message})")
        logger.warning(
            "Upload rejected by quota",
            extra={"event": "photo", "user_id": user.id, "reason": reason, "package": package.value},
        )
        return QuotaExceededError(message, reason=reason)

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    async def upload(
        self,
        user: User,
        file: PhotoFile,
        description: Optional[str] = None,
        hashtags: Sequence[str] = (),
        pipeline: Optional[ProcessingPipeline] = None,
    ) -> Photo:
        """
        Ingest ``file`` for ``user``.

        Returns:
            The saved Photo

        Raises:
            QuotaExceededError: file too large or photo count at the limit;
                nothing is stored
            ProcessingFailureError: a pipeline stage failed; nothing is stored
            StorageFailureError: the backend could not persist the bytes
        """
        limits = user.subscription_package.limits
        size = file.size
        photo_upload_file_size_bytes.observe(size)

        if not limits.allows_upload_size(size):
            raise self._reject(
                user,
                QuotaExceededError.SIZE,
                f"file size {size} bytes exceeds the {user.subscription_package.value} limit of "
                f"{limits.max_upload_size} bytes",
            )

        async with self._author_locks.acquire(user.id):
            existing = await self.photos.find_by_author(user.id)
            if not limits.allows_photo_count(len(existing)):
                raise self._reject(
                    user,
                    QuotaExceededError.COUNT,
                    f"photo count {len(existing)} has reached the {user.subscription_package.value} "
                    f"limit of {limits.max_total_photos}",
                )

            pipeline = pipeline or ProcessingPipeline()
            try:
                image = pipeline.apply(ProcessedImage.from_file(file))
            except ProcessingFailureError as e:
                photo_upload_total.labels(result="processing").inc()
                self.audit_log.append(user.id, f"Upload failed: {e}")
                raise

            try:
                storage_path = await self._bounded(
                    self.storage.upload(image.content, user.id, file.filename), "upload"
                )
            except StorageFailureError as e:
                photo_upload_total.labels(result="storage").inc()
                self.audit_log.append(user.id, f"Upload failed: {e}")
                raise

            photo = Photo(
                id=uuid.uuid4().hex,
                author_id=user.id,
                author_name=user.username,
                filename=file.filename,
                file_size=size,
                format=image.format,
                width=image.width,
                height=image.height,
                storage_path=storage_path,
                description=description,
                hashtags=list(hashtags),
                uploaded_at=utcnow(),
            )
            try:
                photo = await self.photos.save(photo)
            except Exception as e:
                photo_upload_total.labels(result="failure").inc()
                released = await self._release(storage_path)
                logger.error(
                    "Photo metadata save failed",
                    exc_info=e,
                    extra={"event": "photo", "user_id": user.id, "released": released},
                )
                self.audit_log.append(user.id, f"Upload failed: {e}")
                raise

        photo_upload_total.labels(result="success").inc()
        self.audit_log.append(user.id, f"Photo uploaded: {photo.filename}")
        logger.info(
            "Photo uploaded",
            extra={"event": "photo", "photo_id": photo.id, "user_id": user.id, "size": size},
        )
        return photo

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def search(self, criteria: SearchCriteria) -> List[Photo]:
        """Photos matching every set criterion. Always audited."""
        results = filter_photos(await self.photos.find_all(), criteria)
        self.audit_log.append(SYSTEM_ACTOR, "Photo search performed")
        return results

    async def get_photo(self, photo_id: str) -> Optional[Photo]:
        return await self.photos.find_by_id(photo_id)

    async def recent_photos(self, limit: int = 10) -> List[Photo]:
        """Newest uploads first."""
        photos = await self.photos.find_all()
        photos.sort(key=lambda p: p.uploaded_at, reverse=True)
        return photos[:limit]

    async def download(self, user: User, photo_id: str) -> Optional[bytes]:
        """
        Bytes of a photo, or None if no such photo exists.

        Raises:
            StorageFailureError: the backend could not return the bytes
        """
        photo = await self.photos.find_by_id(photo_id)
        if photo is None:
            return None
        content = await self._bounded(self.storage.download(photo.storage_path), "download")
        self.audit_log.append(user.id, f"Downloaded photo: {photo_id}")
        return content

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _denied(self, operation: str, user: User, photo_id: str, status: MutationStatus) -> MutationStatus:
        photo_mutations_total.labels(operation=operation, status=status.value).inc()
        logger.warning(
            f"Photo {operation} not applied",
            extra={"event": "photo", "photo_id": photo_id, "user_id": user.id, "status": status.value},
        )
        return status

    async def update(
        self,
        user: User,
        photo_id: str,
        description: Optional[str],
        hashtags: Sequence[str],
        before_change: Optional[Callable[[Photo], None]] = None,
    ) -> MutationStatus:
        """
        Replace description and hashtags of a photo ``user`` may modify.

        ``before_change`` sees the photo under the photo lock, right before it
        is modified, and only when the update is applied.
        """
        async with self._photo_locks.acquire(photo_id):
            photo = await self.photos.find_by_id(photo_id)
            if photo is None:
                return self._denied("update", user, photo_id, MutationStatus.NOT_FOUND)
            if not can_modify(user, photo):
                return self._denied("update", user, photo_id, MutationStatus.FORBIDDEN)

            if before_change is not None:
                before_change(photo)
            photo.description = description
            photo.hashtags = list(hashtags)
            await self.photos.save(photo)

        photo_mutations_total.labels(operation="update", status=MutationStatus.APPLIED.value).inc()
        self.audit_log.append(user.id, f"Photo updated: {photo_id}")
        return MutationStatus.APPLIED

    async def delete(self, user: User, photo_id: str) -> MutationStatus:
        """
        Delete a photo ``user`` may modify.

        The stored bytes are released first. If the backend fails, the
        failure is logged and audited and the metadata is removed anyway.
        """
        async with self._photo_locks.acquire(photo_id):
            photo = await self.photos.find_by_id(photo_id)
            if photo is None:
                return self._denied("delete", user, photo_id, MutationStatus.NOT_FOUND)
            if not can_modify(user, photo):
                return self._denied("delete", user, photo_id, MutationStatus.FORBIDDEN)

            if not await self._release(photo.storage_path):
                logger.error(
                    "Storage delete failed, removing photo metadata anyway",
                    extra={"event": "storage", "photo_id": photo_id, "backend": self.storage.name},
                )
                self.audit_log.append(user.id, f"Storage delete failed for photo: {photo_id}")
            await self.photos.delete(photo_id)

        photo_mutations_total.labels(operation="delete", status=MutationStatus.APPLIED.value).inc()
        self.audit_log.append(user.id, f"Photo deleted: {photo_id}")
        return MutationStatus.APPLIED
