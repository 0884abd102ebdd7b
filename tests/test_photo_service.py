import asyncio
from datetime import datetime

import pytest

from photo_manager.exceptions import (
    MutationStatus,
    ProcessingFailureError,
    QuotaExceededError,
    StorageFailureError,
)
from photo_manager.models.photo import Photo
from photo_manager.models.subscription import SubscriptionPackage
from photo_manager.repositories.memory import InMemoryPhotoStore
from photo_manager.schemas.search import SearchCriteria
from photo_manager.services.audit_log import SYSTEM_ACTOR
from photo_manager.services.photo import PhotoService, can_modify
from photo_manager.services.processing import ProcessingPipeline, Resize, Sepia
from photo_manager.services.storage import InMemoryStorageBackend
from tests.conftest import KiB, MiB, make_file, make_user


class FailingStorage(InMemoryStorageBackend):
    """In-memory storage whose upload or delete can be made to fail."""

    name = "failing"

    def __init__(self, fail_upload=False, fail_delete=False):
        super().__init__()
        self.fail_upload = fail_upload
        self.fail_delete = fail_delete
        self.deleted = []

    async def upload(self, content, owner_id, filename=None):
        if self.fail_upload:
            raise self._failure("upload", "disk full")
        return await super().upload(content, owner_id, filename)

    async def delete(self, path):
        self.deleted.append(path)
        if self.fail_delete:
            return False
        return await super().delete(path)


class SlowStorage(InMemoryStorageBackend):
    async def upload(self, content, owner_id, filename=None):
        await asyncio.sleep(5)
        return await super().upload(content, owner_id, filename)


class FailingSaveStore(InMemoryPhotoStore):
    async def save(self, photo):
        raise RuntimeError("database is locked")


class Exploding:
    name = "exploding"

    def apply(self, image):
        raise RuntimeError("bad pixels")


# ----------------------------------------------------------------------
# Upload
# ----------------------------------------------------------------------


async def test_upload_stores_bytes_and_metadata(photo_service, storage, photo_store, audit_log, alice):
    photo = await photo_service.upload(alice, make_file(2 * KiB, "beach.JPG"), "At the beach", ["sunset", "sea"])

    assert await photo_store.find_by_id(photo.id) is photo
    assert photo.storage_path in storage
    assert photo.author_id == alice.id
    assert photo.author_name == "alice"
    assert photo.file_size == 2 * KiB
    assert photo.format == "jpg"
    assert photo.hashtags == ["sunset", "sea"]
    assert photo.uploaded_at is not None

    last = audit_log.all_entries()[-1]
    assert (last.actor, last.action) == (alice.id, "Photo uploaded: beach.JPG")


async def test_upload_ids_are_unique(photo_service, alice):
    first = await photo_service.upload(alice, make_file())
    second = await photo_service.upload(alice, make_file())
    assert first.id != second.id


async def test_upload_applies_pipeline(photo_service, alice):
    pipeline = ProcessingPipeline().then(Resize(640, 480)).then(Sepia())

    photo = await photo_service.upload(alice, make_file(), pipeline=pipeline)

    assert (photo.width, photo.height) == (640, 480)


async def test_oversized_upload_is_rejected_and_audited_once(photo_service, storage, photo_store, audit_log, alice):
    with pytest.raises(QuotaExceededError) as exc:
        await photo_service.upload(alice, make_file(5 * MiB + 1))

    assert exc.value.reason == QuotaExceededError.SIZE
    assert len(storage) == 0
    assert len(photo_store) == 0
    entries = audit_log.entries_by_actor(alice.id)
    assert len(entries) == 1
    assert entries[0].action.startswith("Upload failed: Limit exceeded")


async def test_upload_at_exact_size_limit_is_accepted(photo_service, alice):
    photo = await photo_service.upload(alice, make_file(5 * MiB))
    assert photo.file_size == 5 * MiB


async def test_free_user_with_49_photos_can_upload_one_more(photo_service, photo_store, storage, alice):
    for _ in range(49):
        await photo_service.upload(alice, make_file(1 * KiB))

    fiftieth = await photo_service.upload(alice, make_file(4 * MiB))
    assert fiftieth.file_size == 4 * MiB

    with pytest.raises(QuotaExceededError) as exc:
        await photo_service.upload(alice, make_file(1 * KiB))

    assert exc.value.reason == QuotaExceededError.COUNT
    assert len(await photo_store.find_by_author(alice.id)) == 50
    assert len(storage) == 50


async def test_gold_user_has_no_count_limit(photo_service, photo_store):
    gold = make_user("goldie", package=SubscriptionPackage.GOLD)
    for _ in range(60):
        await photo_service.upload(gold, make_file(10))
    assert len(await photo_store.find_by_author(gold.id)) == 60


async def test_concurrent_uploads_at_the_boundary_cannot_both_succeed(photo_service, photo_store, alice):
    for _ in range(49):
        await photo_service.upload(alice, make_file(10))

    results = await asyncio.gather(
        photo_service.upload(alice, make_file(10)),
        photo_service.upload(alice, make_file(10)),
        return_exceptions=True,
    )

    failures = [r for r in results if isinstance(r, QuotaExceededError)]
    assert len(failures) == 1
    assert len(await photo_store.find_by_author(alice.id)) == 50


async def test_processing_failure_stores_nothing(photo_service, storage, photo_store, audit_log, alice):
    pipeline = ProcessingPipeline.of([Resize(100, 100), Exploding()])

    with pytest.raises(ProcessingFailureError):
        await photo_service.upload(alice, make_file(), pipeline=pipeline)

    assert len(storage) == 0
    assert len(photo_store) == 0
    assert audit_log.all_entries()[-1].action.startswith("Upload failed:")


async def test_storage_failure_on_upload(photo_store, audit_log, alice):
    service = PhotoService(photo_store, FailingStorage(fail_upload=True), audit_log)

    with pytest.raises(StorageFailureError) as exc:
        await service.upload(alice, make_file())

    assert exc.value.operation == "upload"
    assert len(photo_store) == 0
    assert audit_log.all_entries()[-1].action.startswith("Upload failed:")


async def test_storage_upload_timeout(photo_store, audit_log, alice):
    service = PhotoService(photo_store, SlowStorage(), audit_log, storage_timeout=0.05)

    with pytest.raises(StorageFailureError):
        await service.upload(alice, make_file())
    assert len(photo_store) == 0


async def test_failed_metadata_save_releases_stored_bytes(audit_log, alice):
    storage = InMemoryStorageBackend()
    service = PhotoService(FailingSaveStore(), storage, audit_log)

    with pytest.raises(RuntimeError):
        await service.upload(alice, make_file())

    assert len(storage) == 0


# ----------------------------------------------------------------------
# Search and queries
# ----------------------------------------------------------------------


async def test_search_is_audited_by_system(photo_service, audit_log, alice):
    await photo_service.upload(alice, make_file(), hashtags=["sunset"])
    before = len(audit_log)

    results = await photo_service.search(SearchCriteria(hashtags=frozenset({"nothing"})))

    assert results == []
    assert len(audit_log) == before + 1
    assert audit_log.all_entries()[-1].actor == SYSTEM_ACTOR


async def test_search_by_author_ignores_case(photo_service):
    ana = make_user("Ana")
    bruno = make_user("Bruno")
    mine = await photo_service.upload(ana, make_file())
    await photo_service.upload(bruno, make_file())

    results = await photo_service.search(SearchCriteria(author="ana"))

    assert [p.id for p in results] == [mine.id]


async def test_recent_photos_newest_first(photo_service, alice):
    uploaded = [await photo_service.upload(alice, make_file()) for _ in range(12)]
    for i, photo in enumerate(uploaded):
        photo.uploaded_at = datetime(2024, 1, 1, 12, 0, i)

    recent = await photo_service.recent_photos()

    assert len(recent) == 10
    assert recent[0].id == uploaded[-1].id


async def test_download_returns_bytes_and_is_audited(photo_service, audit_log, alice, bob):
    photo = await photo_service.upload(alice, make_file(3))

    assert await photo_service.download(bob, photo.id) == b"\xff\xff\xff"
    assert audit_log.all_entries()[-1].action == f"Downloaded photo: {photo.id}"
    assert await photo_service.download(bob, "missing") is None


# ----------------------------------------------------------------------
# Update / delete
# ----------------------------------------------------------------------


async def test_owner_can_update(photo_service, photo_store, alice):
    photo = await photo_service.upload(alice, make_file(), "old", ["a"])

    result = await photo_service.update(alice, photo.id, "new", ["b", "c"])

    assert result is MutationStatus.APPLIED
    stored = await photo_store.find_by_id(photo.id)
    assert stored.description == "new"
    assert stored.hashtags == ["b", "c"]


async def test_non_owner_cannot_update_or_delete(photo_service, photo_store, storage, alice, bob):
    photo = await photo_service.upload(alice, make_file(), "mine", ["a"])

    assert await photo_service.update(bob, photo.id, "hacked", []) is MutationStatus.FORBIDDEN
    assert await photo_service.delete(bob, photo.id) is MutationStatus.FORBIDDEN

    stored = await photo_store.find_by_id(photo.id)
    assert stored.description == "mine"
    assert stored.hashtags == ["a"]
    assert photo.storage_path in storage


async def test_admin_can_modify_any_photo(photo_service, photo_store, alice, admin):
    photo = await photo_service.upload(alice, make_file())

    assert await photo_service.update(admin, photo.id, "moderated", []) is MutationStatus.APPLIED
    assert await photo_service.delete(admin, photo.id) is MutationStatus.APPLIED
    assert await photo_store.find_by_id(photo.id) is None


async def test_mutations_of_missing_photo_report_not_found(photo_service, alice):
    assert await photo_service.update(alice, "missing", "x", []) is MutationStatus.NOT_FOUND
    assert await photo_service.delete(alice, "missing") is MutationStatus.NOT_FOUND


async def test_delete_releases_bytes_and_is_audited(photo_service, photo_store, storage, audit_log, alice):
    photo = await photo_service.upload(alice, make_file())

    assert await photo_service.delete(alice, photo.id) is MutationStatus.APPLIED

    assert photo.storage_path not in storage
    assert await photo_store.find_by_id(photo.id) is None
    assert audit_log.all_entries()[-1].action == f"Photo deleted: {photo.id}"


async def test_delete_proceeds_when_storage_release_fails(photo_store, audit_log, alice):
    storage = FailingStorage(fail_delete=True)
    service = PhotoService(photo_store, storage, audit_log)
    photo = await service.upload(alice, make_file())

    assert await service.delete(alice, photo.id) is MutationStatus.APPLIED

    assert storage.deleted == [photo.storage_path]
    assert await photo_store.find_by_id(photo.id) is None
    # bytes stay behind
    assert photo.storage_path in storage
    actions = [e.action for e in audit_log.entries_by_actor(alice.id)]
    assert f"Storage delete failed for photo: {photo.id}" in actions
    assert actions[-1] == f"Photo deleted: {photo.id}"


async def test_concurrent_deletes_apply_once(photo_service, alice):
    photo = await photo_service.upload(alice, make_file())

    results = await asyncio.gather(
        photo_service.delete(alice, photo.id),
        photo_service.delete(alice, photo.id),
    )

    assert sorted(r.value for r in results) == ["applied", "not_found"]


async def test_update_racing_delete_resolves_by_lock_order(photo_service, photo_store, alice):
    photo = await photo_service.upload(alice, make_file())

    update_result, delete_result = await asyncio.gather(
        photo_service.update(alice, photo.id, "late edit", []),
        photo_service.delete(alice, photo.id),
    )

    assert delete_result is MutationStatus.APPLIED
    assert update_result in (MutationStatus.APPLIED, MutationStatus.NOT_FOUND)
    assert await photo_store.find_by_id(photo.id) is None


def test_can_modify(alice, bob, admin):
    photo = Photo(id="p1", author_id=alice.id, author_name=alice.username)
    assert can_modify(alice, photo)
    assert can_modify(admin, photo)
    assert not can_modify(bob, photo)
