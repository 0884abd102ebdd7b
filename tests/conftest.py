import uuid
from typing import Optional

import pytest

from photo_manager.config import EntityStoreType, Settings, StorageBackendType
from photo_manager.models.subscription import SubscriptionPackage
from photo_manager.models.user import AuthProvider, User, UserType
from photo_manager.repositories.memory import InMemoryPhotoStore, InMemoryUserStore
from photo_manager.schemas.photo import PhotoFile
from photo_manager.services.audit_log import AuditLog
from photo_manager.services.commands import CommandInvoker
from photo_manager.services.photo import PhotoService
from photo_manager.services.storage import InMemoryStorageBackend
from photo_manager.utils.timeutils import utcnow

KiB = 1024
MiB = 1024 * 1024


def make_user(
    username: str = "alice",
    package: SubscriptionPackage = SubscriptionPackage.FREE,
    user_type: UserType = UserType.REGISTERED,
    user_id: Optional[str] = None,
) -> User:
    return User(
        id=user_id or f"USER_{uuid.uuid4().hex[:8].upper()}",
        username=username,
        email=f"{username}@example.com",
        hashed_password=None,
        user_type=user_type,
        subscription_package=package,
        auth_provider=AuthProvider.LOCAL,
        is_active=True,
        registered_at=utcnow(),
    )


def make_file(size: int = 1 * KiB, filename: str = "photo.jpg") -> PhotoFile:
    return PhotoFile(filename=filename, content=b"\xff" * size, content_type="image/jpeg")


@pytest.fixture
def audit_log():
    return AuditLog()


@pytest.fixture
def photo_store():
    return InMemoryPhotoStore()


@pytest.fixture
def user_store():
    return InMemoryUserStore()


@pytest.fixture
def storage():
    return InMemoryStorageBackend()


@pytest.fixture
def photo_service(photo_store, storage, audit_log):
    return PhotoService(photo_store, storage, audit_log, storage_timeout=2.0)


@pytest.fixture
def invoker(photo_service, audit_log):
    return CommandInvoker(photo_service, audit_log)


@pytest.fixture
def alice():
    return make_user("alice")


@pytest.fixture
def bob():
    return make_user("bob")


@pytest.fixture
def admin():
    return make_user(
        "admin",
        package=SubscriptionPackage.GOLD,
        user_type=UserType.ADMINISTRATOR,
        user_id="ADMIN_001",
    )


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        entity_store=EntityStoreType.MEMORY,
        storage_backend=StorageBackendType.MEMORY,
        local_storage_root=str(tmp_path / "photos"),
        jwt_secret_key="test-secret",
        log_dir="",
        seed_admin=True,
        admin_password="admin-password",
        storage_timeout_seconds=2.0,
    )
