"""
Services package: business logic for photos, storage, processing, audit and users.
"""
from photo_manager.services.audit_log import AuditEntry, AuditLog
from photo_manager.services.commands import (
    CommandInvoker,
    DeleteCommand,
    UpdateCommand,
    UploadCommand,
)
from photo_manager.services.photo import PhotoService
from photo_manager.services.processing import (
    Blur,
    ProcessedImage,
    ProcessingPipeline,
    Resize,
    Sepia,
)
from photo_manager.services.storage import (
    InMemoryStorageBackend,
    LocalStorageBackend,
    StorageBackend,
    create_storage_backend,
)
from photo_manager.services.user import UserService

__all__ = [
    "AuditEntry",
    "AuditLog",
    "CommandInvoker",
    "UploadCommand",
    "UpdateCommand",
    "DeleteCommand",
    "PhotoService",
    "ProcessedImage",
    "ProcessingPipeline",
    "Resize",
    "Sepia",
    "Blur",
    "StorageBackend",
    "LocalStorageBackend",
    "InMemoryStorageBackend",
    "create_storage_backend",
    "UserService",
]
