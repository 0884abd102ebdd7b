"""
FastAPI dependencies.
"""
from photo_manager.dependencies.auth import get_admin_user, get_current_user, get_registered_user
from photo_manager.dependencies.services import (
    ServiceContainer,
    get_container,
    get_photo_service,
    get_user_service,
)

__all__ = [
    "get_current_user",
    "get_registered_user",
    "get_admin_user",
    "ServiceContainer",
    "get_container",
    "get_photo_service",
    "get_user_service",
]
