"""
API routers package.
"""
from photo_manager.routers.admin import router as admin_router
from photo_manager.routers.auth import router as auth_router
from photo_manager.routers.health import router as health_router
from photo_manager.routers.photos import router as photos_router

__all__ = ["admin_router", "auth_router", "health_router", "photos_router"]
