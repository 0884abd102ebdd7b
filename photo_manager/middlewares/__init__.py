"""
HTTP middlewares.
"""
from photo_manager.middlewares.logging_middleware import LoggingMiddleware

__all__ = ["LoggingMiddleware"]
