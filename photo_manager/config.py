"""
Application configuration using Pydantic Settings.
Manages all environment variables and settings.
"""
from enum import Enum
from functools import lru_cache
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator, model_validator


class Environment(str, Enum):
    """Application environment modes."""
    DEV = "DEV"
    PRODUCTION = "PRODUCTION"


class StorageBackendType(str, Enum):
    """Available byte storage backends."""
    MEMORY = "memory"
    LOCAL = "local"
    OBJECT = "object"


class EntityStoreType(str, Enum):
    """Available entity store implementations."""
    MEMORY = "memory"
    SQL = "sql"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Environment
    environment: Environment = Field(
        default=Environment.DEV,
        description="Application environment: DEV or PRODUCTION"
    )

    # Application
    app_name: str = Field(default="Photo Manager")
    app_version: str = Field(default="1.0.0")
    debug: bool = Field(default=False)

    @model_validator(mode='after')
    def set_debug_from_environment(self):
        """Set debug mode based on environment if not explicitly set via environment variable."""
        import os
        if 'PHOTO_MANAGER_DEBUG' not in os.environ:
            self.debug = self.environment == Environment.DEV
        return self

    @property
    def is_dev(self) -> bool:
        """Check if running in development mode."""
        return self.environment == Environment.DEV

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == Environment.PRODUCTION

    # Entity stores
    entity_store: EntityStoreType = Field(default=EntityStoreType.SQL)
    database_url: str = Field(default="sqlite+aiosqlite:///./photo_manager.db")

    @field_validator("database_url", mode="before")
    @classmethod
    def coerce_empty_database_url(cls, v: str) -> str:
        if not v or not str(v).strip():
            return "sqlite+aiosqlite:///./photo_manager.db"
        return v

    # JWT
    jwt_secret_key: str = Field(default="jwt-secret-change-in-production")
    jwt_algorithm: str = Field(default="HS256")
    access_token_expire_minutes: int = Field(default=30)

    # Byte storage
    storage_backend: StorageBackendType = Field(default=StorageBackendType.LOCAL)
    local_storage_root: str = Field(default="./photos")
    storage_timeout_seconds: float = Field(
        default=30.0,
        description="Upper bound for a single storage backend call",
    )

    @field_validator("storage_timeout_seconds", mode="before")
    @classmethod
    def coerce_storage_timeout(cls, v: object) -> float:
        if v is None or v == "":
            return 30.0
        return float(v)

    # Object storage (Swift-compatible API, token authentication)
    object_storage_auth_url: str = Field(
        default="https://api-identity-infrastructure.nhncloudservice.com/v2.0",
        description="Identity endpoint issuing storage tokens",
    )
    object_storage_url: str = Field(
        default="https://api-storage.nhncloudservice.com/v1",
        description="Object storage API base URL",
    )
    object_storage_tenant_id: str = Field(default="")
    object_storage_username: str = Field(default="")
    object_storage_password: str = Field(default="")
    object_storage_container: str = Field(default="photo-container")
    object_storage_max_attempts: int = Field(default=3)

    # Undo histories kept in memory (one per user session)
    max_command_sessions: int = Field(default=1000, ge=1)

    # Logging
    log_dir: str = Field(
        default="",
        description="Directory for NDJSON log files. Empty disables file logging.",
    )

    # Default administrator, seeded on start-up
    seed_admin: bool = Field(default=True)
    admin_user_id: str = Field(default="ADMIN_001")
    admin_username: str = Field(default="admin")
    admin_email: str = Field(default="admin@photomanager.com")
    admin_password: str = Field(default="change-me-admin")

    class Config:
        env_prefix = "PHOTO_MANAGER_"
        env_file = None
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Using lru_cache to avoid re-reading the environment on every call.
    """
    return Settings()
