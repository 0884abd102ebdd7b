"""
Object storage backend (Swift-compatible API, Keystone v2 token auth).

Objects live in a single container, one folder per owner:
    {container}/{owner_id}/{uuid}.{ext}

Every HTTP call is retried with exponential backoff on transient failures
(network errors, 5xx, expired token) and guarded by a circuit breaker.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional, Tuple

import httpx

from photo_manager.config import Settings
from photo_manager.services.storage import StorageBackend, object_name_for
from photo_manager.utils.circuit_breaker import CircuitBreaker
from photo_manager.utils.logger import log_error
from photo_manager.utils.metrics import record_external_request, storage_failures_total
from photo_manager.utils.retry import retry_with_backoff
from photo_manager.utils.timeutils import utcnow

logger = logging.getLogger("photo_manager.storage")

SERVICE_NAME = "object_storage"

# Refresh the token this long before it expires
TOKEN_REFRESH_MARGIN = timedelta(minutes=5)


class ObjectStorageError(Exception):
    """Non-retryable object storage response."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TransientObjectStorageError(ObjectStorageError):
    """Server-side or auth-expiry failure worth retrying."""
    pass


class ObjectStorageBackend(StorageBackend):
    """
    Backend for a Swift-compatible object store.

    Args:
        settings: object_storage_* endpoints and credentials
        transport: optional httpx transport (tests use httpx.MockTransport)
        retry_initial_delay: first backoff delay in seconds
    """

    name = "object"

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_initial_delay: float = 1.0,
    ):
        self.settings = settings
        self.container = settings.object_storage_container
        self._transport = transport
        self._retry_initial_delay = retry_initial_delay
        self._token: Optional[str] = None
        self._token_expires: Optional[datetime] = None
        self._storage_url: Optional[str] = None
        self._container_ready = False
        self._lock = asyncio.Lock()
        self._breaker = CircuitBreaker(SERVICE_NAME, failure_threshold=5, timeout=60.0)

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=timeout)

    def _token_valid(self) -> bool:
        return bool(
            self._token
            and self._token_expires
            and utcnow() < self._token_expires - TOKEN_REFRESH_MARGIN
        )

    def _invalidate_token(self) -> None:
        self._token = None
        self._token_expires = None

    async def _get_auth_token(self) -> str:
        """
        Token from the identity service, cached until shortly before expiry.
        """
        if self._token_valid():
            return self._token

        async with self._lock:
            # another task may have refreshed while we waited
            if self._token_valid():
                return self._token

            tenant_id = self.settings.object_storage_tenant_id
            username = self.settings.object_storage_username
            password = self.settings.object_storage_password
            if not username or not password or not tenant_id:
                raise ObjectStorageError(
                    "Object storage credentials are not configured (tenant id, username, password)"
                )

            auth_url = f"{self.settings.object_storage_auth_url.rstrip('/')}/tokens"
            auth_data = {
                "auth": {
                    "tenantId": tenant_id,
                    "passwordCredentials": {
                        "username": username,
                        "password": password,
                    },
                }
            }

            async with record_external_request(SERVICE_NAME):
                async with self._client(timeout=30.0) as client:
                    response = await client.post(auth_url, json=auth_data)

            if response.status_code >= 500:
                raise TransientObjectStorageError(
                    "Identity service unavailable", status_code=response.status_code
                )
            if response.status_code != 200:
                log_error(
                    "Object storage authentication failed",
                    error_type="AuthenticationError",
                    upstream_service="object_storage_identity",
                    http_status=response.status_code,
                    event="storage",
                )
                raise ObjectStorageError(
                    "Object storage authentication failed", status_code=response.status_code
                )

            try:
                token_data = response.json()["access"]["token"]
                token = token_data["id"]
            except (ValueError, KeyError, TypeError) as e:
                raise ObjectStorageError("Malformed identity service response") from e

            expires = token_data.get("expires")
            if expires:
                self._token_expires = datetime.fromisoformat(
                    expires.replace("Z", "+00:00")
                ).replace(tzinfo=None)
            else:
                self._token_expires = utcnow() + timedelta(hours=24)

            account_tenant = (token_data.get("tenant") or {}).get("id") or tenant_id
            self._storage_url = f"{self.settings.object_storage_url.rstrip('/')}/AUTH_{account_tenant}"
            self._token = token
            return token

    async def _request(
        self,
        method: str,
        path: str,
        expected: Tuple[int, ...],
        timeout: float = 60.0,
        **kwargs,
    ) -> httpx.Response:
        token = await self._get_auth_token()
        url = f"{self._storage_url}/{path}"
        headers = dict(kwargs.pop("headers", None) or {})
        headers["X-Auth-Token"] = token

        async with record_external_request(SERVICE_NAME):
            async with self._client(timeout=timeout) as client:
                response = await client.request(method, url, headers=headers, **kwargs)

            if response.status_code == 401:
                self._invalidate_token()
                raise TransientObjectStorageError("Storage token rejected", status_code=401)
            if response.status_code >= 500:
                raise TransientObjectStorageError(
                    f"{method} {path} failed: HTTP {response.status_code}",
                    status_code=response.status_code,
                )
            if response.status_code not in expected:
                raise ObjectStorageError(
                    f"{method} {path} failed: HTTP {response.status_code}",
                    status_code=response.status_code,
                )
        return response

    async def _call(self, method: str, path: str, expected: Tuple[int, ...], operation: str, **kwargs) -> httpx.Response:
        return await self._breaker.call(
            retry_with_backoff,
            self._request,
            method,
            path,
            expected,
            max_attempts=self.settings.object_storage_max_attempts,
            initial_delay=self._retry_initial_delay,
            retryable_exceptions=(httpx.TransportError, TransientObjectStorageError),
            target=f"{SERVICE_NAME}.{operation}",
            **kwargs,
        )

    async def _ensure_container_exists(self) -> None:
        """Create the container on first use if it is missing."""
        if self._container_ready:
            return
        response = await self._call(
            "HEAD", self.container, (200, 204, 404), operation="container", timeout=10.0
        )
        if response.status_code == 404:
            await self._call("PUT", self.container, (201, 202), operation="container", timeout=10.0)
            logger.info(
                "Container created",
                extra={"event": "storage", "container": self.container},
            )
        self._container_ready = True

    def _object_path(self, path: str) -> str:
        if path.startswith(f"{self.container}/"):
            return path
        return f"{self.container}/{path}"

    async def upload(self, content: bytes, owner_id: str, filename: Optional[str] = None) -> str:
        object_path = f"{self.container}/{object_name_for(owner_id, filename)}"
        try:
            await self._ensure_container_exists()
            await self._call(
                "PUT",
                object_path,
                (200, 201),
                operation="upload",
                content=content,
                headers={"Content-Type": "application/octet-stream"},
            )
        except Exception as e:
            raise self._failure("upload", f"File upload failed: {e}", e) from e
        return object_path

    async def download(self, path: str) -> bytes:
        try:
            response = await self._call("GET", self._object_path(path), (200,), operation="download")
        except Exception as e:
            raise self._failure("download", f"File download failed: {e}", e) from e
        return response.content

    async def delete(self, path: str) -> bool:
        try:
            await self._call(
                "DELETE", self._object_path(path), (200, 204, 404), operation="delete", timeout=30.0
            )
            return True
        except Exception as e:
            storage_failures_total.labels(backend=self.name, operation="delete").inc()
            logger.error(
                "File deletion failed",
                exc_info=e,
                extra={"event": "storage", "backend": self.name, "operation": "delete"},
            )
            return False

    async def exists(self, path: str) -> bool:
        """True if an object is stored under ``path``."""
        try:
            response = await self._call(
                "HEAD", self._object_path(path), (200, 404), operation="exists", timeout=10.0
            )
        except Exception as e:
            logger.error("File exists check failed", exc_info=e, extra={"event": "storage"})
            return False
        return response.status_code == 200
