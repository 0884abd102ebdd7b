import json

import httpx
import pytest

from photo_manager.config import Settings, StorageBackendType
from photo_manager.exceptions import StorageFailureError
from photo_manager.services.object_storage import ObjectStorageBackend

AUTH_URL = "https://identity.test/v2.0"
STORAGE_URL = "https://storage.test/v1"
ACCOUNT_PREFIX = "/v1/AUTH_tenant-1"


class FakeSwift:
    """Minimal Swift + Keystone v2 server for httpx.MockTransport."""

    def __init__(self):
        self.objects = {}
        self.containers = set()
        self.token_requests = 0
        self.fail_next = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "identity.test":
            self.token_requests += 1
            body = json.loads(request.content)
            assert body["auth"]["tenantId"] == "tenant-1"
            return httpx.Response(
                200,
                json={
                    "access": {
                        "token": {
                            "id": f"token-{self.token_requests}",
                            "expires": "2999-01-01T00:00:00Z",
                            "tenant": {"id": "tenant-1"},
                        }
                    }
                },
            )

        assert request.headers["X-Auth-Token"].startswith("token-")
        if self.fail_next:
            return httpx.Response(self.fail_next.pop(0))

        path = request.url.path
        assert path.startswith(ACCOUNT_PREFIX)
        key = path[len(ACCOUNT_PREFIX) + 1:]

        if "/" not in key:
            if request.method == "HEAD":
                return httpx.Response(204 if key in self.containers else 404)
            if request.method == "PUT":
                self.containers.add(key)
                return httpx.Response(201)

        if request.method == "PUT":
            self.objects[key] = request.content
            return httpx.Response(201)
        if request.method == "GET":
            if key not in self.objects:
                return httpx.Response(404)
            return httpx.Response(200, content=self.objects[key])
        if request.method == "HEAD":
            return httpx.Response(200 if key in self.objects else 404)
        if request.method == "DELETE":
            if self.objects.pop(key, None) is None:
                return httpx.Response(404)
            return httpx.Response(204)
        return httpx.Response(405)


@pytest.fixture
def swift():
    return FakeSwift()


@pytest.fixture
def backend(swift):
    settings = Settings(
        storage_backend=StorageBackendType.OBJECT,
        object_storage_auth_url=AUTH_URL,
        object_storage_url=STORAGE_URL,
        object_storage_tenant_id="tenant-1",
        object_storage_username="storage-user",
        object_storage_password="storage-password",
        object_storage_container="photos",
        object_storage_max_attempts=3,
    )
    return ObjectStorageBackend(settings, transport=httpx.MockTransport(swift), retry_initial_delay=0.0)


async def test_upload_download_exists_delete(backend, swift):
    path = await backend.upload(b"jpeg-bytes", "USER_1", "a.jpg")

    assert path.startswith("photos/USER_1/")
    assert path.endswith(".jpg")
    assert "photos" in swift.containers
    assert await backend.exists(path) is True
    assert await backend.download(path) == b"jpeg-bytes"

    assert await backend.delete(path) is True
    assert await backend.exists(path) is False
    # deleting a missing object counts as released
    assert await backend.delete(path) is True


async def test_token_is_cached(backend, swift):
    await backend.upload(b"1", "USER_1", "a.jpg")
    await backend.upload(b"2", "USER_1", "b.jpg")

    assert swift.token_requests == 1


async def test_transient_server_errors_are_retried(backend, swift):
    await backend.upload(b"warmup", "USER_1", "a.jpg")
    swift.fail_next = [503, 500]

    path = await backend.upload(b"payload", "USER_1", "b.jpg")

    assert swift.objects[path] == b"payload"


async def test_expired_token_is_refreshed(backend, swift):
    await backend.upload(b"warmup", "USER_1", "a.jpg")
    swift.fail_next = [401]

    await backend.upload(b"payload", "USER_1", "b.jpg")

    assert swift.token_requests == 2


async def test_download_failure_raises_storage_failure(backend):
    with pytest.raises(StorageFailureError) as exc:
        await backend.download("photos/USER_1/missing.jpg")
    assert exc.value.operation == "download"


async def test_upload_fails_after_retries_are_exhausted(backend, swift):
    await backend.upload(b"warmup", "USER_1", "a.jpg")
    swift.fail_next = [503, 503, 503]

    with pytest.raises(StorageFailureError) as exc:
        await backend.upload(b"payload", "USER_1", "b.jpg")
    assert exc.value.operation == "upload"


async def test_delete_never_raises(backend, swift):
    await backend.upload(b"warmup", "USER_1", "a.jpg")
    swift.fail_next = [403]

    assert await backend.delete("photos/USER_1/whatever.jpg") is False


async def test_missing_credentials_fail_upload():
    backend = ObjectStorageBackend(
        Settings(object_storage_username="", object_storage_password="", object_storage_tenant_id=""),
        transport=httpx.MockTransport(lambda request: httpx.Response(500)),
        retry_initial_delay=0.0,
    )
    with pytest.raises(StorageFailureError):
        await backend.upload(b"x", "USER_1", "a.jpg")
