"""Shared pytest fixtures."""

import io

import pytest
from PIL import Image

from assetvault.config import ProcessingConfig, RetryConfig
from assetvault.lib.exceptions import NotFound
from assetvault.lib.keys import checksum
from assetvault.lib.storage.base import REMOTE, StoredObject
from assetvault.lib.storage.local import LocalStorageBackend
from assetvault.lib.storage.manager import StorageManager
from assetvault.processing.store import InMemoryAssetStore


def make_image(width=1920, height=1080, fmt="JPEG", color=(30, 120, 200), mode="RGB", exif=None):
    """Render a solid-colour image and return the encoded bytes."""
    img = Image.new(mode, (width, height), color)
    buf = io.BytesIO()
    kwargs = {"exif": exif} if exif is not None else {}
    img.save(buf, format=fmt, **kwargs)
    return buf.getvalue()


class FakeRemoteBackend:
    """In-memory stand-in for the S3 backend.

    Set ``fail`` to make every call raise a connection error.
    """

    backend_id = REMOTE

    def __init__(self, fail=False):
        self.fail = fail
        self.objects = {}
        self.calls = []

    def _check(self, operation):
        self.calls.append(operation)
        if self.fail:
            raise ConnectionError("remote storage unreachable")

    async def put(self, key, data, content_type, metadata=None):
        self._check("put")
        self.objects[key] = data
        return StoredObject(
            key=key,
            backend=REMOTE,
            url=self.public_url(key),
            content_type=content_type,
            size=len(data),
            checksum=checksum(data),
        )

    async def get(self, key):
        self._check("get")
        if key not in self.objects:
            raise NotFound(key)
        return self.objects[key]

    async def delete(self, key):
        self._check("delete")
        self.objects.pop(key, None)

    async def exists(self, key):
        self._check("exists")
        return key in self.objects

    async def presign(self, key, options):
        self._check("presign")
        return f"https://bucket.example.com/{key}?expires={options.expires_in}"

    def public_url(self, key):
        return f"https://bucket.example.com/{key}"

    async def copy(self, source_key, destination_key):
        self._check("copy")
        self.objects[destination_key] = self.objects[source_key]

    async def head(self, key):
        self._check("head")
        raise NotFound(key)

    async def list_keys(self, prefix="", max_keys=1000):
        self._check("list_keys")
        return [k for k in self.objects if k.startswith(prefix)][:max_keys]

    async def presign_upload(self, key, content_type, expires_in=300):
        self._check("presign_upload")
        return f"https://bucket.example.com/{key}?upload=1"


@pytest.fixture
def jpeg_bytes():
    """A 1920x1080 JPEG."""
    return make_image()


@pytest.fixture
def local_backend(tmp_path):
    return LocalStorageBackend(tmp_path / "uploads", base_url="http://localhost:3000")


@pytest.fixture
def storage(local_backend):
    """Storage manager in local mode."""
    return StorageManager(local_backend)


@pytest.fixture
def remote_backend():
    return FakeRemoteBackend()


@pytest.fixture
def remote_storage(local_backend, remote_backend):
    """Storage manager in remote mode backed by an in-memory remote."""
    return StorageManager(local_backend, remote=remote_backend)


@pytest.fixture
def asset_store():
    return InMemoryAssetStore()


@pytest.fixture
def processing_config():
    """Fast processing config: no real backoff, small pool."""
    return ProcessingConfig(
        workers=3,
        retries=RetryConfig(metadata=2, thumbnail=2, variant_set=0),
        retry_backoff=0.5,
        job_timeout=30.0,
    )


@pytest.fixture
def recorded_sleeps():
    return []


@pytest.fixture
def fake_sleep(recorded_sleeps):
    async def sleep(delay):
        recorded_sleeps.append(delay)
    return sleep


@pytest.fixture
def image_factory():
    return make_image
