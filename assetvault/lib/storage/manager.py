"""Storage manager: the single storage surface used by the rest of assetvault.

Picks the remote backend when S3 credentials are configured and keeps a
local backend alongside it. Any remote failure is logged and retried once
against local storage; operations that local storage cannot perform fail
fast with ``NotSupported`` instead.

The manager does not remember where each key landed. Callers record the
``backend`` returned by :meth:`StorageManager.upload` and pass it back on
later reads.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar
from urllib.parse import quote

from assetvault.lib.exceptions import NotFound, NotSupported
from assetvault.lib.keys import checksum, generate_key
from assetvault.lib.storage.base import LOCAL, REMOTE, BackendId, ObjectInfo, PresignOptions
from assetvault.lib.storage.local import LocalStorageBackend

if TYPE_CHECKING:
    from assetvault.config import StorageConfig
    from assetvault.lib.storage.base import StorageBackend

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class UploadResult:
    file_key: str
    backend: BackendId
    size: int
    checksum: str
    url: str
    content_type: str


class StorageManager:
    """Facade over one remote (optional) and one local backend."""

    def __init__(
        self,
        local: StorageBackend,
        remote: StorageBackend | None = None,
        default_expiry: int = 3600,
    ) -> None:
        self._local = local
        self._remote = remote
        self.default_expiry = default_expiry

    @property
    def mode(self) -> BackendId:
        return REMOTE if self._remote is not None else LOCAL

    @property
    def local(self) -> StorageBackend:
        return self._local

    async def upload(
        self,
        data: bytes,
        filename: str,
        mime_type: str,
        prefix: str = "assets",
        metadata: dict[str, str] | None = None,
    ) -> UploadResult:
        """Store *data* under a freshly generated key."""
        key = generate_key(filename, prefix)
        object_metadata = {
            **(metadata or {}),
            "checksum": checksum(data),
            "original-filename": quote(filename),
        }

        if self._remote is None:
            stored, backend = await self._local.put(key, data, mime_type, object_metadata), LOCAL
        else:
            stored, backend = await self._with_fallback(
                "upload",
                key,
                lambda b: b.put(key, data, mime_type, object_metadata),
            )
        logger.info("Stored %s on %s storage (%d bytes)", key, backend, stored.size)
        return UploadResult(
            file_key=stored.key,
            backend=backend,
            size=stored.size,
            checksum=stored.checksum,
            url=stored.url,
            content_type=mime_type,
        )

    async def get(self, key: str, backend: BackendId | None = None) -> bytes:
        if backend == LOCAL or self._remote is None:
            return await self._local.get(key)
        data, _ = await self._with_fallback("get", key, lambda b: b.get(key), retry_missing=True)
        return data

    async def delete(self, key: str, backend: BackendId | None = None) -> None:
        """Delete *key*. Missing keys are ignored."""
        if backend == LOCAL or self._remote is None:
            await self._local.delete(key)
            return
        _, used = await self._with_fallback("delete", key, lambda b: b.delete(key))
        if backend is None and used == REMOTE:
            # A copy may exist locally from an earlier fallback write.
            await self._local.delete(key)
        logger.info("Deleted %s", key)

    async def exists(self, key: str, backend: BackendId | None = None) -> bool:
        if backend == LOCAL or self._remote is None:
            return await self._local.exists(key)
        found, used = await self._with_fallback("exists", key, lambda b: b.exists(key))
        if not found and backend is None and used == REMOTE:
            return await self._local.exists(key)
        return found

    async def presign(
        self,
        key: str,
        options: PresignOptions | None = None,
        backend: BackendId | None = None,
    ) -> str:
        options = options or PresignOptions(expires_in=self.default_expiry)
        if backend == LOCAL or self._remote is None:
            return await self._local.presign(key, options)
        url, _ = await self._with_fallback("presign", key, lambda b: b.presign(key, options))
        return url

    # -- remote-only operations: never fall back --

    async def copy(self, source_key: str, destination_key: str) -> None:
        await self._require_remote("copy").copy(source_key, destination_key)

    async def head(self, key: str) -> ObjectInfo:
        return await self._require_remote("head").head(key)

    async def list_keys(self, prefix: str = "", max_keys: int = 1000) -> list[str]:
        return await self._require_remote("list_keys").list_keys(prefix, max_keys)

    async def presign_upload(self, key: str, content_type: str, expires_in: int = 300) -> str:
        return await self._require_remote("presign_upload").presign_upload(
            key, content_type, expires_in
        )

    async def close(self) -> None:
        """Release resources held by backends."""
        for backend in (self._remote, self._local):
            close = getattr(backend, "close", None)
            if close is not None:
                await close()

    # -- internal helpers --

    def _require_remote(self, operation: str) -> StorageBackend:
        if self._remote is None:
            raise NotSupported(operation, LOCAL)
        return self._remote

    async def _with_fallback(
        self,
        operation: str,
        key: str,
        call: Callable[[StorageBackend], Awaitable[T]],
        retry_missing: bool = False,
    ) -> tuple[T, BackendId]:
        """Run *call* on remote, then once on local if remote raised."""
        if self._remote is None:
            return await call(self._local), LOCAL
        try:
            return await call(self._remote), REMOTE
        except NotFound:
            if not retry_missing:
                raise
            logger.warning("%s not found on remote storage, trying local storage", key)
        except NotSupported:
            raise
        except Exception:
            logger.error(
                "Remote storage %s failed for %s, falling back to local storage",
                operation,
                key,
                exc_info=True,
            )
        return await call(self._local), LOCAL


def create_storage_manager(config: StorageConfig) -> StorageManager:
    """Build the manager, choosing remote mode when S3 is fully configured."""
    local = LocalStorageBackend(Path(config.local_root), base_url=config.public_base_url)

    if not config.s3.is_configured:
        logger.warning("S3 not configured - using local filesystem storage at %s", config.local_root)
        return StorageManager(local, default_expiry=config.presign_expiry)

    from assetvault.lib.storage.s3 import S3StorageBackend

    logger.info("Storage backend: S3 bucket %s (%s)", config.s3.bucket, config.s3.region)
    remote = S3StorageBackend(config.s3, cdn_url=config.cdn_url)
    return StorageManager(local, remote=remote, default_expiry=config.presign_expiry)
