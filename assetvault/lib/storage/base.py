"""Storage backend protocol and common types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Literal, Protocol, runtime_checkable

BackendId = Literal["remote", "local"]

REMOTE: BackendId = "remote"
LOCAL: BackendId = "local"


@dataclass
class StoredObject:
    """Metadata for an object written by a backend."""

    key: str
    backend: BackendId
    url: str
    content_type: str
    size: int
    checksum: str
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class ObjectInfo:
    """Rich object metadata (remote backend only)."""

    key: str
    size: int
    content_type: str
    last_modified: datetime
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass
class PresignOptions:
    """Options for minting a retrieval URL.

    Local URLs cannot carry an expiry; the retrieval route enforces auth
    instead (public vs protected).
    """

    expires_in: int = 3600
    force_download: bool = False
    download_filename: str | None = None
    public_access: bool = False


def content_disposition(options: PresignOptions) -> str | None:
    if not options.force_download:
        return None
    if options.download_filename:
        return f'attachment; filename="{options.download_filename}"'
    return "attachment"


@runtime_checkable
class StorageBackend(Protocol):
    """Interface implemented by the remote and local backends."""

    backend_id: BackendId

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        metadata: dict[str, str] | None = None,
    ) -> StoredObject:
        """Store data under the given key, atomically."""
        ...

    async def get(self, key: str) -> bytes:
        """Retrieve the raw bytes for a key. Raises ``NotFound``."""
        ...

    async def delete(self, key: str) -> None:
        """Remove a key from storage. Deleting a missing key is not an error."""
        ...

    async def exists(self, key: str) -> bool:
        """Check whether a key exists in storage."""
        ...

    async def presign(self, key: str, options: PresignOptions) -> str:
        """Return a time-limited or auth-routed retrieval URL for the key."""
        ...

    def public_url(self, key: str) -> str:
        """Return the canonical URL recorded at upload time."""
        ...

    async def copy(self, source_key: str, destination_key: str) -> None:
        """Server-side copy. Remote only."""
        ...

    async def head(self, key: str) -> ObjectInfo:
        """Rich object metadata. Remote only."""
        ...

    async def list_keys(self, prefix: str = "", max_keys: int = 1000) -> list[str]:
        """List keys under a prefix. Remote only."""
        ...

    async def presign_upload(self, key: str, content_type: str, expires_in: int = 300) -> str:
        """Presigned PUT URL for direct uploads. Remote only."""
        ...
