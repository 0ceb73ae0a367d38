"""Local filesystem storage backend."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

from assetvault.lib.exceptions import NotFound, NotSupported
from assetvault.lib.keys import checksum, random_id
from assetvault.lib.storage.base import LOCAL, ObjectInfo, PresignOptions, StoredObject


class LocalStorageBackend:
    """Store files on the local filesystem under their key path.

    Files are served by the ``/api/files`` retrieval route, which performs
    its own authorization. URLs minted here therefore carry no expiry.
    """

    backend_id = LOCAL

    def __init__(self, root: Path, base_url: str = "http://localhost:3000") -> None:
        self._root = Path(root)
        self._base_url = base_url.rstrip("/")

    @property
    def root(self) -> Path:
        return self._root

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        metadata: dict[str, str] | None = None,
    ) -> StoredObject:
        path = self.key_to_path(key)
        await asyncio.to_thread(self._write_file, path, data)
        return StoredObject(
            key=key,
            backend=LOCAL,
            url=self.public_url(key),
            content_type=content_type,
            size=len(data),
            checksum=checksum(data),
        )

    async def get(self, key: str) -> bytes:
        path = self.key_to_path(key)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except (FileNotFoundError, IsADirectoryError) as exc:
            raise NotFound(key) from exc

    async def delete(self, key: str) -> None:
        path = self.key_to_path(key)
        await asyncio.to_thread(self._unlink, path)

    async def exists(self, key: str) -> bool:
        path = self.key_to_path(key)
        return await asyncio.to_thread(path.is_file)

    async def presign(self, key: str, options: PresignOptions) -> str:
        if options.public_access:
            url = f"{self._base_url}/api/files/public/{key}"
        else:
            url = f"{self._base_url}/api/files/{key}"
        if options.force_download:
            url += "?download=1"
        return url

    def public_url(self, key: str) -> str:
        return f"{self._base_url}/api/files/{key}"

    async def copy(self, source_key: str, destination_key: str) -> None:
        raise NotSupported("copy")

    async def head(self, key: str) -> ObjectInfo:
        raise NotSupported("head")

    async def list_keys(self, prefix: str = "", max_keys: int = 1000) -> list[str]:
        raise NotSupported("list_keys")

    async def presign_upload(self, key: str, content_type: str, expires_in: int = 300) -> str:
        raise NotSupported("presign_upload")

    # -- internal helpers --

    def key_to_path(self, key: str) -> Path:
        """Map a key onto the storage root, refusing anything that escapes it."""
        if "\x00" in key or ".." in key.split("/"):
            raise NotFound(key)
        root = self._root.resolve()
        path = (root / key.lstrip("/")).resolve()
        if not path.is_relative_to(root):
            raise NotFound(key)
        return path

    @staticmethod
    def _write_file(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        # Readers never see a half-written file: write aside, then rename.
        tmp = path.with_name(f".{path.name}.{random_id(8)}.part")
        try:
            tmp.write_bytes(data)
            os.replace(tmp, path)
        finally:
            tmp.unlink(missing_ok=True)

    @staticmethod
    def _unlink(path: Path) -> None:
        path.unlink(missing_ok=True)
