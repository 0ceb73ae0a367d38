"""Asset service: upload, download, delete, and hand-off to processing."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from assetvault.lib.exceptions import UploadRejected
from assetvault.lib.storage.base import PresignOptions
from assetvault.processing.jobs import MODEL_3D_EXTENSIONS, AssetRecord, ProcessingState
from assetvault.processing.store import new_asset_id

if TYPE_CHECKING:
    from assetvault.lib.storage.base import BackendId
    from assetvault.lib.storage.manager import StorageManager, UploadResult
    from assetvault.processing.jobs import AssetVariant
    from assetvault.processing.orchestrator import Orchestrator
    from assetvault.processing.store import AssetStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_UPLOAD_SIZE = 50 * 1024 * 1024

ALLOWED_MIME_PREFIXES = ("image/", "video/", "audio/", "model/")

ALLOWED_DOCUMENT_TYPES = frozenset({
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "text/plain",
    "text/csv",
})


def is_allowed_mime_type(mime_type: str, filename: str | None = None) -> bool:
    """Accept media, documents, and 3D models (which browsers often send untyped)."""
    mime_type = (mime_type or "").lower()
    is_3d_model = bool(filename) and filename.lower().endswith(MODEL_3D_EXTENSIONS)
    if is_3d_model and mime_type in ("", "application/octet-stream"):
        return True
    return mime_type.startswith(ALLOWED_MIME_PREFIXES) or mime_type in ALLOWED_DOCUMENT_TYPES


def validate_upload(
    data: bytes,
    filename: str,
    mime_type: str,
    max_size: int = DEFAULT_MAX_UPLOAD_SIZE,
) -> None:
    if not data:
        raise UploadRejected("No file content provided")
    if len(data) > max_size:
        raise UploadRejected(
            f"File size {len(data)} exceeds maximum allowed size of {max_size // (1024 * 1024)}MB"
        )
    if not is_allowed_mime_type(mime_type, filename):
        raise UploadRejected(f"File type {mime_type or 'unknown'} is not allowed for {filename}")


async def upload(
    storage: StorageManager,
    data: bytes,
    filename: str,
    mime_type: str,
    prefix: str = "assets",
    metadata: dict[str, str] | None = None,
) -> UploadResult:
    """Store a file and return its key, backend, size, checksum and URL."""
    return await storage.upload(data, filename, mime_type, prefix=prefix, metadata=metadata)


async def download(
    storage: StorageManager,
    file_key: str,
    options: PresignOptions | None = None,
    backend: BackendId | None = None,
) -> str:
    """Return a presigned (remote) or routed (local) retrieval URL."""
    return await storage.presign(file_key, options, backend=backend)


async def delete(storage: StorageManager, file_key: str, backend: BackendId | None = None) -> None:
    """Delete a stored file. Safe to call repeatedly."""
    await storage.delete(file_key, backend=backend)


async def exists(storage: StorageManager, file_key: str, backend: BackendId | None = None) -> bool:
    return await storage.exists(file_key, backend=backend)


async def ingest_asset(
    storage: StorageManager,
    store: AssetStore,
    orchestrator: Orchestrator,
    data: bytes,
    filename: str,
    mime_type: str,
    prefix: str = "assets",
    metadata: dict[str, str] | None = None,
    max_upload_size: int = DEFAULT_MAX_UPLOAD_SIZE,
    requested_variants: list[str] | None = None,
) -> AssetRecord:
    """Validate, store, record, and queue processing for an upload.

    Returns as soon as the jobs are queued; the record starts PENDING.
    """
    validate_upload(data, filename, mime_type, max_upload_size)

    result = await storage.upload(data, filename, mime_type, prefix=prefix, metadata=metadata)

    record = await store.create_asset(
        AssetRecord(
            id=new_asset_id(),
            file_key=result.file_key,
            backend=result.backend,
            filename=filename,
            mime_type=mime_type,
            size=result.size,
            checksum=result.checksum,
            state=ProcessingState.PENDING,
        )
    )
    await orchestrator.submit(record, requested_variants=requested_variants)
    logger.info("Ingested %s as asset %s (%s)", filename, record.id, record.asset_type.value)
    return record


async def delete_variant(storage: StorageManager, store: AssetStore, variant: AssetVariant) -> None:
    """Delete a variant record and the object it points at."""
    await store.delete_variant(variant)
    await storage.delete(variant.file_key, backend=variant.backend)


async def purge_asset(storage: StorageManager, store: AssetStore, asset_id: str) -> bool:
    """Delete every stored object belonging to an asset.

    Removing the asset row itself is the external store's job.
    """
    record = await store.get_asset(asset_id)
    if record is None:
        return False
    for variant in await store.list_variants(asset_id):
        await delete_variant(storage, store, variant)
    await storage.delete(record.file_key, backend=record.backend)
    return True
