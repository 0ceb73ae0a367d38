"""Remote/local asset storage behind one facade."""

from assetvault.lib.storage.base import (
    LOCAL,
    REMOTE,
    ObjectInfo,
    PresignOptions,
    StorageBackend,
    StoredObject,
)
from assetvault.lib.storage.local import LocalStorageBackend
from assetvault.lib.storage.manager import StorageManager, UploadResult, create_storage_manager

__all__ = [
    "LOCAL",
    "REMOTE",
    "LocalStorageBackend",
    "ObjectInfo",
    "PresignOptions",
    "StorageBackend",
    "StorageManager",
    "StoredObject",
    "UploadResult",
    "create_storage_manager",
]
