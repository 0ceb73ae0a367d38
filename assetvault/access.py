"""Access governance: who gets a retrieval URL, and what kind.

Deciding a user's permissions is the caller's job. The caller summarises it
in an :class:`AccessRequest`, and this module applies the direct-download vs
approval-gated policy and mints the URL.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from assetvault.lib.exceptions import AccessDenied
from assetvault.lib.storage.base import PresignOptions

if TYPE_CHECKING:
    from assetvault.lib.storage.base import BackendId
    from assetvault.lib.storage.manager import StorageManager

logger = logging.getLogger(__name__)

SHARE_LINK_EXPIRY = 3600


class DownloadPolicy(str, Enum):
    DIRECT = "DIRECT"
    APPROVAL_REQUIRED = "APPROVAL_REQUIRED"


@dataclass
class AccessRequest:
    """Facts about the requester, resolved by the external permission model."""

    can_download_directly: bool = False
    is_admin: bool = False
    has_approved_request: bool = False

    @property
    def policy(self) -> DownloadPolicy:
        if self.is_admin or self.can_download_directly:
            return DownloadPolicy.DIRECT
        return DownloadPolicy.APPROVAL_REQUIRED


class AccessGovernor:
    """Mint scoped, time-limited URLs for originals and variants."""

    def __init__(self, storage: StorageManager, default_expiry: int | None = None) -> None:
        self._storage = storage
        self._default_expiry = default_expiry or storage.default_expiry

    async def download_url(
        self,
        file_key: str,
        access: AccessRequest,
        filename: str | None = None,
        expires_in: int | None = None,
        force_download: bool = True,
        backend: BackendId | None = None,
    ) -> str:
        """Return a download URL, enforcing the approval gate."""
        if access.policy is DownloadPolicy.APPROVAL_REQUIRED and not access.has_approved_request:
            raise AccessDenied(
                "Download access must be requested and approved before downloading this asset"
            )

        options = PresignOptions(
            expires_in=expires_in or self._default_expiry,
            force_download=force_download,
            download_filename=filename,
        )
        url = await self._storage.presign(file_key, options, backend=backend)
        logger.info("Issued %s download URL for %s", access.policy.value.lower(), file_key)
        return url

    async def preview_url(
        self,
        file_key: str,
        expires_in: int | None = None,
        backend: BackendId | None = None,
    ) -> str:
        """Inline URL for previews and thumbnails; no download gate."""
        options = PresignOptions(expires_in=expires_in or self._default_expiry)
        return await self._storage.presign(file_key, options, backend=backend)

    async def share_url(
        self,
        file_key: str,
        allow_download: bool,
        filename: str | None = None,
        backend: BackendId | None = None,
    ) -> str:
        """Unauthenticated download URL for a share link."""
        if not allow_download:
            raise AccessDenied("Downloads are not allowed for this share link")
        options = PresignOptions(
            expires_in=SHARE_LINK_EXPIRY,
            force_download=True,
            download_filename=filename,
            public_access=True,
        )
        return await self._storage.presign(file_key, options, backend=backend)
