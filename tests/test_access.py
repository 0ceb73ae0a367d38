"""Tests for download access governance."""

import pytest

from assetvault.access import AccessGovernor, AccessRequest, DownloadPolicy
from assetvault.lib.exceptions import AccessDenied


class TestAccessRequest:
    @pytest.mark.parametrize("request_kwargs, expected", [
        ({"is_admin": True}, DownloadPolicy.DIRECT),
        ({"can_download_directly": True}, DownloadPolicy.DIRECT),
        ({}, DownloadPolicy.APPROVAL_REQUIRED),
        ({"has_approved_request": True}, DownloadPolicy.APPROVAL_REQUIRED),
    ])
    def test_policy(self, request_kwargs, expected):
        assert AccessRequest(**request_kwargs).policy is expected


class TestAccessGovernor:
    @pytest.mark.asyncio
    async def test_direct_download(self, storage):
        governor = AccessGovernor(storage)

        url = await governor.download_url("assets/x.jpg", AccessRequest(can_download_directly=True))

        assert url == "http://localhost:3000/api/files/assets/x.jpg?download=1"

    @pytest.mark.asyncio
    async def test_approval_required_without_request(self, storage):
        governor = AccessGovernor(storage)

        with pytest.raises(AccessDenied):
            await governor.download_url("assets/x.jpg", AccessRequest())

    @pytest.mark.asyncio
    async def test_approved_request_allows_download(self, storage):
        governor = AccessGovernor(storage)

        url = await governor.download_url("assets/x.jpg", AccessRequest(has_approved_request=True))

        assert url.endswith("/api/files/assets/x.jpg?download=1")

    @pytest.mark.asyncio
    async def test_remote_download_options(self, remote_storage, remote_backend):
        governor = AccessGovernor(remote_storage, default_expiry=900)
        captured = {}

        async def presign(key, options):
            captured["options"] = options
            return f"https://bucket.example.com/{key}"

        remote_backend.presign = presign

        await governor.download_url("assets/x.jpg", AccessRequest(is_admin=True), filename="x.jpg")

        options = captured["options"]
        assert options.expires_in == 900
        assert options.force_download is True
        assert options.download_filename == "x.jpg"
        assert options.public_access is False

    @pytest.mark.asyncio
    async def test_preview_is_inline(self, storage):
        url = await AccessGovernor(storage).preview_url("thumbnails/t.jpg")
        assert url == "http://localhost:3000/api/files/thumbnails/t.jpg"

    @pytest.mark.asyncio
    async def test_share_link(self, storage):
        url = await AccessGovernor(storage).share_url("assets/x.jpg", allow_download=True)
        assert url == "http://localhost:3000/api/files/public/assets/x.jpg?download=1"

    @pytest.mark.asyncio
    async def test_share_link_without_download_permission(self, storage):
        with pytest.raises(AccessDenied):
            await AccessGovernor(storage).share_url("assets/x.jpg", allow_download=False)
