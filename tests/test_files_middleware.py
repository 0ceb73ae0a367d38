"""Tests for the local file retrieval middleware."""

import pytest

from assetvault.middleware.files import LocalFilesMiddleware


class TestLocalFilesMiddleware:
    @pytest.fixture
    def captured_messages(self):
        return []

    def _make_send(self, captured):
        async def send(message):
            captured.append(message)
        return send

    def _make_app(self):
        async def app(scope, receive, send):
            await send({
                "type": "http.response.start",
                "status": 200,
                "headers": [(b"content-type", b"text/plain")],
            })
            await send({"type": "http.response.body", "body": b"app"})
        return app

    def _make_scope(self, path, query_string=b""):
        return {
            "type": "http",
            "method": "GET",
            "path": path,
            "query_string": query_string,
            "headers": [],
        }

    def _headers(self, captured):
        return dict(captured[0]["headers"])

    @pytest.fixture
    async def stored_key(self, local_backend):
        await local_backend.put("assets/2024/01/abc-photo.jpg", b"jpeg bytes", "image/jpeg")
        return "assets/2024/01/abc-photo.jpg"

    @pytest.mark.asyncio
    async def test_other_paths_pass_through(self, local_backend, captured_messages):
        middleware = LocalFilesMiddleware(self._make_app(), local_backend, authorize=lambda scope: False)

        await middleware(self._make_scope("/"), None, self._make_send(captured_messages))

        assert captured_messages[1]["body"] == b"app"

    @pytest.mark.asyncio
    async def test_public_route_needs_no_auth(self, local_backend, stored_key, captured_messages):
        middleware = LocalFilesMiddleware(self._make_app(), local_backend, authorize=lambda scope: False)

        await middleware(
            self._make_scope(f"/api/files/public/{stored_key}"), None, self._make_send(captured_messages)
        )

        assert captured_messages[0]["status"] == 200
        assert self._headers(captured_messages)[b"content-type"] == b"image/jpeg"
        assert captured_messages[1]["body"] == b"jpeg bytes"

    @pytest.mark.asyncio
    async def test_protected_route_rejects_unauthorized(self, local_backend, stored_key, captured_messages):
        middleware = LocalFilesMiddleware(self._make_app(), local_backend, authorize=lambda scope: False)

        await middleware(self._make_scope(f"/api/files/{stored_key}"), None, self._make_send(captured_messages))

        assert captured_messages[0]["status"] == 401

    @pytest.mark.asyncio
    async def test_protected_route_with_async_authorize(self, local_backend, stored_key, captured_messages):
        async def authorize(scope):
            return True

        middleware = LocalFilesMiddleware(self._make_app(), local_backend, authorize=authorize)

        await middleware(self._make_scope(f"/api/files/{stored_key}"), None, self._make_send(captured_messages))

        assert captured_messages[0]["status"] == 200

    @pytest.mark.asyncio
    async def test_authorize_error_denies(self, local_backend, stored_key, captured_messages):
        def authorize(scope):
            raise RuntimeError("session store down")

        middleware = LocalFilesMiddleware(self._make_app(), local_backend, authorize=authorize)

        await middleware(self._make_scope(f"/api/files/{stored_key}"), None, self._make_send(captured_messages))

        assert captured_messages[0]["status"] == 401

    @pytest.mark.asyncio
    async def test_download_disposition(self, local_backend, stored_key, captured_messages):
        middleware = LocalFilesMiddleware(self._make_app(), local_backend, authorize=lambda scope: True)

        await middleware(
            self._make_scope(f"/api/files/{stored_key}", b"download=1"), None, self._make_send(captured_messages)
        )

        disposition = self._headers(captured_messages)[b"content-disposition"]
        assert disposition == b"attachment; filename*=UTF-8''abc-photo.jpg"

    @pytest.mark.asyncio
    async def test_missing_file(self, local_backend, captured_messages):
        middleware = LocalFilesMiddleware(self._make_app(), local_backend, authorize=lambda scope: True)

        await middleware(self._make_scope("/api/files/public/nope.jpg"), None, self._make_send(captured_messages))

        assert captured_messages[0]["status"] == 404

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", [
        "/api/files/public/../../etc/passwd",
        "/api/files/public/..%2F..%2Fetc%2Fpasswd",
    ])
    async def test_traversal_is_not_found(self, local_backend, captured_messages, path):
        middleware = LocalFilesMiddleware(self._make_app(), local_backend, authorize=lambda scope: True)

        await middleware(self._make_scope(path), None, self._make_send(captured_messages))

        assert captured_messages[0]["status"] == 404

    @pytest.mark.asyncio
    async def test_percent_in_key_is_not_decoded_twice(self, local_backend, captured_messages):
        await local_backend.put("assets/100%25-off.jpg", b"sale", "image/jpeg")
        await local_backend.put("assets/100%-off.jpg", b"wrong file", "image/jpeg")
        middleware = LocalFilesMiddleware(self._make_app(), local_backend, authorize=lambda scope: False)

        await middleware(
            self._make_scope("/api/files/public/assets/100%25-off.jpg"), None, self._make_send(captured_messages)
        )

        assert captured_messages[0]["status"] == 200
        assert captured_messages[1]["body"] == b"sale"
