"""ASGI middleware serving files from the local storage backend.

Local storage cannot mint expiring URLs, so the URLs it issues point here:

* ``/api/files/public/{key}`` serves without authentication (share links).
* ``/api/files/{key}`` requires the injected ``authorize`` callable to accept
  the request.

Remote (S3) URLs bypass this route entirely.
"""

from __future__ import annotations

import inspect
import logging
import mimetypes
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING
from urllib.parse import parse_qs, quote

from litestar.types import ASGIApp, Receive, Scope, Send

from assetvault.lib.exceptions import NotFound
from assetvault.middleware.helpers import send_not_found, send_unauthorized

if TYPE_CHECKING:
    from assetvault.lib.storage.local import LocalStorageBackend

logger = logging.getLogger(__name__)

FILES_PREFIX = "/api/files/"
PUBLIC_PREFIX = "/api/files/public/"

Authorize = Callable[[Scope], "bool | Awaitable[bool]"]


class LocalFilesMiddleware:
    """Serve locally stored objects behind public and protected routes."""

    def __init__(self, app: ASGIApp, backend: LocalStorageBackend, authorize: Authorize) -> None:
        self.app = app
        self._backend = backend
        self._authorize = authorize

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or not scope["path"].startswith(FILES_PREFIX):
            await self.app(scope, receive, send)
            return

        path = scope["path"]
        if path.startswith(PUBLIC_PREFIX):
            key = path[len(PUBLIC_PREFIX):]
        else:
            key = path[len(FILES_PREFIX):]
            if not await self._is_authorized(scope):
                await send_unauthorized(send)
                return

        # ASGI servers hand over an already percent-decoded path.
        if not key:
            await send_not_found(send)
            return

        try:
            content = await self._backend.get(key)
        except NotFound:
            await send_not_found(send)
            return

        media_type = mimetypes.guess_type(key)[0] or "application/octet-stream"
        headers = [
            (b"content-type", media_type.encode()),
            (b"content-length", str(len(content)).encode()),
        ]

        qs = scope.get("query_string", b"")
        params = parse_qs(qs.decode("latin-1") if isinstance(qs, bytes) else qs)
        if params.get("download", ["0"])[0] in ("1", "true"):
            filename = key.rsplit("/", 1)[-1]
            headers.append(
                (b"content-disposition", f"attachment; filename*=UTF-8''{quote(filename)}".encode())
            )

        await send({"type": "http.response.start", "status": 200, "headers": headers})
        await send({"type": "http.response.body", "body": content})

    async def _is_authorized(self, scope: Scope) -> bool:
        try:
            allowed = self._authorize(scope)
            if inspect.isawaitable(allowed):
                allowed = await allowed
        except Exception:
            logger.warning("File route authorization check failed", exc_info=True)
            return False
        return bool(allowed)
