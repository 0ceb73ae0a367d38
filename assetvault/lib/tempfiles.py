"""Scoped temp files for tools that need file-based I/O."""

from __future__ import annotations

import asyncio
import os
import tempfile
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

TEMP_PREFIX = "assetvault-"


def _create(suffix: str, data: bytes | None, directory: str | None) -> Path:
    fd, name = tempfile.mkstemp(prefix=TEMP_PREFIX, suffix=suffix, dir=directory)
    with os.fdopen(fd, "wb") as f:
        if data:
            f.write(data)
    return Path(name)


@asynccontextmanager
async def temp_media_file(
    suffix: str = "",
    data: bytes | None = None,
    directory: str | None = None,
) -> AsyncIterator[Path]:
    """Yield a temp file path, optionally pre-filled with *data*.

    The file is removed on every exit path, including cancellation and
    timeouts. Tools may also write to the path; it is removed all the same.
    """
    path = await asyncio.to_thread(_create, suffix, data, directory)
    try:
        yield path
    finally:
        path.unlink(missing_ok=True)
