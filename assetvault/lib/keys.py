"""File key generation and content checksums."""

from __future__ import annotations

import hashlib
import re
import secrets
from datetime import UTC, datetime

# URL-safe alphabet, 64 symbols
ID_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789_-"
ID_LENGTH = 10
MAX_NAME_LENGTH = 50

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def random_id(length: int = ID_LENGTH) -> str:
    return "".join(secrets.choice(ID_ALPHABET) for _ in range(length))


def sanitize_filename(filename: str, max_length: int = MAX_NAME_LENGTH) -> str:
    """Replace characters outside ``[A-Za-z0-9._-]`` with ``_`` and truncate.

    E.g. ``sanitize_filename("My Photo.jpg")`` → ``"My_Photo.jpg"``
    """
    sanitized = _UNSAFE_CHARS.sub("_", filename)[:max_length]
    return sanitized or "file"


def generate_key(original_filename: str, prefix: str = "assets", now: datetime | None = None) -> str:
    """Build a unique, human-traceable storage key.

    Layout is ``{prefix}/{year}/{month}/{id}-{name}``. Uniqueness comes from
    the random id, never from the input, so identical filenames uploaded in
    the same month still get distinct keys.
    """
    now = now or datetime.now(UTC)
    prefix = prefix.strip("/") or "assets"
    return (
        f"{prefix}/{now.year}/{now.month:02d}/"
        f"{random_id()}-{sanitize_filename(original_filename)}"
    )


def checksum(data: bytes) -> str:
    """Return the MD5 hex digest of *data*.

    Stored with the object for integrity checks only.
    """
    return hashlib.md5(data).hexdigest()
