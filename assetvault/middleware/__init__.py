"""ASGI middleware for the local file retrieval routes."""

from assetvault.middleware.files import LocalFilesMiddleware

__all__ = ["LocalFilesMiddleware"]
