"""Shared helpers for ASGI middleware."""

from litestar.types import Send


async def send_status(send: Send, status: int, body: bytes) -> None:
    """Send a plain-text response with the given status."""
    await send({
        "type": "http.response.start",
        "status": status,
        "headers": [(b"content-type", b"text/plain")],
    })
    await send({"type": "http.response.body", "body": body})


async def send_not_found(send: Send) -> None:
    await send_status(send, 404, b"Not Found")


async def send_unauthorized(send: Send) -> None:
    await send_status(send, 401, b"Unauthorized")
