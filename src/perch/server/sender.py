"""ASGI response sending — translates a sent ``Response`` to ASGI messages."""

import logging

from perch._internal.asgi import Send
from perch.http.response import Response

logger = logging.getLogger("perch.server")


def _body_allowed(status: int) -> bool:
    """Whether an HTTP status code permits a response body."""
    # RFC: 1xx, 204, and 304 responses do not include a message body.
    return not (100 <= status < 200 or status in {204, 304})


def encode_headers(response: Response, body: bytes) -> list[tuple[bytes, bytes]]:
    """Raw ASGI header pairs, with ``content-length`` computed from *body*."""
    raw_headers: list[tuple[bytes, bytes]] = [
        (name.lower().encode("latin-1"), value.encode("latin-1"))
        for name, value in response.headers
        if name.lower() != "content-length"
    ]
    if not _body_allowed(response.status_code):
        raw_headers = [(name, value) for name, value in raw_headers if name != b"content-type"]
    raw_headers.append((b"content-length", str(len(body)).encode("latin-1")))
    return raw_headers


async def send_response(response: Response, send: Send, *, head: bool = False) -> bool:
    """Write *response* through ASGI ``send()``.

    HEAD requests get the headers of the full response and no body.
    Returns False if the connection was gone; the failure is logged and
    not retried.
    """
    body = response.body if _body_allowed(response.status_code) else b""
    raw_headers = encode_headers(response, body)
    if head:
        body = b""

    try:
        await send(
            {
                "type": "http.response.start",
                "status": response.status_code,
                "headers": raw_headers,
            }
        )
        await send(
            {
                "type": "http.response.body",
                "body": body,
            }
        )
    except OSError as exc:
        logger.warning("Client went away before the response was written: %s", exc)
        return False
    return True
