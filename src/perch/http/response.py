"""Mutable per-request response builder.

Handlers set a status and headers, then send exactly once. Sending is
terminal: the chain executor stops as soon as the response is sent, and a
second send raises ``DuplicateSend``.
"""

import asyncio
import json as json_module
from collections.abc import Callable
from http import HTTPStatus
from typing import Any

from perch.errors import DuplicateSend

JSON_CONTENT_TYPE = "application/json"
HTML_CONTENT_TYPE = "text/html; charset=utf-8"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"
BINARY_CONTENT_TYPE = "application/octet-stream"


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


def reason_phrase(status: int) -> str:
    """Standard reason phrase for *status* (``"Not Found"``), or ``""``."""
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return ""


class Response:
    """The response builder passed to every handler.

    Usage::

        def show(request, response, next):
            monster = store.get(request.params["name"])
            if monster is None:
                response.status(404).json({"error": "unknown monster"})
                return
            response.json(monster)

    ``send()`` picks a content type from the body when none was set:
    ``str`` is HTML, ``bytes`` is binary, ``dict``/``list`` are JSON.

    Once sent, the response is frozen: another send, or any change to the
    status or headers, raises ``DuplicateSend``.
    """

    __slots__ = (
        "_finish_callbacks",
        "_json_indent",
        "_loop",
        "_sent",
        "_sent_event",
        "body",
        "headers",
        "status_code",
    )

    def __init__(self, *, json_indent: int | None = None) -> None:
        self.status_code: int = 200
        self.headers: list[tuple[str, str]] = []
        self.body: bytes = b""
        self._sent = False
        self._sent_event = asyncio.Event()
        self._loop = _running_loop()
        self._json_indent = json_indent
        self._finish_callbacks: list[Callable[["Response"], Any]] = []

    def __repr__(self) -> str:
        state = "sent" if self._sent else "pending"
        return f"<Response {self.status_code} {state}>"

    # -- Status and headers --

    def status(self, code: int) -> "Response":
        """Set the status code. Returns the builder for chaining."""
        self._check_not_sent()
        self.status_code = int(code)
        return self

    def get_header(self, name: str) -> str | None:
        """Return the first value of header *name*, case-insensitively."""
        lower = name.lower()
        for key, value in self.headers:
            if key.lower() == lower:
                return value
        return None

    def set_header(self, name: str, value: str) -> "Response":
        """Set header *name*, replacing any existing values."""
        self.remove_header(name)
        self.headers.append((name, str(value)))
        return self

    def append_header(self, name: str, value: str) -> "Response":
        """Add another value for header *name*."""
        self._check_not_sent()
        self.headers.append((name, str(value)))
        return self

    def remove_header(self, name: str) -> "Response":
        self._check_not_sent()
        lower = name.lower()
        self.headers = [(k, v) for k, v in self.headers if k.lower() != lower]
        return self

    def reset(self) -> "Response":
        """Discard the status, headers and body set so far. Only before sending."""
        self._check_not_sent()
        self.status_code = 200
        self.headers = []
        self.body = b""
        return self

    @property
    def content_type(self) -> str | None:
        return self.get_header("content-type")

    # -- Terminal sends --

    @property
    def sent(self) -> bool:
        """True once a terminal send has happened."""
        return self._sent

    def send(self, body: Any = None) -> None:
        """Send the response. Terminal: may be called once per request.

        Raises ``DuplicateSend`` if the response was already sent.
        """
        self._check_not_sent()

        if body is None:
            payload = b""
        elif isinstance(body, str):
            payload = body.encode("utf-8")
            self._default_content_type(HTML_CONTENT_TYPE)
        elif isinstance(body, bytes | bytearray | memoryview):
            payload = bytes(body)
            self._default_content_type(BINARY_CONTENT_TYPE)
        else:
            self.json(body)
            return

        self.body = payload
        self._mark_sent()

    def json(self, value: Any) -> None:
        """Serialize *value* as JSON and send it with ``application/json``."""
        self._check_not_sent()
        if self._json_indent is None:
            text = json_module.dumps(value, separators=(",", ":"), ensure_ascii=False)
        else:
            text = json_module.dumps(value, indent=self._json_indent, ensure_ascii=False)
        self._default_content_type(JSON_CONTENT_TYPE)
        self.body = text.encode("utf-8")
        self._mark_sent()

    def send_status(self, code: int) -> None:
        """Set the status and send its reason phrase as plain text."""
        self._check_not_sent()
        self.status(code)
        self._default_content_type(TEXT_CONTENT_TYPE)
        self.send(reason_phrase(code) or str(code))

    def end(self) -> None:
        """Send with an empty body (``response.status(204).end()``)."""
        self.send(None)

    def redirect(self, url: str, status: int = 302) -> None:
        """Redirect to *url* with a ``Location`` header."""
        self._check_not_sent()
        self.status(status).set_header("Location", url)
        self._default_content_type(TEXT_CONTENT_TYPE)
        self.send(f"{reason_phrase(status)}. Redirecting to {url}")

    # -- Lifecycle --

    def on_finish(self, callback: Callable[["Response"], Any]) -> None:
        """Run *callback(response)* after the response has been written."""
        self._finish_callbacks.append(callback)

    @property
    def finish_callbacks(self) -> tuple[Callable[["Response"], Any], ...]:
        return tuple(self._finish_callbacks)

    async def wait_sent(self) -> None:
        """Block until the response is sent."""
        await self._sent_event.wait()

    @property
    def text(self) -> str:
        """Body as string."""
        return self.body.decode("utf-8")

    def _default_content_type(self, content_type: str) -> None:
        if self.get_header("content-type") is None:
            self.headers.append(("Content-Type", content_type))

    def _check_not_sent(self) -> None:
        if self._sent:
            msg = "Response was already sent; a request can only be answered once"
            raise DuplicateSend(msg)

    def _mark_sent(self) -> None:
        """Flag the response as sent and wake the chain executor.

        Handlers may send from a worker thread; the event is then set on the
        loop that created the response.
        """
        self._sent = True
        if self._loop is None or _running_loop() is self._loop:
            self._sent_event.set()
        else:
            self._loop.call_soon_threadsafe(self._sent_event.set)
