"""Per-request context.

Unlike the response, most of the request is received data that never
changes. Three parts are filled in as the request moves through the chain:
``params`` and ``base_path`` (set by the executor before each step) and
``state`` (an open-ended mapping middleware uses to pass data forward).
"""

from __future__ import annotations

import json as json_module
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from typing import Any

from perch._internal.asgi import Receive, Scope
from perch.http.headers import Headers
from perch.http.query import QueryParams


async def _empty_receive() -> dict[str, Any]:
    return {"type": "http.request", "body": b"", "more_body": False}


@dataclass(slots=True, eq=False)
class Request:
    """The request context passed to every handler.

    Body is accessed asynchronously via ``.body()``, ``.json()``, ``.text()``.
    Body-parsing middleware store their result in ``parsed_body``.
    """

    method: str
    path: str
    headers: Headers = field(default_factory=Headers)
    query: QueryParams = field(default_factory=QueryParams)
    http_version: str = "1.1"
    client: tuple[str, int] | None = None
    server: tuple[str, int] | None = None

    # Populated during matching, per step
    params: dict[str, str] = field(default_factory=dict)
    base_path: str = ""

    # Attachments for passing data down the chain
    state: dict[str, Any] = field(default_factory=dict)
    parsed_body: Any = None

    # Default cap for the body-parsing middleware (AppConfig.max_body_size)
    max_body_size: int = 1024 * 1024

    _receive: Receive = field(default=_empty_receive, repr=False)
    _cache: dict[str, Any] = field(default_factory=dict, repr=False)

    # -- Computed properties --

    @property
    def content_type(self) -> str | None:
        """The Content-Type header value."""
        return self.headers.get("content-type")

    @property
    def mimetype(self) -> str:
        """Content-Type without parameters, lowercased (``application/json``)."""
        return (self.content_type or "").split(";", 1)[0].strip().lower()

    @property
    def content_length(self) -> int | None:
        """The Content-Length header as int."""
        value = self.headers.get("content-length")
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            return None

    @property
    def url(self) -> str:
        """Full request URL (path + query string)."""
        qs = self.query.raw
        if qs:
            return f"{self.path}?{qs.decode('latin-1')}"
        return self.path

    def get(self, name: str, default: str | None = None) -> str | None:
        """Return a request header, case-insensitively."""
        return self.headers.get(name, default)

    # -- Async body access --

    async def body(self) -> bytes:
        """Read the full request body.

        Result is cached: the ASGI receive is consumed once, then
        the same bytes are returned on subsequent calls.
        """
        if "_body" in self._cache:
            return self._cache["_body"]
        chunks = [chunk async for chunk in self.stream()]
        result = b"".join(chunks)
        self._cache["_body"] = result
        return result

    async def stream(self) -> AsyncGenerator[bytes]:
        """Stream the request body in chunks.

        The body can be streamed only once. After ``body()`` has read it, use
        ``body()`` again; streaming a second time raises ``RuntimeError``.
        """
        if self._cache.get("_streamed"):
            msg = "Request body was already read; use 'await request.body()'"
            raise RuntimeError(msg)
        self._cache["_streamed"] = True
        while True:
            message = await self._receive()
            if message.get("type") == "http.disconnect":
                break
            body = message.get("body", b"")
            if body:
                yield body
            if not message.get("more_body", False):
                break

    async def json(self) -> Any:
        """Parse the body as JSON."""
        raw = await self.body()
        return json_module.loads(raw)

    async def text(self) -> str:
        """Read the body as text (UTF-8)."""
        raw = await self.body()
        return raw.decode("utf-8")

    # -- Factory --

    @classmethod
    def from_asgi(cls, scope: Scope, receive: Receive) -> Request:
        """Create a Request from an ASGI scope and receive callable."""
        server = scope.get("server")
        client = scope.get("client")
        return cls(
            method=scope["method"].upper(),
            path=scope["path"] or "/",
            headers=Headers(tuple(scope.get("headers", ()))),
            query=QueryParams(scope.get("query_string", b"")),
            http_version=scope.get("http_version", "1.1"),
            server=tuple(server) if server else None,
            client=tuple(client) if client else None,
            _receive=receive,
        )
