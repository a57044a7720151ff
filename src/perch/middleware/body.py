"""Body-parsing middleware.

Each factory returns a middleware that reads the request body when the
Content-Type matches and stores the result in ``request.parsed_body``.
Requests with another Content-Type pass through untouched.
"""

import json as json_module

from perch._internal.types import Handler, Next
from perch.errors import HTTPError
from perch.http.query import QueryParams
from perch.http.request import Request
from perch.http.response import Response


async def _read_limited(request: Request, limit: int | None) -> bytes:
    """Read the body, failing with 413 once it grows past *limit* bytes.

    Without an explicit *limit* the app-wide ``max_body_size`` applies. A
    body already read by ``request.body()`` is reused, not read again.
    """
    if limit is None:
        limit = request.max_body_size

    cached = request._cache.get("_body")
    if cached is not None:
        if len(cached) > limit:
            raise HTTPError(status=413, detail=f"Request body exceeds {limit} bytes")
        return cached

    declared = request.content_length
    if declared is not None and declared > limit:
        raise HTTPError(status=413, detail=f"Request body exceeds {limit} bytes")

    chunks: list[bytes] = []
    size = 0
    async for chunk in request.stream():
        size += len(chunk)
        if size > limit:
            raise HTTPError(status=413, detail=f"Request body exceeds {limit} bytes")
        chunks.append(chunk)
    body = b"".join(chunks)
    request._cache["_body"] = body
    return body


def json_body(*, limit: int | None = None, strict: bool = True) -> Handler:
    """Parse ``application/json`` bodies.

    Malformed JSON is a 400; a body over *limit* bytes is a 413. With
    *strict*, only objects and arrays are accepted at the top level.
    """

    async def parse_json(request: Request, response: Response, next: Next) -> None:
        if request.parsed_body is not None or not request.mimetype.endswith("json"):
            next()
            return

        raw = await _read_limited(request, limit)
        if not raw.strip():
            request.parsed_body = {}
            next()
            return
        try:
            value = json_module.loads(raw)
        except (UnicodeDecodeError, json_module.JSONDecodeError) as exc:
            raise HTTPError(status=400, detail=f"Malformed JSON body: {exc}") from exc
        if strict and not isinstance(value, dict | list):
            raise HTTPError(status=400, detail="JSON body must be an object or an array")

        request.parsed_body = value
        next()

    return parse_json


def urlencoded_body(*, limit: int | None = None) -> Handler:
    """Parse ``application/x-www-form-urlencoded`` bodies into ``QueryParams``."""

    async def parse_urlencoded(request: Request, response: Response, next: Next) -> None:
        if (
            request.parsed_body is not None
            or request.mimetype != "application/x-www-form-urlencoded"
        ):
            next()
            return

        raw = await _read_limited(request, limit)
        request.parsed_body = QueryParams(raw)
        next()

    return parse_urlencoded
