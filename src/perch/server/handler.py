"""ASGI handler — translates ASGI scope/messages to perch types.

Builds a fresh Request/Response pair per request, resolves the chain on the
root router, drives the chain executor and writes the sent response back
through ASGI ``send()``.
"""

import logging
from collections.abc import Callable
from typing import Any

from perch._internal.asgi import Receive, Scope, Send
from perch._internal.invoke import invoke
from perch.http.request import Request
from perch.http.response import Response
from perch.routing.router import Router
from perch.server.chain import run_chain
from perch.server.errors import ErrorHandlers
from perch.server.sender import send_response

logger = logging.getLogger("perch.server")


async def handle_request(
    scope: Scope,
    receive: Receive,
    send: Send,
    *,
    router: Router,
    error_handlers: ErrorHandlers,
    providers: dict[str, Callable[[], Any]] | None = None,
    debug: bool = False,
    json_indent: int | None = None,
    max_body_size: int | None = None,
) -> None:
    """Process a single HTTP request through the full pipeline."""
    if scope["type"] != "http":
        return

    request = Request.from_asgi(scope, receive)
    response = Response(json_indent=json_indent)
    if max_body_size is not None:
        request.max_body_size = max_body_size

    if providers:
        for name, provider in providers.items():
            request.state[name] = provider()

    resolution = router.resolve(request.method, request.path)
    await run_chain(
        resolution.steps,
        request,
        response,
        error_handlers=error_handlers,
        debug=debug,
    )

    await send_response(response, send, head=request.method == "HEAD")

    for callback in response.finish_callbacks:
        try:
            await invoke(callback, response)
        except Exception:
            logger.exception("on_finish callback failed for %s %s", request.method, request.path)
