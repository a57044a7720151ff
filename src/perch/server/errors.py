"""Error path of the chain executor.

Maps exceptions raised by handlers (or passed to ``next(exc)``) to a
response, using registered error handlers or sensible defaults.
"""

import inspect
import logging
from typing import Any, TypeAlias

from perch._internal.invoke import invoke
from perch._internal.types import ErrorHandler
from perch.errors import DuplicateSend, HandlerError, HTTPError
from perch.http.request import Request
from perch.http.response import TEXT_CONTENT_TYPE, Response
from perch.server.terminal import format_error_banner, log_error

logger = logging.getLogger("perch.server")

ErrorHandlers: TypeAlias = dict[int | type, ErrorHandler]


def find_error_handler(
    error_handlers: ErrorHandlers,
    exc: BaseException,
    status: int,
) -> ErrorHandler | None:
    """Pick the handler for *exc*.

    Lookup order: exact exception type, status code, then the exception's
    base classes nearest first.
    """
    if not error_handlers:
        return None
    handler = error_handlers.get(type(exc)) or error_handlers.get(status)
    if handler is not None:
        return handler
    for base in type(exc).__mro__[1:]:
        handler = error_handlers.get(base)
        if handler is not None:
            return handler
    return None


def send_result(response: Response, result: Any) -> None:
    """Send a value a handler returned instead of sending itself.

    ``None`` sends nothing; ``(body, status)`` sets the status first.
    """
    if result is None or response.sent:
        return
    if isinstance(result, tuple) and len(result) == 2 and isinstance(result[1], int):
        body, status = result
        response.status(status).send(body)
        return
    response.send(result)


async def call_error_handler(
    handler: ErrorHandler,
    request: Request,
    response: Response,
    exc: BaseException,
) -> None:
    """Invoke a user-registered error handler with introspected arguments.

    Error handlers may accept zero, one (request), two (request, response)
    or three (request, response, exc) args. A returned value is sent.
    """
    params = list(inspect.signature(handler).parameters.values())

    if len(params) >= 3:
        result = await invoke(handler, request, response, exc)
    elif len(params) == 2:
        result = await invoke(handler, request, response)
    elif len(params) == 1:
        result = await invoke(handler, request)
    else:
        result = await invoke(handler)

    send_result(response, result)


def send_default_error(
    response: Response,
    error: HTTPError,
    *,
    debug: bool,
    request: Request | None = None,
    cause: BaseException | None = None,
) -> None:
    """Plain-text error response for *error*'s status."""
    response.reset()
    response.status(error.status)
    for name, value in error.headers:
        response.append_header(name, value)
    response.set_header("Content-Type", TEXT_CONTENT_TYPE)

    body = error.detail or f"Error {error.status}"
    if debug and cause is not None:
        body = format_error_banner(cause, request)
    response.send(body)


def log_late_error(exc: BaseException, request: Request, response: Response) -> None:
    """Log an error raised after the response was sent. Nothing else can run."""
    if isinstance(exc, DuplicateSend):
        logger.warning("Duplicate send ignored for %s %s: %s", request.method, request.path, exc)
    else:
        log_error(exc, request, status=response.status_code)


async def handle_error(
    exc: BaseException,
    request: Request,
    response: Response,
    error_handlers: ErrorHandlers,
    *,
    debug: bool = False,
) -> None:
    """Answer *exc* with a registered error handler or the default response.

    Once a response has been sent nothing else runs; the error is only
    logged.
    """
    if response.sent:
        log_late_error(exc, request, response)
        return

    if isinstance(exc, HTTPError):
        http_error = exc
        cause = None
        logger.debug("%d %s %s: %s", exc.status, request.method, request.path, exc.detail)
    else:
        http_error = HandlerError(exc)
        cause = exc
        log_error(exc, request)

    handler = find_error_handler(error_handlers, exc, http_error.status)
    if handler is not None:
        response.status(http_error.status)
        try:
            await call_error_handler(handler, request, response, exc)
        except Exception as handler_exc:
            logger.error(
                "Error handler %s failed for %s %s",
                getattr(handler, "__qualname__", repr(handler)),
                request.method,
                request.path,
                exc_info=handler_exc,
            )
            if not response.sent:
                send_default_error(
                    response, HandlerError(handler_exc), debug=debug, request=request, cause=handler_exc
                )
            return
        if response.sent:
            return

    send_default_error(response, http_error, debug=debug, request=request, cause=cause)
