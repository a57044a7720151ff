"""Middleware chain executor.

Runs the resolved steps for one request strictly in order. Each handler is
called as ``handler(request, response, next)``:

- ``next()`` hands off to the following step; it may be called later from a
  task the handler started.
- ``next(exc)`` skips the rest of the chain and takes the error path.
- Sending the response is terminal: nothing runs after it, not even when
  ``next()`` is called afterwards.
- Raising takes the error path.

Each handler runs as its own task. The executor moves on as soon as the
handler sends, calls ``next()`` or returns, whichever comes first, so a
handler that keeps working after sending does not hold the response back.
Errors such a handler raises later are logged.

A handler that neither sends nor calls ``next()`` leaves the request
pending. There is no timeout here; that belongs to the server.
"""

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

from perch._internal.invoke import invoke
from perch.errors import RouteNotFound
from perch.http.request import Request
from perch.http.response import Response
from perch.routing.route import Step
from perch.server.errors import ErrorHandlers, handle_error, log_late_error, send_result

logger = logging.getLogger("perch.chain")


def _describe(handler: Any) -> str:
    return getattr(handler, "__qualname__", None) or type(handler).__name__


class Continuation:
    """The ``next`` callable handed to one step.

    Resolves at most once; later calls are ignored. Safe to call from
    another thread.
    """

    __slots__ = ("_future", "_label", "_loop")

    def __init__(self, loop: asyncio.AbstractEventLoop, label: str) -> None:
        self._loop = loop
        self._label = label
        self._future: asyncio.Future[BaseException | None] = loop.create_future()

    def __call__(self, error: BaseException | None = None) -> None:
        if error is not None and not isinstance(error, BaseException):
            msg = f"next() takes an exception or nothing, got {error!r}"
            raise TypeError(msg)
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            self._resolve(error)
        else:
            self._loop.call_soon_threadsafe(self._resolve, error)

    def _resolve(self, error: BaseException | None) -> None:
        if self._future.done():
            logger.debug("next() called more than once by %s; ignoring", self._label)
            return
        self._future.set_result(error)

    @property
    def called(self) -> bool:
        return self._future.done()

    @property
    def future(self) -> "asyncio.Future[BaseException | None]":
        return self._future


def _task_error(task: "asyncio.Task[Any]") -> BaseException | None:
    if task.cancelled():
        return asyncio.CancelledError("handler task was cancelled")
    return task.exception()


def _detach(task: "asyncio.Task[Any]", request: Request, response: Response) -> None:
    """Let a handler that already handed off finish; log what it raises."""

    def finished(done: "asyncio.Task[Any]") -> None:
        if done.cancelled():
            return
        exc = done.exception()
        if exc is not None:
            log_late_error(exc, request, response)

    task.add_done_callback(finished)


async def _wait_for_outcome(
    task: "asyncio.Task[Any] | None",
    next_: Continuation,
    response: Response,
) -> None:
    """Block until the step continues, the response is sent, or *task* ends."""
    if next_.called or response.sent:
        return
    sent = asyncio.ensure_future(response.wait_sent())
    waiters: set[asyncio.Future[Any]] = {next_.future, sent}
    if task is not None:
        waiters.add(task)
    try:
        await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
    finally:
        sent.cancel()


async def _run_step(
    step: Step,
    request: Request,
    response: Response,
    loop: asyncio.AbstractEventLoop,
) -> tuple[Continuation, BaseException | None]:
    """Run one handler until it hands off.

    Returns the step's continuation and the exception the handler raised,
    if it raised before handing off.
    """
    next_ = Continuation(loop, _describe(step.handler))
    task = loop.create_task(invoke(step.handler, request, response, next_))
    try:
        await _wait_for_outcome(task, next_, response)
    except asyncio.CancelledError:
        task.cancel()
        raise

    if not task.done():
        _detach(task, request, response)
        return next_, None

    failure = _task_error(task)
    if failure is not None:
        return next_, failure

    if not next_.called:
        try:
            send_result(response, task.result())
        except Exception as exc:
            return next_, exc
        await _wait_for_outcome(None, next_, response)
    return next_, None


async def run_chain(
    steps: Sequence[Step],
    request: Request,
    response: Response,
    *,
    error_handlers: ErrorHandlers | None = None,
    debug: bool = False,
) -> None:
    """Drive *steps* for one request until the response is sent.

    Returns as soon as the response is sent, possibly while the handler
    that sent it is still running. Running past the last step is the
    not-found outcome and answers 404 through the error path, so
    ``@app.error(404)`` can customize it.
    """
    handlers = error_handlers or {}
    loop = asyncio.get_running_loop()

    for step in steps:
        request.params = dict(step.params)
        request.base_path = step.base_path

        next_, failure = await _run_step(step, request, response, loop)
        if failure is not None:
            await handle_error(failure, request, response, handlers, debug=debug)
            return

        if response.sent:
            if next_.called:
                logger.debug(
                    "%s called next() after sending; the chain stops at the send",
                    _describe(step.handler),
                )
            return

        error = next_.future.result()
        if error is not None:
            await handle_error(error, request, response, handlers, debug=debug)
            return

    await handle_error(
        RouteNotFound(f"Cannot {request.method} {request.path}"),
        request,
        response,
        handlers,
        debug=debug,
    )
