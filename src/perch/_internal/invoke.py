"""Invoke helpers — call sync or async handlers uniformly.

Route handlers, middleware, error handlers and lifecycle hooks can all be
``def`` or ``async def``. The sync/async check lives here and nowhere else.

Usage::

    from perch._internal.invoke import invoke

    result = await invoke(handler, request, response, next)
"""

import inspect
from typing import Any


async def invoke(handler: Any, *args: Any, **kwargs: Any) -> Any:
    """Call a handler and await the result if it's awaitable.

    Works with both sync and async callables::

        def hello(request, response, next):
            response.send("hi")

        async def load(request, response, next):
            request.state["user"] = await fetch_user()
            next()
    """
    result = handler(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result
