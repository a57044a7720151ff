"""Perch exception hierarchy.

Shared across Router, App, the chain executor and middleware so every
module raises and catches the same types.
"""

from dataclasses import dataclass


class PerchError(Exception):
    """Base for all perch-specific errors."""


class ConfigurationError(PerchError):
    """Raised when routes, mounts or app configuration are invalid.

    Raised at registration time, before the app serves any request.
    """


class MalformedPattern(ConfigurationError):  # noqa: N818
    """A route pattern could not be compiled.

    Duplicate parameter names, empty parameter names, misplaced wildcards
    and foreign parameter syntax (``{id}``, ``<id>``) all end up here.
    """

    def __init__(self, pattern: str, reason: str) -> None:
        self.pattern = pattern
        self.reason = reason
        super().__init__(f"Invalid route pattern {pattern!r}: {reason}")


class DuplicateSend(PerchError):  # noqa: N818
    """A handler tried to send a response that was already sent."""


@dataclass(frozen=True, slots=True)
class HTTPError(PerchError):
    """An error that maps directly to an HTTP status code.

    Raised by the router, middleware, or handlers. The chain executor
    catches these and dispatches to the matching ``@app.error()`` handler.
    """

    status: int
    detail: str = ""
    headers: tuple[tuple[str, str], ...] = ()

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)


class RouteNotFound(HTTPError):  # noqa: N818
    """404 — no route matched the request method and path."""

    def __init__(self, detail: str = "Not Found") -> None:
        super().__init__(status=404, detail=detail)


NotFound = RouteNotFound


class HandlerError(HTTPError):
    """500 — a handler raised an unexpected exception.

    The original exception is available as ``__cause__`` and ``original``.
    """

    def __init__(self, original: BaseException, detail: str = "Internal Server Error") -> None:
        super().__init__(status=500, detail=detail)
        object.__setattr__(self, "_original", original)

    @property
    def original(self) -> BaseException:
        return object.__getattribute__(self, "_original")
