"""Shared type aliases used across perch modules."""

from collections.abc import Callable
from typing import Any, TypeAlias

# Route handler or middleware: called as handler(request, response, next)
Handler: TypeAlias = Callable[..., Any]

# Error handler: called as handler(request, response, exc)
ErrorHandler: TypeAlias = Callable[..., Any]

# Continuation trigger passed to every handler: next() or next(exc)
Next: TypeAlias = Callable[..., None]
