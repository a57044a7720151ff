"""Route table entries and resolution results."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, TypeAlias

from perch._internal.types import Handler
from perch.routing.pattern import Pattern

if TYPE_CHECKING:
    from perch.routing.router import Router

# Method wildcard used by ``all()`` routes
ALL_METHODS = "ALL"


@dataclass(frozen=True, slots=True)
class Route:
    """A registered route. Immutable once registered."""

    method: str
    pattern: Pattern
    handlers: tuple[Handler, ...]
    name: str | None = None

    @property
    def path(self) -> str:
        return self.pattern.path

    def accepts(self, method: str) -> bool:
        return self.method == ALL_METHODS or self.method == method


@dataclass(frozen=True, slots=True)
class Middleware:
    """A ``use()`` binding: handlers applied to every path under a prefix."""

    pattern: Pattern
    handlers: tuple[Handler, ...]


@dataclass(frozen=True, slots=True)
class Mount:
    """A child router bound under a path prefix."""

    pattern: Pattern
    router: Router


Layer: TypeAlias = Route | Middleware | Mount


@dataclass(frozen=True, slots=True)
class Step:
    """One handler in a resolved chain, with the bindings it runs under."""

    handler: Handler
    params: dict[str, str] = field(default_factory=dict)
    base_path: str = ""


@dataclass(frozen=True, slots=True)
class RouteMatch:
    """Result of a successful terminal route match."""

    route: Route
    path_params: dict[str, str]
    base_path: str = ""


@dataclass(frozen=True, slots=True)
class Resolution:
    """The ordered steps that apply to one request.

    ``route`` is ``None`` when no terminal route matched; the steps then
    hold only middleware, and running off their end is the not-found outcome.
    """

    steps: tuple[Step, ...]
    route: RouteMatch | None = None

    @property
    def found(self) -> bool:
        return self.route is not None
