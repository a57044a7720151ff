"""Ordered, mountable route table.

Layers (routes, ``use()`` middleware and mounted child routers) are kept in
registration order. Resolution walks them in that order, collecting every
middleware whose prefix matches and stopping at the first matching route.
"""

from collections.abc import Callable, Iterator

from perch._internal.types import Handler
from perch.errors import ConfigurationError, RouteNotFound
from perch.routing.pattern import compile_pattern, join_paths
from perch.routing.route import (
    ALL_METHODS,
    Layer,
    Middleware,
    Mount,
    Resolution,
    Route,
    RouteMatch,
    Step,
)


class Router:
    """A composable route table.

    Usage::

        monsters = Router()

        @monsters.get("/:id")
        def show(request, response, next):
            response.json(store[request.params["id"]])

        app.use("/monsters", monsters)

    Handlers can also be passed directly, middleware first::

        monsters.put("/:id", require_admin, update)
    """

    __slots__ = ("_layers", "name")

    def __init__(self, name: str | None = None) -> None:
        self.name = name
        self._layers: list[Layer] = []

    def __repr__(self) -> str:
        label = f" {self.name!r}" if self.name else ""
        return f"<Router{label} layers={len(self._layers)}>"

    # -- Registration --

    def route(
        self,
        method: str,
        path: str,
        *handlers: Handler,
        name: str | None = None,
    ) -> Route | Callable[[Handler], Handler]:
        """Register handlers for *method* and *path*.

        With handlers, registers immediately and returns the ``Route``.
        Without, returns a decorator that registers the decorated function.
        Raises ``MalformedPattern`` for an invalid *path*.
        """
        pattern = compile_pattern(path)
        method = method.upper()

        if not handlers:

            def decorator(func: Handler) -> Handler:
                self._add_route(Route(method, pattern, (func,), name))
                return func

            return decorator

        for handler in handlers:
            if not callable(handler):
                msg = f"Route handler for {method} {path!r} is not callable: {handler!r}"
                raise ConfigurationError(msg)
        route = Route(method, pattern, tuple(handlers), name)
        self._add_route(route)
        return route

    def get(self, path: str, *handlers: Handler, name: str | None = None):
        return self.route("GET", path, *handlers, name=name)

    def post(self, path: str, *handlers: Handler, name: str | None = None):
        return self.route("POST", path, *handlers, name=name)

    def put(self, path: str, *handlers: Handler, name: str | None = None):
        return self.route("PUT", path, *handlers, name=name)

    def patch(self, path: str, *handlers: Handler, name: str | None = None):
        return self.route("PATCH", path, *handlers, name=name)

    def delete(self, path: str, *handlers: Handler, name: str | None = None):
        return self.route("DELETE", path, *handlers, name=name)

    def head(self, path: str, *handlers: Handler, name: str | None = None):
        return self.route("HEAD", path, *handlers, name=name)

    def options(self, path: str, *handlers: Handler, name: str | None = None):
        return self.route("OPTIONS", path, *handlers, name=name)

    def all(self, path: str, *handlers: Handler, name: str | None = None):
        """Register handlers that answer every HTTP method."""
        return self.route(ALL_METHODS, path, *handlers, name=name)

    def use(self, *args: "str | Handler | Router") -> None:
        """Register middleware or mount child routers under a path prefix.

        ``use(handler, ...)`` applies to every path; ``use("/api", handler)``
        to paths starting with ``/api`` segment-wise; ``use("/api", router)``
        mounts *router* there. No method restriction applies.
        """
        path = "/"
        items = list(args)
        if items and isinstance(items[0], str):
            path = items.pop(0)
        if not items:
            msg = "use() requires at least one middleware or router"
            raise ConfigurationError(msg)

        pattern = compile_pattern(path)
        for item in items:
            if isinstance(item, Router):
                if item is self or item._contains(self):
                    msg = f"Mounting {item!r} at {path!r} would create a cycle"
                    raise ConfigurationError(msg)
                self._layers.append(Mount(pattern, item))
            elif callable(item):
                self._layers.append(Middleware(pattern, (item,)))
            else:
                msg = f"use() expects callables or Router instances, got {item!r}"
                raise ConfigurationError(msg)

    def _add_route(self, route: Route) -> None:
        self._layers.append(route)

    def _contains(self, router: "Router") -> bool:
        """True if *router* is mounted anywhere below this router."""
        for layer in self._layers:
            if isinstance(layer, Mount):
                if layer.router is router or layer.router._contains(router):
                    return True
        return False

    # -- Introspection --

    @property
    def layers(self) -> tuple[Layer, ...]:
        return tuple(self._layers)

    @property
    def routes(self) -> list[tuple[str, Route]]:
        """All routes with their full path, in resolution order.

        Mounted routers contribute their routes with the mount prefix
        prepended. Useful for introspection and ``perch routes``.
        """
        return list(self._walk_routes(""))

    def _walk_routes(self, prefix: str) -> Iterator[tuple[str, Route]]:
        for layer in self._layers:
            if isinstance(layer, Route):
                yield join_paths(prefix, layer.path), layer
            elif isinstance(layer, Mount):
                yield from layer.router._walk_routes(join_paths(prefix, layer.pattern.path))

    # -- Resolution --

    def resolve(self, method: str, path: str) -> Resolution:
        """Collect the ordered steps that apply to *method* and *path*.

        Middleware registered before the first matching route is included;
        anything after it is not. When no route matches, the resolution
        holds only the matching middleware and ``found`` is False.
        """
        steps: list[Step] = []
        match = self._resolve_into(method.upper(), path, {}, "", steps)
        return Resolution(steps=tuple(steps), route=match)

    def match(self, method: str, path: str) -> RouteMatch:
        """Return the first route matching *method* and *path*.

        Raises ``RouteNotFound`` if no route matches.
        """
        resolution = self.resolve(method, path)
        if resolution.route is None:
            raise RouteNotFound(f"No route matches {method.upper()} {path!r}")
        return resolution.route

    def _resolve_into(
        self,
        method: str,
        path: str,
        params: dict[str, str],
        base_path: str,
        steps: list[Step],
    ) -> RouteMatch | None:
        for layer in self._layers:
            if isinstance(layer, Route):
                if not _accepts(layer, method):
                    continue
                bound = layer.pattern.match(path)
                if bound is None:
                    continue
                merged = {**params, **bound}
                steps.extend(Step(h, merged, base_path) for h in layer.handlers)
                return RouteMatch(route=layer, path_params=merged, base_path=base_path)

            prefix = layer.pattern.match_prefix(path)
            if prefix is None:
                continue
            merged = {**params, **prefix.params}
            layer_base = base_path + prefix.consumed

            if isinstance(layer, Middleware):
                steps.extend(Step(h, merged, layer_base) for h in layer.handlers)
                continue

            found = layer.router._resolve_into(method, prefix.remainder, merged, layer_base, steps)
            if found is not None:
                return found

        return None


def _accepts(route: Route, method: str) -> bool:
    """Route method check, with GET routes also answering HEAD."""
    if route.accepts(method):
        return True
    return method == "HEAD" and route.method == "GET"
