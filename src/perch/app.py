"""Perch application class.

Mutable during setup (routes, middleware, error handlers, providers).
Frozen at runtime when ``app.listen()`` or ``__call__()`` is first invoked.
"""

import threading
from collections.abc import Callable
from typing import Any

from perch._internal.asgi import Receive, Scope, Send
from perch._internal.invoke import invoke
from perch._internal.types import ErrorHandler, Handler
from perch.config import AppConfig
from perch.errors import ConfigurationError
from perch.routing.route import Route
from perch.routing.router import Router
from perch.server.handler import handle_request

_MISSING: Any = object()


class App:
    """The perch application: a root router plus the transport binding.

    Usage::

        app = App()

        @app.get("/monsters/:name")
        def show(request, response, next):
            response.json(monsters[request.params["name"]])

        app.listen(3000, lambda: print("ready"))

    Thread safety:
        The setup phase is single-threaded (decorators at import time).
        The freeze transition uses a Lock + double-check so exactly one
        thread freezes the app, even if several server workers call
        ``__call__()`` concurrently on first request.
    """

    __slots__ = (
        "_address",
        "_error_handlers",
        "_freeze_lock",
        "_frozen",
        "_providers",
        "_router",
        "_shutdown_hooks",
        "_startup_hooks",
        "config",
    )

    def __init__(self, config: AppConfig | None = None, *, router: Router | None = None) -> None:
        self.config: AppConfig = config or AppConfig()
        self._router: Router = router or Router(name="app")
        self._error_handlers: dict[int | type, ErrorHandler] = {}
        self._providers: dict[str, Callable[[], Any]] = {}
        self._startup_hooks: list[Callable[..., Any]] = []
        self._shutdown_hooks: list[Callable[..., Any]] = []
        self._frozen: bool = False
        self._freeze_lock: threading.Lock = threading.Lock()
        self._address: tuple[str, int] | None = None

    @property
    def router(self) -> Router:
        """The root router every request is resolved against."""
        return self._router

    @property
    def address(self) -> tuple[str, int] | None:
        """The bound ``(host, port)`` once ``listen()`` has bound its socket."""
        return self._address

    # -- Route registration --

    def route(
        self,
        method: str,
        path: str,
        *handlers: Handler,
        name: str | None = None,
    ) -> Route | Callable[[Handler], Handler]:
        """Register handlers for *method* and *path* on the root router.

        Without handlers, returns a decorator.
        """
        self._check_not_frozen()
        return self._router.route(method, path, *handlers, name=name)

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
        self._check_not_frozen()
        return self._router.all(path, *handlers, name=name)

    def use(self, *args: "str | Handler | Router") -> None:
        """Register middleware or mount a router. See ``Router.use``."""
        self._check_not_frozen()
        self._router.use(*args)

    # -- Error handlers --

    def error(
        self,
        code_or_exception: int | type[BaseException],
    ) -> Callable[[ErrorHandler], ErrorHandler]:
        """Register an error handler for a status code or exception class.

        The handler receives ``(request, response, exc)`` (fewer parameters
        are fine) and either sends a response or returns a value to send::

            @app.error(404)
            def missing(request, response, exc):
                response.json({"error": "not found"})
        """
        if not isinstance(code_or_exception, int) and not (
            isinstance(code_or_exception, type) and issubclass(code_or_exception, BaseException)
        ):
            msg = f"error() expects a status code or exception class, got {code_or_exception!r}"
            raise ConfigurationError(msg)

        def decorator(func: ErrorHandler) -> ErrorHandler:
            self._check_not_frozen()
            self._error_handlers[code_or_exception] = func
            return func

        return decorator

    # -- Shared services --

    def provide(
        self,
        name: str,
        value: Any = _MISSING,
        *,
        factory: Callable[[], Any] | None = None,
    ) -> None:
        """Attach a shared service to every request as ``request.state[name]``.

        Pass a *value* to share one object (e.g. an in-memory store) or a
        *factory* called once per request. Shared objects are not locked;
        handlers that mutate them must synchronize themselves.
        """
        self._check_not_frozen()
        if (value is _MISSING) == (factory is None):
            msg = "provide() takes exactly one of value or factory="
            raise ConfigurationError(msg)
        if factory is not None:
            self._providers[name] = factory
        else:
            self._providers[name] = lambda: value

    # -- Lifecycle hooks --

    def on_startup(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register a sync or async hook run during ASGI lifespan startup."""
        self._check_not_frozen()
        self._startup_hooks.append(func)
        return func

    def on_shutdown(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register a sync or async hook run during ASGI lifespan shutdown."""
        self._check_not_frozen()
        self._shutdown_hooks.append(func)
        return func

    # -- Server --

    def listen(
        self,
        port: int | None = None,
        on_ready: Callable[[], Any] | None = None,
        *,
        host: str | None = None,
    ) -> None:
        """Bind a listener and serve requests until the server stops.

        The socket is bound before serving starts: a bind failure raises
        ``OSError`` here and no request is ever served. *on_ready* is called
        once, after the bind succeeds.
        """
        from perch.server.listener import bind_socket, configure_logging, serve

        self._ensure_frozen()

        _host = host or self.config.host
        _port = self.config.port if port is None else port

        sock = bind_socket(_host, _port, backlog=self.config.backlog)
        self._address = sock.getsockname()[:2]

        configure_logging(self.config.log_level)
        if on_ready is not None:
            on_ready()
        serve(
            self,
            sock,
            log_level=self.config.log_level,
            access_log=self.config.access_log,
        )

    def run(self, host: str | None = None, port: int | None = None) -> None:
        """Start the server on the configured (or given) host and port."""
        self.listen(port, host=host)

    # -- ASGI interface --

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI 3.0 entry point."""
        if scope["type"] == "lifespan":
            await self._handle_lifespan(receive, send)
            return

        self._ensure_frozen()

        await handle_request(
            scope,
            receive,
            send,
            router=self._router,
            error_handlers=self._error_handlers,
            providers=self._providers or None,
            debug=self.config.debug,
            json_indent=self.config.json_indent,
            max_body_size=self.config.max_body_size,
        )

    async def _handle_lifespan(self, receive: Receive, send: Send) -> None:
        """Run the ASGI lifespan protocol with the registered hooks."""
        self._ensure_frozen()

        while True:
            message = await receive()
            msg_type = message["type"]

            if msg_type == "lifespan.startup":
                try:
                    await self.startup()
                except Exception as exc:
                    await send({"type": "lifespan.startup.failed", "message": str(exc)})
                    return
                await send({"type": "lifespan.startup.complete"})

            elif msg_type == "lifespan.shutdown":
                await self.shutdown()
                await send({"type": "lifespan.shutdown.complete"})
                return

    async def startup(self) -> None:
        """Run startup hooks in registration order."""
        for hook in self._startup_hooks:
            await invoke(hook)

    async def shutdown(self) -> None:
        """Run shutdown hooks in registration order."""
        for hook in self._shutdown_hooks:
            await invoke(hook)

    # -- Internal --

    def _ensure_frozen(self) -> None:
        """Thread-safe freeze with double-check locking."""
        if self._frozen:
            return
        with self._freeze_lock:
            if self._frozen:
                return
            self._frozen = True

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = (
                "Cannot modify the app after it has started serving requests. "
                "Register routes, middleware, and error handlers before calling app.listen()."
            )
            raise RuntimeError(msg)
