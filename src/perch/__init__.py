"""Perch — ordered routing and middleware for ASGI.

Routes and middleware run in the order they were registered. Every handler
gets the request, the response builder and a ``next`` continuation::

    from perch import App, Router

    app = App()
    monsters = Router()

    @monsters.get("/:name")
    def show(request, response, next):
        monster = request.state["store"].get(request.params["name"])
        if monster is None:
            response.send_status(404)
            return
        response.json(monster)

    app.provide("store", {"hydra": {"height": 3}})
    app.use("/monsters", monsters)
    app.listen(3000, lambda: print("listening"))
"""

__version__ = "0.1.0"
__all__ = [
    "App",
    "AppConfig",
    "ConfigurationError",
    "DuplicateSend",
    "HTTPError",
    "HandlerError",
    "MalformedPattern",
    "Next",
    "NotFound",
    "PerchError",
    "Request",
    "Response",
    "RouteNotFound",
    "Router",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import perch`` fast while providing a clean top-level API.
    """
    if name == "App":
        from perch.app import App

        return App

    if name == "AppConfig":
        from perch.config import AppConfig

        return AppConfig

    if name == "Router":
        from perch.routing.router import Router

        return Router

    if name == "Request":
        from perch.http.request import Request

        return Request

    if name == "Response":
        from perch.http.response import Response

        return Response

    if name == "Next":
        from perch._internal.types import Next

        return Next

    if name in (
        "ConfigurationError",
        "DuplicateSend",
        "HTTPError",
        "HandlerError",
        "MalformedPattern",
        "NotFound",
        "PerchError",
        "RouteNotFound",
    ):
        from perch import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
