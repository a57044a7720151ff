"""Transport binding — bind a listening socket and serve the app on it.

The socket is bound here, before the ASGI server starts, so a bind failure
(port in use, permission denied) reaches the caller of ``App.listen()`` as
an ``OSError`` before any request is served. The bound socket is then
handed to uvicorn.
"""

import logging
import socket

import uvicorn

logger = logging.getLogger("perch.server")


def bind_socket(host: str, port: int, *, backlog: int = 2048) -> socket.socket:
    """Bind and listen on *host*:*port*. Raises ``OSError`` on failure."""
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
        sock.listen(backlog)
    except OSError:
        sock.close()
        raise
    sock.set_inheritable(True)
    return sock


def serve(
    app: object,
    sock: socket.socket,
    *,
    log_level: str = "info",
    access_log: bool = True,
) -> None:
    """Run uvicorn on the already-bound *sock* until it shuts down.

    *access_log* toggles uvicorn's own per-request access log.
    """
    config = uvicorn.Config(
        app,
        log_level=log_level,
        access_log=access_log,
        lifespan="on",
    )
    server = uvicorn.Server(config)
    host, port = sock.getsockname()[:2]
    logger.info("Serving on http://%s:%d", host, port)
    try:
        server.run(sockets=[sock])
    finally:
        sock.close()


def configure_logging(level: str = "info") -> None:
    """Attach a stderr handler to the ``perch`` logger tree once.

    uvicorn configures its own loggers; perch's loggers would otherwise fall
    through to the root logger's last-resort handler.
    """
    root = logging.getLogger("perch")
    root.setLevel(level.upper())
    if root.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(levelname)s:     %(name)s - %(message)s"))
    root.addHandler(handler)
