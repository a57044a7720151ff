"""CORS middleware.

Answers preflight requests and adds the CORS headers to every response
for an allowed origin.
"""

from dataclasses import dataclass

from perch._internal.types import Next
from perch.http.request import Request
from perch.http.response import Response


@dataclass(frozen=True, slots=True)
class CORSConfig:
    """CORS middleware configuration.

    All fields have secure defaults (nothing is allowed).
    Override what you need::

        CORSConfig(
            allow_origins=("https://example.com",),
            allow_methods=("GET", "POST"),
        )
    """

    allow_origins: tuple[str, ...] = ()
    allow_methods: tuple[str, ...] = ("GET", "HEAD", "OPTIONS")
    allow_headers: tuple[str, ...] = ()
    expose_headers: tuple[str, ...] = ()
    allow_credentials: bool = False
    max_age: int = 600  # 10 minutes


class CORSMiddleware:
    """Standards-compliant CORS middleware.

    Handles:
    - Preflight ``OPTIONS`` requests (answered with 204, chain stops)
    - Actual requests (CORS headers set before the chain continues)
    - Credential support (``Access-Control-Allow-Credentials``)
    - Wildcard origins (``"*"``) when credentials are disabled

    Usage::

        app.use(CORSMiddleware(CORSConfig(
            allow_origins=("https://example.com",),
            allow_methods=("GET", "POST", "PUT"),
            allow_headers=("Content-Type", "Authorization"),
        )))
    """

    __slots__ = ("config",)

    def __init__(self, config: CORSConfig | None = None) -> None:
        self.config = config or CORSConfig()

    def _is_allowed_origin(self, origin: str) -> bool:
        """Check if the origin is in the allow list."""
        if "*" in self.config.allow_origins:
            return True
        return origin in self.config.allow_origins

    def _add_cors_headers(self, response: Response, origin: str) -> None:
        cfg = self.config

        if "*" in cfg.allow_origins and not cfg.allow_credentials:
            response.set_header("Access-Control-Allow-Origin", "*")
        else:
            response.set_header("Access-Control-Allow-Origin", origin)
            response.append_header("Vary", "Origin")

        if cfg.allow_credentials:
            response.set_header("Access-Control-Allow-Credentials", "true")

        if cfg.expose_headers:
            response.set_header("Access-Control-Expose-Headers", ", ".join(cfg.expose_headers))

    def _send_preflight(self, response: Response, origin: str, request_method: str | None) -> None:
        cfg = self.config
        self._add_cors_headers(response, origin)

        if request_method:
            response.set_header("Access-Control-Allow-Methods", ", ".join(cfg.allow_methods))
        if cfg.allow_headers:
            response.set_header("Access-Control-Allow-Headers", ", ".join(cfg.allow_headers))
        response.set_header("Access-Control-Max-Age", str(cfg.max_age))

        response.status(204).end()

    def __call__(self, request: Request, response: Response, next: Next) -> None:
        origin = request.headers.get("origin")

        # No Origin header, or one we don't allow: not our business
        if origin is None or not self._is_allowed_origin(origin):
            next()
            return

        if request.method == "OPTIONS":
            request_method = request.headers.get("access-control-request-method")
            self._send_preflight(response, origin, request_method)
            return

        self._add_cors_headers(response, origin)
        next()
