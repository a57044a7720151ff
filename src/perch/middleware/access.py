"""Request logging middleware.

Logs one line per request on the ``perch.access`` logger once the
response has been written::

    GET /monsters/hydra 200 1.3ms
"""

import logging
import time

from perch._internal.types import Handler, Next
from perch.http.request import Request
from perch.http.response import Response

access_logger = logging.getLogger("perch.access")


def request_logger(*, logger: logging.Logger | None = None, level: int = logging.INFO) -> Handler:
    """Return a middleware that logs method, path, status and duration."""
    log = logger or access_logger

    def log_request(request: Request, response: Response, next: Next) -> None:
        start = time.perf_counter()
        method, url = request.method, request.url

        def finished(sent: Response) -> None:
            elapsed_ms = (time.perf_counter() - start) * 1000
            log.log(level, "%s %s %d %.1fms", method, url, sent.status_code, elapsed_ms)

        response.on_finish(finished)
        next()

    return log_request
