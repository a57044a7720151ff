"""Middleware — plain callables, no base class required.

A middleware has the same shape as a route handler::

    def mw(request: Request, response: Response, next: Next) -> None

Built-in middleware:
    json_body -- Parse JSON request bodies into request.parsed_body
    urlencoded_body -- Parse form-encoded request bodies
    request_logger -- One access-log line per request
    CORSMiddleware -- Cross-Origin Resource Sharing
"""

from perch.middleware.access import request_logger
from perch.middleware.body import json_body, urlencoded_body
from perch.middleware.cors import CORSConfig, CORSMiddleware

__all__ = [
    "CORSConfig",
    "CORSMiddleware",
    "json_body",
    "request_logger",
    "urlencoded_body",
]
