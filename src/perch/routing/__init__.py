"""Routing — pattern matching and the ordered, mountable route table.

Routes and middleware are registered during setup and resolved per request
in registration order.
"""

from perch.routing.pattern import Pattern, compile_pattern
from perch.routing.route import Resolution, Route, RouteMatch, Step
from perch.routing.router import Router

__all__ = [
    "Pattern",
    "Resolution",
    "Route",
    "RouteMatch",
    "Router",
    "Step",
    "compile_pattern",
]
