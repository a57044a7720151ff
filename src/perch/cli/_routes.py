"""``perch routes`` — list registered routes.

Prints every route reachable from the app's root router, mounted routers
included, in resolution order.
"""

import argparse
import sys

from perch.cli._resolve import resolve_app


def _handler_name(handler: object) -> str:
    return getattr(handler, "__name__", None) or type(handler).__name__


def run_routes(args: argparse.Namespace) -> None:
    """Print a table of METHOD, PATH and handler chain."""
    try:
        app = resolve_app(args.app)
    except (ModuleNotFoundError, AttributeError, TypeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    routes = app.router.routes
    if not routes:
        print("No routes registered.")
        return

    rows: list[tuple[str, str, str]] = []
    for path, route in routes:
        handlers = " -> ".join(_handler_name(h) for h in route.handlers)
        if route.name:
            handlers = f"{handlers} ({route.name})"
        rows.append((route.method, path, handlers))

    max_method = max(6, *(len(r[0]) for r in rows))  # "METHOD" header
    max_path = max(4, *(len(r[1]) for r in rows))  # "PATH" header

    fmt = f"{{:<{max_method}}}  {{:<{max_path}}}  {{}}"
    print(fmt.format("METHOD", "PATH", "HANDLER"))
    sep_len = max_method + max_path + 4 + max(len(r[2]) for r in rows)
    print("-" * min(sep_len, 80))
    for method, path, handlers in rows:
        print(fmt.format(method, path, handlers))
