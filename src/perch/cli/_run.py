"""``perch run`` — bind a port and serve the app."""

import argparse
import sys

from perch.cli._resolve import resolve_app


def run_server(args: argparse.Namespace) -> None:
    """Resolve ``args.app`` and call ``App.listen()``.

    A bind failure is reported on stderr with exit status 1.
    """
    try:
        app = resolve_app(args.app)
    except (ModuleNotFoundError, AttributeError, TypeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    host = args.host or app.config.host
    port = app.config.port if args.port is None else args.port

    def ready() -> None:
        bound_host, bound_port = app.address or (host, port)
        print(f"perch: listening on http://{bound_host}:{bound_port}", file=sys.stderr)

    try:
        app.listen(port, ready, host=host)
    except OSError as exc:
        print(f"Error: cannot listen on {host}:{port}: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc
