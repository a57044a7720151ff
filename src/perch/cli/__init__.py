"""Perch CLI — serve an app and inspect its route table.

Entry point registered as ``perch`` in ``pyproject.toml``::

    [project.scripts]
    perch = "perch.cli:main"
"""

import argparse
import sys


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the ``perch`` command."""
    parser = argparse.ArgumentParser(
        prog="perch",
        description="Perch: ordered routing and middleware for ASGI.",
    )
    subparsers = parser.add_subparsers(dest="command")

    # -- perch run --------------------------------------------------------
    run_parser = subparsers.add_parser("run", help="Bind a port and serve the app")
    run_parser.add_argument("app", help="Import string (e.g. myapp:app)")
    run_parser.add_argument("--host", default=None, help="Bind host address")
    run_parser.add_argument("--port", type=int, default=None, help="Bind port number")

    # -- perch routes -----------------------------------------------------
    routes_parser = subparsers.add_parser("routes", help="List registered routes")
    routes_parser.add_argument("app", help="Import string (e.g. myapp:app)")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "run":
        from perch.cli._run import run_server

        run_server(args)
    elif args.command == "routes":
        from perch.cli._routes import run_routes

        run_routes(args)
