"""Locating the App to serve from a ``"module:attribute"`` target."""

import importlib

from perch.app import App


def resolve_app(target: str) -> App:
    """Import *target* and return the perch App it names.

    ``"monsters.app:app"`` imports ``monsters.app`` and reads its ``app``
    attribute. A bare module name reads ``app`` as well. When the attribute
    is not an App but is callable, it is treated as an app factory and
    called with no arguments; the factory must return an App.

    Raises:
        ModuleNotFoundError: The module part cannot be imported.
        AttributeError: The module has no such attribute.
        TypeError: The factory failed, or the target is not an App.
    """
    module_name, _, attr = target.partition(":")
    found = getattr(importlib.import_module(module_name), attr or "app")

    if not isinstance(found, App) and callable(found):
        try:
            found = found()
        except Exception as exc:
            msg = f"App factory {target!r} failed: {exc}"
            raise TypeError(msg) from exc

    if isinstance(found, App):
        return found
    msg = f"{target!r} is a {type(found).__name__}, not a perch.App"
    raise TypeError(msg)
