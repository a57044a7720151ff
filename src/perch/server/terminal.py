"""Terminal error formatting for handler failures.

Replaces raw ``logger.exception()`` output with compact diagnostics that
show the request and the application frames, hiding framework internals
(perch, asyncio, uvicorn).

Verbosity is controlled by the ``PERCH_TRACEBACK`` environment variable:
``compact`` (default), ``full`` or ``minimal``.
"""

from __future__ import annotations

import logging
import os
import traceback as _traceback
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from perch.http.request import Request

logger = logging.getLogger("perch.server")

_BANNER_WIDTH = 65
_PACKAGE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
_FRAMEWORK_MARKERS = ("site-packages", "/asyncio/", "/uvicorn/")


def _is_app_frame(filename: str) -> bool:
    """True if the frame is from the application (not stdlib/framework)."""
    if filename.startswith("<"):
        return False
    if filename.startswith(_PACKAGE_DIR + os.sep):
        return False
    normalized = filename.replace("\\", "/")
    if any(marker in normalized for marker in _FRAMEWORK_MARKERS):
        return False
    stdlib_prefix = os.path.dirname(os.__file__)
    return not filename.startswith(stdlib_prefix)


def format_compact_traceback(exc: BaseException) -> str:
    """Error summary plus at most five application frames.

    Falls back to the last three frames when none belong to the app.
    """
    tb = exc.__traceback__
    frames = _traceback.extract_tb(tb) if tb else []
    app_frames = [f for f in frames if _is_app_frame(f.filename)]
    display_frames = app_frames if app_frames else frames[-3:]

    parts = [f"{type(exc).__name__}: {exc}"]
    if display_frames:
        parts.append("  Trace (app frames):")
        for frame in display_frames[-5:]:
            parts.append(f"    {frame.filename}:{frame.lineno} in {frame.name}")
            if frame.line:
                parts.append(f"      {frame.line.strip()}")
    return "\n".join(parts)


def format_minimal_error(exc: BaseException) -> str:
    """One-line error summary with the innermost location."""
    tb = exc.__traceback__
    frames = _traceback.extract_tb(tb) if tb else []
    last = frames[-1] if frames else None
    location = f" at {last.filename}:{last.lineno}" if last else ""
    return f"{type(exc).__name__}{location}: {exc}"


def format_error_banner(exc: BaseException, request: Request | None = None) -> str:
    """Banner-wrapped compact traceback, used for debug-mode 500 bodies."""
    parts = [f"-- Handler Error {'-' * (_BANNER_WIDTH - 17)}"]
    if request is not None:
        parts.append(f"  Route: {request.method} {request.path}")
        parts.append("")
    parts.append(format_compact_traceback(exc))
    parts.append("-" * _BANNER_WIDTH)
    return "\n".join(parts)


def log_error(exc: BaseException, request: Request | None = None, *, status: int = 500) -> None:
    """Log a handler failure using the configured traceback verbosity."""
    prefix = f"{status} {request.method} {request.path}" if request is not None else "Server error"

    style = os.environ.get("PERCH_TRACEBACK", "compact").lower()
    if style == "full":
        logger.error(prefix, exc_info=exc)
    elif style == "minimal":
        logger.error("%s: %s", prefix, format_minimal_error(exc))
    else:
        logger.error("%s\n%s", prefix, format_compact_traceback(exc))
