"""Route pattern compilation and segment-wise matching.

Patterns use Express-style markers::

    "/monsters"             literal segments
    "/monsters/:name"       named parameter, matches one non-empty segment
    "/files/*path"          trailing wildcard, matches one or more segments

Matching is exact on segment count. Prefix matching (used only when a
router is mounted) is a separate operation, ``Pattern.match_prefix``.
"""

import re
from dataclasses import dataclass

from perch.errors import MalformedPattern

_PARAM_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def split_path(path: str) -> list[str]:
    """Split a path on ``/``, dropping empty segments.

    ``"/"``, ``""`` and ``"//"`` all split to ``[]``.
    """
    return [part for part in path.split("/") if part]


def join_paths(*paths: str) -> str:
    """Join path fragments segment-wise into a normalized ``/a/b`` path."""
    parts: list[str] = []
    for path in paths:
        parts.extend(split_path(path))
    return "/" + "/".join(parts)


@dataclass(frozen=True, slots=True)
class PathSegment:
    """A parsed segment of a route pattern.

    Literal:   ``monsters``  (is_param=False)
    Param:     ``:id``       (is_param=True, param_name="id")
    Wildcard:  ``*path``     (is_param=True, is_wildcard=True, param_name="path")
    """

    value: str
    is_param: bool = False
    is_wildcard: bool = False
    param_name: str | None = None


@dataclass(frozen=True, slots=True)
class PrefixMatch:
    """Result of matching a pattern against the start of a path.

    ``consumed`` is the normalized part of the path the pattern covered
    (``""`` for a root pattern), ``remainder`` the rest, always starting
    with ``/``.
    """

    params: dict[str, str]
    consumed: str
    remainder: str


def parse_pattern(pattern: str) -> tuple[PathSegment, ...]:
    """Parse a pattern string into segments.

    Raises ``MalformedPattern`` for invalid syntax.

    Examples::

        "/"                  -> ()
        "/monsters/:id"      -> (PathSegment("monsters"), PathSegment(":id", is_param=True, ...))
    """
    if "?" in pattern or "#" in pattern:
        raise MalformedPattern(pattern, "query strings and fragments are not part of a route")

    parts = split_path(pattern)
    segments: list[PathSegment] = []
    seen: set[str] = set()

    for index, part in enumerate(parts):
        if (part.startswith("{") and part.endswith("}")) or (
            part.startswith("<") and part.endswith(">")
        ):
            name = part[1:-1].split(":", 1)[0] or "name"
            raise MalformedPattern(
                pattern, f"segment {part!r} uses foreign syntax; write ':{name}' instead"
            )

        if part.startswith(":"):
            name = part[1:]
            if not name:
                raise MalformedPattern(pattern, "empty parameter name")
            if not _PARAM_NAME.match(name):
                raise MalformedPattern(pattern, f"parameter name {name!r} is not an identifier")
            segment = PathSegment(value=part, is_param=True, param_name=name)
        elif part.startswith("*"):
            name = part[1:] or "*"
            if name != "*" and not _PARAM_NAME.match(name):
                raise MalformedPattern(pattern, f"wildcard name {name!r} is not an identifier")
            if index != len(parts) - 1:
                raise MalformedPattern(pattern, "a wildcard must be the last segment")
            segment = PathSegment(value=part, is_param=True, is_wildcard=True, param_name=name)
        else:
            if ":" in part or "*" in part:
                raise MalformedPattern(
                    pattern, f"segment {part!r} mixes literal text with a parameter marker"
                )
            segment = PathSegment(value=part)

        if segment.param_name is not None:
            if segment.param_name in seen:
                raise MalformedPattern(
                    pattern, f"parameter {segment.param_name!r} appears more than once"
                )
            seen.add(segment.param_name)
        segments.append(segment)

    return tuple(segments)


def _bind(segments: tuple[PathSegment, ...], parts: list[str]) -> dict[str, str] | None:
    """Compare fixed segments to path parts pairwise, collecting params."""
    params: dict[str, str] = {}
    for segment, part in zip(segments, parts, strict=True):
        if segment.is_param:
            params[segment.param_name or ""] = part
        elif segment.value != part:
            return None
    return params


@dataclass(frozen=True, slots=True)
class Pattern:
    """A compiled route pattern.

    Usage::

        pattern = compile_pattern("/monsters/:name")
        pattern.match("/monsters/hydra")   # {"name": "hydra"}
        pattern.match("/monsters")         # None
    """

    source: str
    segments: tuple[PathSegment, ...]

    @property
    def param_names(self) -> tuple[str, ...]:
        return tuple(s.param_name for s in self.segments if s.param_name is not None)

    @property
    def has_wildcard(self) -> bool:
        return bool(self.segments) and self.segments[-1].is_wildcard

    @property
    def path(self) -> str:
        """The normalized pattern text (``/monsters/:name``)."""
        return "/" + "/".join(s.value for s in self.segments)

    def match(self, path: str) -> dict[str, str] | None:
        """Match the whole of *path*. Returns the bound params or ``None``."""
        parts = split_path(path)
        if self.has_wildcard:
            fixed = self.segments[:-1]
            if len(parts) <= len(fixed):
                return None
            params = _bind(fixed, parts[: len(fixed)])
            if params is None:
                return None
            params[self.segments[-1].param_name or "*"] = "/".join(parts[len(fixed) :])
            return params

        if len(parts) != len(self.segments):
            return None
        return _bind(self.segments, parts)

    def match_prefix(self, path: str) -> PrefixMatch | None:
        """Match the pattern against the leading segments of *path*.

        ``/monsters`` prefix-matches ``/monsters`` and ``/monsters/42`` but
        not ``/monsters-old``.
        """
        parts = split_path(path)
        if self.has_wildcard:
            params = self.match(path)
            if params is None:
                return None
            return PrefixMatch(params=params, consumed="/" + "/".join(parts), remainder="/")

        count = len(self.segments)
        if len(parts) < count:
            return None
        params = _bind(self.segments, parts[:count])
        if params is None:
            return None
        consumed = "/" + "/".join(parts[:count]) if count else ""
        return PrefixMatch(params=params, consumed=consumed, remainder="/" + "/".join(parts[count:]))


def compile_pattern(pattern: str) -> Pattern:
    """Compile *pattern* into a ``Pattern``. Raises ``MalformedPattern``."""
    return Pattern(source=pattern, segments=parse_pattern(pattern))
