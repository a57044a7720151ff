"""Request headers as a read-only, case-insensitive mapping.

The ASGI server hands over ``(name, value)`` byte pairs. They are decoded
once, with names lowercased. A header sent more than once is folded into a
single comma-separated value, as an HTTP proxy would combine it.
"""

from collections.abc import Iterable, Iterator, Mapping


class Headers(Mapping[str, str]):
    """Read-only view over the request's header lines.

    Lookup ignores case: ``headers["Content-Type"]`` and
    ``headers["content-type"]`` are the same entry.
    """

    __slots__ = ("_values",)

    def __init__(self, raw: Iterable[tuple[bytes, bytes]] = ()) -> None:
        values: dict[str, str] = {}
        for name, value in raw:
            key = name.decode("latin-1").lower()
            text = value.decode("latin-1")
            values[key] = f"{values[key]}, {text}" if key in values else text
        self._values = values

    def __getitem__(self, key: str) -> str:
        return self._values[key.lower()]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"Headers({self._values!r})"
