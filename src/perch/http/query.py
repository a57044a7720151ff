"""Query string parameters.

``key1=value1&key2=value2``: ``=`` separates key from value, ``&``
separates pairs. A key given once maps to a string; a repeated key
collapses into a list of strings. Values are never type-coerced.
"""

from collections.abc import Iterator, Mapping
from typing import TypeAlias
from urllib.parse import parse_qsl

QueryValue: TypeAlias = str | list[str]


class QueryParams(Mapping[str, QueryValue]):
    """Read-only mapping of query keys to a string or a list of strings."""

    __slots__ = ("_data", "_raw")

    def __init__(self, query_string: bytes | str = b"") -> None:
        if isinstance(query_string, str):
            query_string = query_string.encode("latin-1")
        self._raw = query_string
        self._data: dict[str, list[str]] = {}
        for key, value in parse_qsl(query_string.decode("latin-1"), keep_blank_values=True):
            self._data.setdefault(key, []).append(value)

    def __getitem__(self, key: str) -> QueryValue:
        values = self._data[key]
        return values[0] if len(values) == 1 else list(values)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"QueryParams({self.to_dict()!r})"

    @property
    def raw(self) -> bytes:
        """The undecoded query string, as it arrived."""
        return self._raw

    def get_first(self, key: str, default: str | None = None) -> str | None:
        values = self._data.get(key)
        return values[0] if values else default

    def get_list(self, key: str) -> list[str]:
        """All values for *key*; empty when the key is absent."""
        return list(self._data.get(key, []))

    def to_dict(self) -> dict[str, QueryValue]:
        """Plain dict copy with the same string-or-list values."""
        return {key: self[key] for key in self._data}
