"""Case-insensitive, multi-valued HTTP header storage and helpers."""

from __future__ import annotations

import base64
from collections.abc import Iterable, Iterator, Mapping

from .errors import BuilderError

_TOKEN_EXTRA = frozenset("!#$%&'*+-.^_`|~")


def validate_header_name(name) -> str:
    """Return the lower-cased header name, or raise BuilderError if it is not a valid token."""
    if isinstance(name, (bytes, bytearray)):
        try:
            name = bytes(name).decode("ascii")
        except UnicodeDecodeError as exc:
            raise BuilderError(f"invalid header name: {name!r}") from exc
    if not isinstance(name, str):
        raise BuilderError(f"header name must be str or bytes, not {type(name).__name__}")
    if not name:
        raise BuilderError("header name must not be empty")
    if not all((ch.isascii() and ch.isalnum()) or ch in _TOKEN_EXTRA for ch in name):
        raise BuilderError(f"invalid header name: {name!r}")
    return name.lower()


def _valid_value_char(ch: str) -> bool:
    code = ord(ch)
    return ch == "\t" or 0x20 <= code <= 0x7E or 0x80 <= code <= 0xFF


class HeaderValue(str):
    """A header value; a sensitive one is masked when printed."""

    sensitive: bool

    def __new__(cls, value="", sensitive: bool = False):
        if isinstance(value, HeaderValue):
            sensitive = sensitive or value.sensitive
            text = str(value)
        elif isinstance(value, bool):
            raise BuilderError("header value must not be a bool")
        elif isinstance(value, int):
            text = str(value)
        elif isinstance(value, (bytes, bytearray)):
            text = bytes(value).decode("latin-1")
        elif isinstance(value, str):
            text = value
        else:
            raise BuilderError(
                f"header value must be str, bytes or int, not {type(value).__name__}"
            )
        if not all(_valid_value_char(ch) for ch in text):
            raise BuilderError(f"invalid header value: {text!r}")
        obj = super().__new__(cls, text)
        obj.sensitive = bool(sensitive)
        return obj

    def to_bytes(self) -> bytes:
        """The value as it goes on the wire."""
        return str(self).encode("latin-1")

    def __repr__(self) -> str:
        if self.sensitive:
            return "Sensitive"
        return super().__repr__()


class HeaderMap:
    """Headers keyed case-insensitively; each name may carry several values."""

    def __init__(self, items=None):
        self._entries: dict[str, list[HeaderValue]] = {}
        if items is None:
            return
        if isinstance(items, HeaderMap):
            pairs: Iterable = items.items()
        elif isinstance(items, Mapping):
            pairs = items.items()
        else:
            pairs = items
        for name, value in pairs:
            self.append(name, value)

    def append(self, name, value) -> None:
        """Add a value, keeping any values already stored under the name."""
        key = validate_header_name(name)
        self._entries.setdefault(key, []).append(HeaderValue(value))

    def insert(self, name, value) -> HeaderValue | None:
        """Replace every value under the name; return the previous first value."""
        key = validate_header_name(name)
        new_value = HeaderValue(value)
        previous = self._entries.get(key)
        self._entries[key] = [new_value]
        return previous[0] if previous else None

    def get(self, name, default=None):
        """The first value under the name, or default."""
        values = self._entries.get(str(name).lower())
        return values[0] if values else default

    def get_all(self, name) -> list[HeaderValue]:
        """Every value under the name, in the order they were added."""
        return list(self._entries.get(str(name).lower(), ()))

    def remove(self, name) -> HeaderValue | None:
        """Drop every value under the name; return the first, or None."""
        values = self._entries.pop(str(name).lower(), None)
        return values[0] if values else None

    def items(self) -> Iterator[tuple[str, HeaderValue]]:
        """Every (name, value) pair, values of one name grouped together."""
        for key, values in self._entries.items():
            for value in values:
                yield key, value

    def keys(self) -> list[str]:
        """The distinct names, in first-insertion order."""
        return list(self._entries)

    def copy(self) -> "HeaderMap":
        clone = HeaderMap()
        clone._entries = {key: list(values) for key, values in self._entries.items()}
        return clone

    def __getitem__(self, name) -> HeaderValue:
        values = self._entries.get(str(name).lower())
        if not values:
            raise KeyError(name)
        return values[0]

    def __contains__(self, name) -> bool:
        return isinstance(name, (str, bytes)) and (
            (name.decode("latin-1") if isinstance(name, bytes) else name).lower()
            in self._entries
        )

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))

    def __eq__(self, other) -> bool:
        if not isinstance(other, HeaderMap):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        pairs = ", ".join(f"{key!r}: {value!r}" for key, value in self.items())
        return f"HeaderMap({{{pairs}}})"


def replace_headers(dst: HeaderMap, src: HeaderMap) -> None:
    """Merge src into dst: each name in src replaces that name's values in dst."""
    for name in src:
        first, *rest = src.get_all(name)
        dst.insert(name, first)
        for value in rest:
            dst.append(name, value)


def basic_auth(username, password=None) -> HeaderValue:
    """A sensitive Authorization value for HTTP basic authentication."""
    credentials = f"{username}:"
    if password is not None:
        credentials += f"{password}"
    encoded = base64.b64encode(credentials.encode("utf-8")).decode("ascii")
    return HeaderValue(f"Basic {encoded}", sensitive=True)