"""Request and response bodies held in memory or produced by a stream."""

from __future__ import annotations

from collections.abc import Iterable, Iterator


def _to_bytes(chunk) -> bytes:
    if isinstance(chunk, str):
        return chunk.encode("utf-8")
    if isinstance(chunk, (bytes, bytearray, memoryview)):
        return bytes(chunk)
    raise TypeError(f"body data must be str or bytes, not {type(chunk).__name__}")


class Body:
    """A body that is either a fixed byte string or a one-shot stream of chunks."""

    __slots__ = ("_data", "_stream")

    def __init__(self, data=b""):
        self._data: bytes | None = _to_bytes(data)
        self._stream: Iterator | None = None

    @classmethod
    def empty(cls) -> "Body":
        """A body with no content."""
        return cls(b"")

    @classmethod
    def from_stream(cls, stream: Iterable) -> "Body":
        """A body whose chunks are drawn from an iterable of str or bytes."""
        body = cls.__new__(cls)
        body._data = None
        body._stream = iter(stream)
        return body

    def as_bytes(self) -> bytes | None:
        """The full content, or None when the body is a stream."""
        return self._data

    def content_length(self) -> int | None:
        """The exact length in bytes, or None when it is not known."""
        return None if self._data is None else len(self._data)

    def try_clone(self) -> "Body | None":
        """A copy of the body, or None if it is a stream."""
        if self._data is None:
            return None
        return Body(self._data)

    def __iter__(self) -> Iterator[bytes]:
        if self._data is not None:
            if self._data:
                yield self._data
            return
        for chunk in self._stream:
            yield _to_bytes(chunk)

    def __repr__(self) -> str:
        if self._data is None:
            return "Body(<stream>)"
        return f"Body({self._data!r})"