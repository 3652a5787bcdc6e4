"""HTTP responses and reading their bodies."""

from __future__ import annotations

import codecs
import json as _json
from collections.abc import Iterator

from .body import Body
from .errors import DecodeError, StatusError
from .headers import HeaderMap

_DEFAULT_URL = "http://no.url.provided.local/"

_ENCODING_ALIASES = {
    "iso-8859-1": "cp1252",
    "latin1": "cp1252",
    "latin-1": "cp1252",
    "ascii": "cp1252",
    "us-ascii": "cp1252",
    "utf-16": "utf-16-le",
}

_BOMS = (
    (codecs.BOM_UTF8, "utf-8"),
    (codecs.BOM_UTF16_LE, "utf-16-le"),
    (codecs.BOM_UTF16_BE, "utf-16-be"),
)


def _lookup_encoding(label: str) -> str | None:
    name = label.strip().lower()
    name = _ENCODING_ALIASES.get(name, name)
    try:
        return codecs.lookup(name).name
    except LookupError:
        return None


def _charset_param(content_type) -> str | None:
    if content_type is None:
        return None
    head, *params = str(content_type).split(";")
    if "/" not in head:
        return None
    for param in params:
        pname, eq, pvalue = param.partition("=")
        if eq and pname.strip().lower() == "charset":
            return pvalue.strip().strip('"')
    return None


def _as_body(body) -> Body:
    if body is None:
        return Body.empty()
    if isinstance(body, Body):
        return body
    if isinstance(body, (str, bytes, bytearray, memoryview)):
        return Body(body)
    return Body.from_stream(body)


class Response:
    """A response received for a request."""

    def __init__(
        self,
        status=200,
        headers=None,
        url=None,
        body=None,
        version="HTTP/1.1",
        remote_addr=None,
    ):
        self.status = int(status)
        self.headers = headers if isinstance(headers, HeaderMap) else HeaderMap(headers)
        self.url = str(url) if url is not None else _DEFAULT_URL
        self.version = version
        self.remote_addr = remote_addr
        self.extensions: dict = {}
        self._body = _as_body(body)
        self._iter: Iterator[bytes] | None = None

    def _remaining(self) -> Iterator[bytes]:
        if self._iter is None:
            self._iter = iter(self._body)
        return self._iter

    def content_length(self) -> int | None:
        """The body length, if it is known."""
        length = self._body.content_length()
        if length is not None:
            return length
        declared = self.headers.get("content-length")
        if declared is not None and declared.strip().isdigit():
            return int(declared)
        return None

    def text(self) -> str:
        """The full body decoded as text, UTF-8 unless the Content-Type says otherwise."""
        return self.text_with_charset("utf-8")

    def text_with_charset(self, default_encoding: str) -> str:
        """The full body decoded with the Content-Type charset, else default_encoding.

        A leading byte order mark decides the encoding and is stripped; malformed
        sequences become U+FFFD.
        """
        label = _charset_param(self.headers.get("content-type")) or default_encoding
        encoding = _lookup_encoding(label) or "utf-8"
        data = self.bytes()
        for bom, bom_encoding in _BOMS:
            if data.startswith(bom):
                encoding = bom_encoding
                data = data[len(bom):]
                break
        return data.decode(encoding, errors="replace")

    def json(self):
        """The body parsed as JSON; raise DecodeError if it is not valid JSON."""
        data = self.bytes()
        try:
            return _json.loads(data)
        except ValueError as exc:
            raise DecodeError(f"error decoding response body: {exc}") from exc

    def bytes(self) -> bytes:
        """Every remaining byte of the body."""
        return b"".join(self._remaining())

    def chunk(self) -> bytes | None:
        """The next chunk of the body, or None once it is exhausted."""
        return next(self._remaining(), None)

    def bytes_stream(self) -> Iterator[bytes]:
        """An iterator over the remaining body chunks."""
        return self._remaining()

    def error_for_status(self) -> "Response":
        """Return self, or raise StatusError for a 4xx or 5xx status."""
        if 400 <= self.status < 600:
            raise StatusError(self.url, self.status)
        return self

    def into_body(self) -> Body:
        """The remaining body as a streaming body, to be sent on with another request."""
        return Body.from_stream(self._remaining())

    def __repr__(self) -> str:
        return f"Response(url={self.url!r}, status={self.status}, headers={self.headers!r})"