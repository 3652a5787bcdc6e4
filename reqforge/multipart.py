"""Building multipart/form-data request bodies."""

from __future__ import annotations

import enum
import secrets
from collections.abc import Iterator

from .body import Body
from .errors import BuilderError
from .headers import HeaderMap

_CONTROLS = frozenset(range(0x20)) | {0x7F}
_FRAGMENT_SET = _CONTROLS | frozenset(b' "<>`')
_PATH_SET = _FRAGMENT_SET | frozenset(b"#?{}")
_PATH_SEGMENT_SET = _PATH_SET | frozenset(b"/%")
_ATTR_KEEP = frozenset(b"!#$&+-.^_`|~")
_ATTR_CHAR_SET = frozenset(
    byte for byte in range(0x80) if not (chr(byte).isalnum() or byte in _ATTR_KEEP)
)

_TOKEN_EXTRA = frozenset("!#$%&'*+-.^_`|~")


def _is_token(text: str) -> bool:
    return bool(text) and all(
        (ch.isascii() and ch.isalnum()) or ch in _TOKEN_EXTRA for ch in text
    )


def _parse_mime(text: str) -> str:
    """Validate a media type and return it in normalised form."""
    head, *params = text.split(";")
    main, sep, sub = head.strip().partition("/")
    if not sep or not _is_token(main) or not _is_token(sub):
        raise BuilderError(f"invalid mime type: {text!r}")
    result = f"{main.lower()}/{sub.lower()}"
    for param in params:
        pname, eq, pvalue = param.strip().partition("=")
        pname = pname.strip()
        pvalue = pvalue.strip()
        if not eq or not _is_token(pname) or not pvalue:
            raise BuilderError(f"invalid mime parameter in {text!r}")
        quoted = len(pvalue) >= 2 and pvalue.startswith('"') and pvalue.endswith('"')
        if not quoted and not _is_token(pvalue):
            raise BuilderError(f"invalid mime parameter value in {text!r}")
        result += f"; {pname.lower()}={pvalue}"
    return result


def _percent_encode(value: str, encode_set: frozenset) -> str:
    return "".join(
        f"%{byte:02X}" if byte >= 0x80 or byte in encode_set else chr(byte)
        for byte in value.encode("utf-8")
    )


def _as_body(value) -> Body:
    if isinstance(value, Body):
        return value
    if isinstance(value, (str, bytes, bytearray, memoryview)):
        return Body(value)
    return Body.from_stream(value)


class PercentEncoding(enum.Enum):
    """How field names are percent-encoded in Content-Disposition headers."""

    PATH_SEGMENT = "path-segment"
    ATTR_CHAR = "attr-char"
    NOOP = "noop"

    def percent_encode(self, value: str) -> str:
        """Encode value under this rule set; the result equals value if nothing needed encoding."""
        if self is PercentEncoding.PATH_SEGMENT:
            return _percent_encode(value, _PATH_SEGMENT_SET)
        if self is PercentEncoding.ATTR_CHAR:
            return _percent_encode(value, _ATTR_CHAR_SET)
        return value

    def encode_headers(self, name: str, part: "Part") -> bytes:
        """The header block for one part, without the trailing blank line."""
        buf = bytearray(b"Content-Disposition: form-data; ")
        encoded = self.percent_encode(name)
        if encoded == name:
            buf += b'name="' + name.encode("utf-8") + b'"'
        else:
            buf += b"name*=utf-8''" + encoded.encode("utf-8")

        if part._file_name is not None:
            legal = (
                part._file_name.replace("\\", "\\\\")
                .replace('"', '\\"')
                .replace("\r", "\\\r")
                .replace("\n", "\\\n")
            )
            buf += b'; filename="' + legal.encode("utf-8") + b'"'

        if part._mime is not None:
            buf += b"\r\nContent-Type: " + part._mime.encode("utf-8")

        for key, value in part._headers.items():
            buf += b"\r\n" + key.encode("ascii") + b": " + value.to_bytes()
        return bytes(buf)


class Part:
    """One field of a multipart form."""

    def __init__(self, value, body_length=None):
        self.value: Body = _as_body(value)
        self.body_length: int | None = body_length
        self._mime: str | None = None
        self._file_name: str | None = None
        self._headers = HeaderMap()

    @classmethod
    def text(cls, value) -> "Part":
        """A text field."""
        return cls(Body(str(value)))

    @classmethod
    def from_bytes(cls, value) -> "Part":
        """A field holding arbitrary bytes."""
        return cls(Body(bytes(value)))

    @classmethod
    def from_stream(cls, value) -> "Part":
        """A field whose content comes from a body or an iterable of chunks."""
        return cls(_as_body(value))

    @classmethod
    def from_stream_with_length(cls, value, length) -> "Part":
        """A streamed field whose total length is known in advance."""
        return cls(_as_body(value), int(length))

    def mime_str(self, mime: str) -> "Part":
        """Set the Content-Type of this part; raise BuilderError if it does not parse."""
        self._mime = _parse_mime(mime)
        return self

    def file_name(self, filename) -> "Part":
        """Set the filename reported for this part."""
        self._file_name = str(filename)
        return self

    def headers(self, headers) -> "Part":
        """Replace the extra headers sent with this part."""
        self._headers = HeaderMap(headers)
        return self

    def value_len(self) -> int | None:
        """The content length, if known."""
        if self.body_length is not None:
            return self.body_length
        return self.value.content_length()

    def __repr__(self) -> str:
        return (
            f"Part(value={self.value!r}, mime={self._mime!r}, "
            f"file_name={self._file_name!r}, headers={self._headers!r})"
        )


def gen_boundary() -> str:
    """A fresh random boundary of four 64-bit hex groups."""
    return "-".join(f"{secrets.randbits(64):016x}" for _ in range(4))


class Form:
    """A multipart/form-data body under construction."""

    def __init__(self, boundary=None):
        self._boundary: str = boundary if boundary is not None else gen_boundary()
        self._fields: list[tuple[str, Part]] = []
        self._encoding = PercentEncoding.PATH_SEGMENT

    def boundary(self) -> str:
        """The boundary this form uses."""
        return self._boundary

    def text(self, name, value) -> "Form":
        """Add a text field."""
        return self.part(name, Part.text(value))

    def part(self, name, part: Part) -> "Form":
        """Add a prepared part."""
        self._fields.append((str(name), part))
        return self

    def percent_encode_path_segment(self) -> "Form":
        self._encoding = PercentEncoding.PATH_SEGMENT
        return self

    def percent_encode_attr_chars(self) -> "Form":
        self._encoding = PercentEncoding.ATTR_CHAR
        return self

    def percent_encode_noop(self) -> "Form":
        self._encoding = PercentEncoding.NOOP
        return self

    def _chunks(self, fields: list[tuple[str, Part]]) -> Iterator[bytes]:
        delimiter = f"--{self._boundary}\r\n".encode("utf-8")
        for name, part in fields:
            yield delimiter
            yield self._encoding.encode_headers(name, part) + b"\r\n\r\n"
            yield from part.value
            yield b"\r\n"
        yield f"--{self._boundary}--\r\n".encode("utf-8")

    def stream(self) -> Body:
        """The encoded form as a streaming body; empty if there are no fields."""
        if not self._fields:
            return Body.empty()
        return Body.from_stream(self._chunks(list(self._fields)))

    def compute_length(self) -> int | None:
        """The total encoded length, or None if any part's length is unknown."""
        boundary_len = len(self._boundary.encode("utf-8"))
        length = 0
        for name, part in self._fields:
            value_length = part.value_len()
            if value_length is None:
                return None
            header = self._encoding.encode_headers(name, part)
            length += 2 + boundary_len + 2 + len(header) + 4 + value_length + 2
        if self._fields:
            length += 2 + boundary_len + 4
        return length

    def __repr__(self) -> str:
        return f"Form(boundary={self._boundary!r}, parts={self._fields!r})"