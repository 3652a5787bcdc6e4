"""Requests and the builder that assembles them."""

from __future__ import annotations

import dataclasses
import enum
import json as _json
from collections.abc import Iterable, Mapping
from datetime import timedelta
from urllib.parse import SplitResult, unquote_to_bytes, urlsplit, urlunsplit

from .body import Body
from .errors import BuilderError
from .headers import HeaderMap, HeaderValue, basic_auth as _basic_auth_value, replace_headers
from .multipart import Form
from .response import Response

_SPECIAL_SCHEMES = frozenset({"http", "https", "ws", "wss", "ftp"})
_TOKEN_EXTRA = frozenset("!#$%&'*+-.^_`|~")
_FORM_SAFE = frozenset(b"*-._")
_UTF8 = "utf-8"


class Version(enum.Enum):
    """HTTP protocol versions."""

    HTTP_09 = "HTTP/0.9"
    HTTP_10 = "HTTP/1.0"
    HTTP_11 = "HTTP/1.1"
    HTTP_2 = "HTTP/2"
    HTTP_3 = "HTTP/3"


def _validate_method(method) -> str:
    if not isinstance(method, str) or not method:
        raise BuilderError(f"invalid HTTP method: {method!r}")
    if not all((ch.isascii() and ch.isalnum()) or ch in _TOKEN_EXTRA for ch in method):
        raise BuilderError(f"invalid HTTP method: {method!r}")
    return method


def _parse_url(url) -> str:
    text = str(url).strip()
    try:
        parts = urlsplit(text)
    except ValueError as exc:
        raise BuilderError(f"invalid URL: {text!r}") from exc
    scheme = parts.scheme.lower()
    if not scheme:
        raise BuilderError(f"relative URL without a base: {text!r}")
    userinfo, at, hostport = parts.netloc.rpartition("@")
    if scheme in _SPECIAL_SCHEMES and not hostport:
        raise BuilderError(f"empty host in URL: {text!r}")
    path = parts.path
    if scheme in _SPECIAL_SCHEMES and not path:
        path = "/"
    netloc = f"{userinfo}{at}{hostport.lower()}"
    return urlunsplit(SplitResult(scheme, netloc, path, parts.query, parts.fragment))


def _scalar(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value
    raise BuilderError(f"unsupported value for url encoding: {type(value).__name__}")


def _encode_component(text: str) -> str:
    out = []
    for byte in text.encode("utf-8"):
        if byte == 0x20:
            out.append("+")
        elif (byte < 0x80 and chr(byte).isalnum()) or byte in _FORM_SAFE:
            out.append(chr(byte))
        else:
            out.append(f"%{byte:02X}")
    return "".join(out)


def _pairs_of(obj) -> Iterable:
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return [(field.name, getattr(obj, field.name)) for field in dataclasses.fields(obj)]
    if isinstance(obj, Mapping):
        return obj.items()
    if isinstance(obj, (str, bytes, bytearray)) or not isinstance(obj, Iterable):
        raise BuilderError("top-level serializer supports only maps, structs and sequences of pairs")
    return obj


def _urlencode(obj) -> str:
    pieces = []
    for item in _pairs_of(obj):
        if isinstance(item, (str, bytes, bytearray)) or not isinstance(item, (tuple, list)) or len(item) != 2:
            raise BuilderError(f"expected a key-value pair, got {item!r}")
        key, value = item
        if value is None:
            continue
        pieces.append(f"{_encode_component(_scalar(key))}={_encode_component(_scalar(value))}")
    return "&".join(pieces)


def _as_body(body) -> Body:
    if isinstance(body, Body):
        return body
    if isinstance(body, Response):
        return body.into_body()
    if isinstance(body, (str, bytes, bytearray, memoryview)):
        return Body(body)
    return Body.from_stream(body)


def _as_timeout(timeout) -> timedelta:
    if isinstance(timeout, timedelta):
        result = timeout
    elif isinstance(timeout, (int, float)) and not isinstance(timeout, bool):
        result = timedelta(seconds=timeout)
    else:
        raise BuilderError(f"invalid timeout: {timeout!r}")
    if result < timedelta(0):
        raise BuilderError("timeout must not be negative")
    return result


def _percent_decode(raw: str) -> str | None:
    """Percent-decode raw as UTF-8, or None if the bytes are not valid UTF-8."""
    try:
        return unquote_to_bytes(raw).decode(_UTF8)
    except UnicodeDecodeError:
        return None


def extract_authority(url):
    """Find user credentials in url.

    Return (url_without_credentials, username, password) when the URL carries a
    user name or a password, else None. Both are percent-decoded; password may be None.
    """
    parts = urlsplit(str(url))
    userinfo, at, hostport = parts.netloc.rpartition("@")
    if not at:
        return None
    user_raw, colon, secret_raw = userinfo.partition(":")
    username = _percent_decode(user_raw)
    if username is None:
        return None
    password = _percent_decode(secret_raw) if colon and secret_raw else None
    if not username and password is None:
        return None
    stripped = urlunsplit(parts._replace(netloc=hostport))
    return stripped, username, password


class Request:
    """A request ready to be executed."""

    def __init__(self, method, url):
        self.method: str = _validate_method(method)
        self.url: str = _parse_url(url)
        self.headers = HeaderMap()
        self.body: Body | None = None
        self.timeout: timedelta | None = None
        self.version: Version = Version.HTTP_11

    def try_clone(self) -> "Request | None":
        """A copy of the request, or None if its body is a stream."""
        body = None
        if self.body is not None:
            body = self.body.try_clone()
            if body is None:
                return None
        clone = Request.__new__(Request)
        clone.method = self.method
        clone.url = self.url
        clone.headers = self.headers.copy()
        clone.body = body
        clone.timeout = self.timeout
        clone.version = self.version
        return clone

    def __repr__(self) -> str:
        return f"Request(method={self.method!r}, url={self.url!r}, headers={self.headers!r})"


class RequestBuilder:
    """Assembles a Request; the first error met is kept and raised by build()."""

    def __init__(self, client, request):
        self.client = client
        self._request: Request | None = None
        self._error: BaseException | None = None
        if isinstance(request, BaseException):
            self._error = request
            return
        self._request = request
        found = extract_authority(request.url)
        if found is not None:
            request.url, username, password = found
            self.basic_auth(username, password)

    @classmethod
    def for_url(cls, client, method, url) -> "RequestBuilder":
        """A builder for a request with the given method and URL."""
        try:
            request = Request(method, url)
        except BuilderError as exc:
            return cls(client, exc)
        return cls(client, request)

    @classmethod
    def from_parts(cls, client, request: Request) -> "RequestBuilder":
        """A builder around an existing client and request, taken as they are."""
        builder = cls.__new__(cls)
        builder.client = client
        builder._request = request
        builder._error = None
        return builder

    def _fail(self, error: BaseException) -> None:
        self._request = None
        self._error = error

    def _header(self, key, value, sensitive: bool) -> "RequestBuilder":
        if self._request is not None:
            try:
                self._request.headers.append(key, HeaderValue(value, sensitive=sensitive))
            except BuilderError as exc:
                self._fail(exc)
        return self

    def header(self, key, value) -> "RequestBuilder":
        """Append a header."""
        return self._header(key, value, False)

    def headers(self, headers) -> "RequestBuilder":
        """Merge headers in; each name given replaces that name's earlier values."""
        if self._request is not None:
            try:
                src = headers if isinstance(headers, HeaderMap) else HeaderMap(headers)
                replace_headers(self._request.headers, src)
            except BuilderError as exc:
                self._fail(exc)
        return self

    def basic_auth(self, username, password=None) -> "RequestBuilder":
        """Use HTTP basic authentication."""
        return self._header("authorization", _basic_auth_value(username, password), True)

    def bearer_auth(self, token) -> "RequestBuilder":
        """Use HTTP bearer authentication."""
        return self._header("authorization", f"Bearer {token}", True)

    def body(self, body) -> "RequestBuilder":
        """Set the request body."""
        if self._request is not None:
            self._request.body = _as_body(body)
        return self

    def timeout(self, timeout) -> "RequestBuilder":
        """Set a timeout for this request, in seconds or as a timedelta."""
        if self._request is not None:
            try:
                self._request.timeout = _as_timeout(timeout)
            except BuilderError as exc:
                self._fail(exc)
        return self

    def multipart(self, form: Form) -> "RequestBuilder":
        """Send a multipart/form-data body."""
        self.header("content-type", f"multipart/form-data; boundary={form.boundary()}")
        length = form.compute_length()
        if length is not None:
            self.header("content-length", length)
        if self._request is not None:
            self._request.body = form.stream()
        return self

    def query(self, query) -> "RequestBuilder":
        """Append url-encoded pairs to the query string of the URL."""
        if self._request is None:
            return self
        try:
            encoded = _urlencode(query)
        except BuilderError as exc:
            self._fail(exc)
            return self
        parts = urlsplit(self._request.url)
        existing = parts.query
        combined = existing + ("&" if existing and encoded else "") + encoded
        self._request.url = urlunsplit(parts._replace(query=combined))
        return self

    def version(self, version) -> "RequestBuilder":
        """Set the HTTP version."""
        if self._request is not None:
            try:
                self._request.version = Version(version)
            except ValueError as exc:
                self._fail(BuilderError(f"unknown HTTP version: {version!r}"))
                self._error.__cause__ = exc
        return self

    def form(self, form) -> "RequestBuilder":
        """Send a url-encoded form body."""
        if self._request is not None:
            try:
                encoded = _urlencode(form)
            except BuilderError as exc:
                self._fail(exc)
                return self
            self._request.headers.insert("content-type", "application/x-www-form-urlencoded")
            self._request.body = Body(encoded)
        return self

    def json(self, value) -> "RequestBuilder":
        """Send a JSON body; Content-Type is set only if not already present."""
        if self._request is not None:
            try:
                data = _json.dumps(value, separators=(",", ":"), ensure_ascii=False)
            except (TypeError, ValueError) as exc:
                self._fail(BuilderError(f"cannot serialize JSON body: {exc}"))
                self._error.__cause__ = exc
                return self
            if "content-type" not in self._request.headers:
                self._request.headers.insert("content-type", "application/json")
            self._request.body = Body(data)
        return self

    def fetch_mode_no_cors(self) -> "RequestBuilder":
        """Has no effect outside a browser environment."""
        return self

    def build(self) -> Request:
        """The assembled request; raise the first error met while building."""
        if self._error is not None:
            raise self._error
        return self._request

    def build_split(self):
        """The client and the assembled request, as a pair."""
        return self.client, self.build()

    def try_clone(self) -> "RequestBuilder | None":
        """A copy of the builder, or None if it holds an error or a streamed body."""
        if self._request is None:
            return None
        request = self._request.try_clone()
        if request is None:
            return None
        return RequestBuilder.from_parts(self.client, request)

    def __repr__(self) -> str:
        if self._request is None:
            return f"RequestBuilder(error={self._error!r})"
        req = self._request
        return f"RequestBuilder(method={req.method!r}, url={req.url!r}, headers={req.headers!r})"