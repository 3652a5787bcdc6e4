"""Exceptions raised while building requests and handling responses."""

from __future__ import annotations

from http import HTTPStatus


class RequestError(Exception):
    """Base class for every error the package raises."""

    url: str | None = None
    status: int | None = None


class BuilderError(RequestError):
    """A request could not be assembled from the values given."""


class DecodeError(RequestError):
    """A response body could not be decoded."""


class StatusError(RequestError):
    """The server answered with a 4xx or 5xx status code."""

    def __init__(self, url, status):
        self.url = str(url)
        self.status = int(status)
        kind = "client error" if 400 <= self.status < 500 else "server error"
        try:
            reason = HTTPStatus(self.status).phrase
            code = f"{self.status} {reason}"
        except ValueError:
            code = str(self.status)
        super().__init__(f"HTTP status {kind} ({code}) for url ({self.url})")

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status < 500

    @property
    def is_server_error(self) -> bool:
        return 500 <= self.status < 600