"""Build HTTP requests, encode multipart forms and read responses."""

__version__ = "0.1.0"

__all__ = ["body", "errors", "headers", "multipart", "request", "response"]