"""Exception taxonomy for page fetching.

Attempt-level errors (``FetchError`` and subclasses) are recovered inside the
orchestrator loop. Only ``FetchExhausted`` and ``FetchTimeout`` reach callers
of :func:`pagefetch.workflows.page_fetch.fetch_page`.
"""

from __future__ import annotations

from typing import List, Optional


class PageFetchError(Exception):
    """Base class for every error raised by pagefetch."""


class InvalidUrl(PageFetchError):
    """The target could not be parsed as an absolute URL."""


class UnsupportedScheme(InvalidUrl):
    """The target URL uses a scheme other than http or https."""


class BlockedHost(PageFetchError):
    """The target host resolves to a loopback/private/link-local name or literal."""

    def __init__(self, hostname: str):
        self.hostname = hostname
        super().__init__("Target host is not allowed")


class FetchError(PageFetchError):
    """A single fetch attempt failed."""


class HttpError(FetchError):
    def __init__(self, status: int, reason: str = ""):
        self.status = status
        self.reason = reason
        super().__init__(f"Request failed: {status} {reason}".rstrip())


class TooManyRedirects(HttpError):
    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(310, f"more than {limit} redirects")


class TooLarge(FetchError):
    """Declared or observed response size exceeded the byte limit."""

    def __init__(self, limit: int, observed: int, declared: bool = False):
        self.limit = limit
        self.observed = observed
        self.declared = declared
        if declared:
            message = f"Response too large ({observed} bytes)"
        else:
            message = f"Response exceeded {limit} bytes"
        super().__init__(message)


class Cancelled(FetchError):
    """The attempt was aborted because its deadline elapsed."""


class ExtractionFailed(FetchError):
    """The readable-content extractor raised; callers fall back to raw text."""


class FetchExhausted(PageFetchError):
    """Every strategy/URL pair failed or produced empty text."""

    def __init__(self, message: str, errors: Optional[List[Exception]] = None):
        self.errors = errors or []
        super().__init__(message)


class FetchTimeout(PageFetchError):
    """The orchestration deadline elapsed before any attempt succeeded."""

    def __init__(self, timeout_ms: int):
        self.timeout_ms = timeout_ms
        super().__init__(f"Timed out after {timeout_ms} ms")


__all__ = [
    "PageFetchError",
    "InvalidUrl",
    "UnsupportedScheme",
    "BlockedHost",
    "FetchError",
    "HttpError",
    "TooManyRedirects",
    "TooLarge",
    "Cancelled",
    "ExtractionFailed",
    "FetchExhausted",
    "FetchTimeout",
]
