"""
Error taxonomy for fetch_resilience.
"""
from typing import Optional

import httpx


class FetchError(Exception):
    """Base class for all engine errors."""

    def __init__(self, message: str, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.url = url


class TransportError(FetchError):
    """Network failure or timeout. Eligible for retry."""


class FetchAbortedError(TransportError):
    """The caller's abort signal fired. Never retried."""

    def __init__(
        self,
        message: str = "Request aborted",
        url: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> None:
        super().__init__(message, url)
        self.reason = reason


class HTTPStatusError(FetchError):
    """A response was received but its status indicates failure."""

    def __init__(self, response: httpx.Response, url: Optional[str] = None) -> None:
        super().__init__(f"HTTP error! status: {response.status_code}", url)
        self.response = response
        self.status_code = response.status_code


class SerializationError(FetchError):
    """Response body could not be decoded into the expected shape."""


class RateLimitError(FetchError):
    """Request budget exceeded; raised before any network work."""

    def __init__(
        self,
        limit: int,
        interval_seconds: float,
        retry_after_seconds: float,
    ) -> None:
        super().__init__("Rate limit exceeded")
        self.limit = limit
        self.interval_seconds = interval_seconds
        self.retry_after_seconds = retry_after_seconds


def raise_for_status(response: httpx.Response, url: Optional[str] = None) -> httpx.Response:
    """Raise HTTPStatusError unless the response status is 2xx."""
    if not 200 <= response.status_code < 300:
        raise HTTPStatusError(response, url or _request_url(response))
    return response


def _request_url(response: httpx.Response) -> Optional[str]:
    # httpx raises RuntimeError when a Response was built without a request
    try:
        return str(response.request.url)
    except RuntimeError:
        return None
