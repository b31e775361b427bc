#!/usr/bin/env python3
"""Common error types shared across modules.

Configuration errors are raised synchronously while building a feed sync
engine. Cycle errors (fetch, timeout, parsing, format) are raised from a
single sync cycle and are retried on the next poll.
"""

from typing import Optional


class FeedSyncError(Exception):
    """Base class for every error raised by the feed sync engine."""


class ConfigurationError(FeedSyncError):
    """Raised when a feed configuration cannot be used."""


class FeedURLRequiredError(ConfigurationError):
    def __init__(self, message: str = "Feed URL is required"):
        super().__init__(message)


class InvalidPollingIntervalError(ConfigurationError):
    """Raised when an explicit polling interval is not a positive number.

    Attributes:
        interval: The rejected interval in milliseconds.
    """

    def __init__(self, interval):
        super().__init__(f"Invalid polling interval: {interval}. Must be a positive number of milliseconds.")
        self.interval = interval


class GetKeyRequiredError(ConfigurationError):
    def __init__(self, message: str = "A get_key function is required"):
        super().__init__(message)


class FeedFetchError(FeedSyncError):
    """Raised when the feed document could not be retrieved.

    Attributes:
        url: The feed URL.
        status: HTTP status code when the server answered, else None.
    """

    def __init__(self, url: str, status: Optional[int] = None, cause: Optional[BaseException] = None):
        if status is not None:
            message = f"Failed to fetch feed from {url}: HTTP {status}"
        elif cause is not None:
            message = f"Failed to fetch feed from {url}: {cause}"
        else:
            message = f"Failed to fetch feed from {url}"
        super().__init__(message)
        self.url = url
        self.status = status
        self.cause = cause


class FeedTimeoutError(FeedSyncError):
    """Raised when the fetch was aborted because it exceeded its timeout.

    Attributes:
        url: The feed URL.
        timeout: The timeout that expired, in milliseconds.
    """

    def __init__(self, url: str, timeout: float):
        super().__init__(f"Timeout fetching feed from {url} after {timeout}ms")
        self.url = url
        self.timeout = timeout


class FeedParsingError(FeedSyncError):
    """Raised when the document is not well-formed or has no usable feed structure."""

    def __init__(self, url: str, cause: Optional[BaseException] = None):
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Failed to parse feed from {url}{detail}")
        self.url = url
        self.cause = cause


class UnsupportedFeedFormatError(FeedSyncError):
    """Raised when the detected feed kind differs from the expected one."""

    def __init__(self, url: str, expected: Optional[str] = None, detected: Optional[str] = None):
        if expected and detected:
            message = f"Unsupported feed format for {url}: expected {expected}, got {detected}"
        else:
            message = f"Unsupported feed format for {url}"
        super().__init__(message)
        self.url = url
        self.expected = expected
        self.detected = detected


__all__ = [
    "FeedSyncError",
    "ConfigurationError",
    "FeedURLRequiredError",
    "InvalidPollingIntervalError",
    "GetKeyRequiredError",
    "FeedFetchError",
    "FeedTimeoutError",
    "FeedParsingError",
    "UnsupportedFeedFormatError",
]
