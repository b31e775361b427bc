#!/usr/bin/env python3
"""
Feed document fetcher.

Fetches a feed over HTTP with aiohttp and maps every transport failure onto
the engine's error types: a non-2xx answer becomes FeedFetchError with its
status, an expired timeout becomes FeedTimeoutError, and any other client
error becomes FeedFetchError without a status.
"""

from asyncio import TimeoutError
from typing import Dict, List, Optional

from aiohttp import ClientError, ClientSession, ClientTimeout

from config import get_logger
from errors import FeedFetchError, FeedTimeoutError
from models import HTTPOptions
from telemetry import init_telemetry, trace_span

logger = get_logger("fetcher")
init_telemetry("feed-sync")


def build_request_headers(http_options: Optional[HTTPOptions] = None) -> Dict[str, str]:
    """Return the request headers for a feed fetch."""
    return HTTPOptions.coerce(http_options).request_headers()


def _format_client_error(error: ClientError) -> str:
    """Describe aiohttp client errors with any available status/errno."""
    parts: List[str] = [error.__class__.__name__]
    status = getattr(error, 'status', None)
    if status is not None:
        parts.append(f"status={status}")
    os_error = getattr(error, 'os_error', None)
    if os_error is not None:
        errno = getattr(os_error, 'errno', None)
        if errno is not None:
            parts.append(f"errno={errno}")
    message = str(error)
    if message:
        parts.append(message)
    return " ".join(parts)


async def _get(session: ClientSession, url: str, options: HTTPOptions) -> bytes:
    timeout = ClientTimeout(total=options.timeout / 1000)
    async with session.get(url, headers=options.request_headers(), timeout=timeout) as response:
        if not 200 <= response.status < 300:
            raise FeedFetchError(url, response.status)
        return await response.read()


@trace_span(
    "fetch_feed",
    tracer_name="fetcher",
    attr_from_args=lambda url, http_options=None, session=None: {"http.url": url},
)
async def fetch_feed(url: str, http_options: Optional[HTTPOptions] = None,
                     session: Optional[ClientSession] = None) -> bytes:
    """Fetch a feed document.

    Args:
        url: Feed URL.
        http_options: Timeout (ms), headers and user agent.
        session: Shared aiohttp session; a short-lived one is used if omitted.

    Returns:
        The raw response body.

    Raises:
        FeedFetchError: non-2xx status or network failure.
        FeedTimeoutError: the request did not finish within the timeout.
    """
    options = HTTPOptions.coerce(http_options)
    logger.debug(f"Fetching feed from {url}")
    try:
        if session is not None:
            return await _get(session, url, options)
        async with ClientSession() as own_session:
            return await _get(own_session, url, options)
    except FeedFetchError as e:
        logger.warning(f"Error fetching {url}: HTTP {e.status}")
        raise
    except TimeoutError as e:
        logger.warning(f"Timeout fetching {url} after {options.timeout}ms")
        raise FeedTimeoutError(url, options.timeout) from e
    except ClientError as e:
        detail = _format_client_error(e)
        logger.warning(f"Error fetching {url}: {detail}")
        raise FeedFetchError(url, getattr(e, 'status', None), cause=e) from e
