#!/usr/bin/env python3
"""
Feed sync engine.

FeedSync mirrors one RSS or Atom feed into a sink. Each engine owns its
configuration, its dedup ledger and its scheduler; nothing is shared between
engines, so several feeds can be synchronized side by side.

Example:
    collection = FeedCollection(get_key=lambda item: item['guid'])
    feed = rss_feed_sync('https://example.com/rss.xml', get_key=lambda item: item['guid'])
    stop = feed.sync(collection)
    await collection.wait_until_ready()
"""

from typing import Any, Callable, Mapping, Optional

from config import get_logger
from ledger import DedupLedger
from models import SyncConfiguration
from scheduler import PollScheduler
from sync import Fetcher, Sink, SyncResult, SyncSession

logger = get_logger("feed_sync")


class FeedSync:
    """One feed's synchronization engine.

    Args:
        feed_url: Feed URL (required).
        get_key: Maps a normalized item to its sink key (required).
        polling_interval: Milliseconds between polls. When omitted, the feed's
            syndication hints decide, else five minutes.
        http_options: HTTPOptions or mapping with timeout (ms), headers, user_agent.
        parser_options: ParserOptions or mapping.
        start_polling: Begin recurring polling after the initial sync.
        max_seen_items: Ledger capacity.
        transform: Callable (raw_item, kind) -> normalized item.
        identity_key: Callable raw_item -> dedup identity.
        expected_kind: 'rss' or 'atom' to reject the other dialect.
        fetcher: Replacement for the HTTP fetch, (url, http_options) -> document.

    Raises:
        FeedURLRequiredError, GetKeyRequiredError, InvalidPollingIntervalError
    """

    def __init__(
        self,
        feed_url: Optional[str] = None,
        get_key: Optional[Callable[[Any], Any]] = None,
        polling_interval: Optional[float] = None,
        http_options: Any = None,
        parser_options: Any = None,
        start_polling: bool = True,
        max_seen_items: Optional[int] = None,
        transform: Optional[Callable[[Mapping[str, Any], str], Any]] = None,
        identity_key: Optional[Callable[[Mapping[str, Any]], str]] = None,
        expected_kind: Optional[str] = None,
        fetcher: Optional[Fetcher] = None,
    ):
        self.configuration = SyncConfiguration(
            feed_url=feed_url,
            get_key=get_key,
            polling_interval=polling_interval,
            http_options=http_options,
            parser_options=parser_options,
            start_polling=start_polling,
            max_seen_items=max_seen_items,
            transform=transform,
            identity_key=identity_key,
            expected_kind=expected_kind,
        )
        self.ledger = DedupLedger()
        self.session = SyncSession(self.configuration, self.ledger, fetcher)
        self.scheduler = PollScheduler(self.session, self.configuration.start_polling)

    @property
    def feed_url(self) -> str:
        return self.configuration.feed_url

    @property
    def effective_interval(self) -> float:
        return self.session.effective_interval

    def sync(self, sink: Sink) -> Callable[[], None]:
        """Bind to a sink and start the initial sync.

        Returns:
            A cleanup callable that stops polling.
        """
        self.scheduler.start(sink)
        return self.scheduler.stop_polling

    async def refresh(self) -> SyncResult:
        """Run a cycle now; fetch and parse errors propagate."""
        return await self.scheduler.refresh()

    def start_polling(self) -> None:
        self.scheduler.start_polling()

    def stop_polling(self) -> None:
        self.scheduler.stop_polling()

    def is_polling(self) -> bool:
        return self.scheduler.is_polling()

    def clear_seen_items(self) -> None:
        self.ledger.clear()

    def get_seen_items_count(self) -> int:
        return self.ledger.size()

    async def wait_initial_sync(self) -> None:
        await self.scheduler.wait_initial_sync()

    async def close(self) -> None:
        await self.scheduler.close()

    def __repr__(self) -> str:
        return f"FeedSync({self.feed_url!r}, state={self.scheduler.state!r}, seen={self.ledger.size()})"


def _single_argument(transform: Optional[Callable[[Mapping[str, Any]], Any]]):
    if transform is None:
        return None
    return lambda item, kind: transform(item)


def rss_feed_sync(feed_url: Optional[str] = None, get_key: Optional[Callable[[Any], Any]] = None,
                  transform: Optional[Callable[[Mapping[str, Any]], Any]] = None, **kwargs) -> FeedSync:
    """Build an engine that accepts only RSS documents; transform takes the raw item."""
    return FeedSync(feed_url, get_key, transform=_single_argument(transform), expected_kind='rss', **kwargs)


def atom_feed_sync(feed_url: Optional[str] = None, get_key: Optional[Callable[[Any], Any]] = None,
                   transform: Optional[Callable[[Mapping[str, Any]], Any]] = None, **kwargs) -> FeedSync:
    """Build an engine that accepts only Atom documents; transform takes the raw entry."""
    return FeedSync(feed_url, get_key, transform=_single_argument(transform), expected_kind='atom', **kwargs)
