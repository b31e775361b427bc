#!/usr/bin/env python3
"""
One feed synchronization cycle.

A SyncSession fetches the feed, parses it, normalizes every item, classifies
it against the dedup ledger and writes inserts and updates to the sink inside
a single begin/commit envelope. Fetch and parse failures abort the cycle
before the sink is touched; a failing item is skipped and the cycle goes on.
"""

import inspect
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol

from config import get_logger
from feed_parser import parse_feed
from fetcher import fetch_feed
from ledger import DedupLedger, NEW, UPDATED
from models import HTTPOptions, SyncConfiguration
from normalizer import ItemNormalizer, get_item_identity
from telemetry import trace_span
from utils import DEFAULT_POLLING_INTERVAL_MS, detect_polling_interval, get_content_hash, now_ms

logger = get_logger("sync")

# Ledger entries survive this many polling intervals without a sighting
LEDGER_RETENTION_CYCLES = 10

Fetcher = Callable[[str, HTTPOptions], Awaitable[Any]]


class Sink(Protocol):
    """Transactional receiver of the items produced by a sync cycle.

    write() receives {'type': 'insert' | 'update' | 'delete', 'key': ..., 'value': ...}.
    commit() may return an awaitable, which is awaited.
    """

    def begin(self) -> None: ...

    def write(self, message: Dict[str, Any]) -> None: ...

    def commit(self) -> Any: ...

    def mark_ready(self) -> None: ...


class SyncResult:
    """Counters for one completed cycle."""

    def __init__(self, kind: str):
        self.kind = kind
        self.inserted = 0
        self.updated = 0
        self.unchanged = 0
        self.skipped = 0
        self.duplicates = 0
        self.evicted = 0

    @property
    def writes(self) -> int:
        return self.inserted + self.updated

    def __repr__(self) -> str:
        return (f"SyncResult(kind={self.kind!r}, inserted={self.inserted}, updated={self.updated}, "
                f"unchanged={self.unchanged}, skipped={self.skipped}, "
                f"duplicates={self.duplicates}, evicted={self.evicted})")


class SyncSession:
    """Runs fetch-parse-normalize-diff-write cycles for one feed.

    Args:
        configuration: Validated feed configuration.
        ledger: The ledger owned by this feed's engine.
        fetcher: Coroutine function (url, http_options) -> document. Defaults
            to an aiohttp fetch.
    """

    def __init__(self, configuration: SyncConfiguration, ledger: Optional[DedupLedger] = None,
                 fetcher: Optional[Fetcher] = None):
        self.configuration = configuration
        self.ledger = ledger if ledger is not None else DedupLedger()
        self.fetcher = fetcher or fetch_feed
        self.normalizer = ItemNormalizer(configuration.transform, configuration.parser_options)
        self.recommended_interval: Optional[float] = None

    @property
    def effective_interval(self) -> float:
        """Explicit interval, else the feed's advertised cadence, else the default."""
        if self.configuration.has_explicit_interval:
            return self.configuration.explicit_polling_interval
        if self.recommended_interval is not None:
            return self.recommended_interval
        return self.configuration.polling_interval or DEFAULT_POLLING_INTERVAL_MS

    def _identity(self, raw_item, kind: str) -> str:
        if self.configuration.identity_key is not None:
            return str(self.configuration.identity_key(raw_item))
        return get_item_identity(raw_item, kind, self.configuration.parser_options)

    @trace_span(
        "sync.run",
        tracer_name="sync",
        attr_from_args=lambda self, sink: {"feed.url": self.configuration.feed_url},
    )
    async def run(self, sink: Sink) -> SyncResult:
        """Run one cycle against the sink.

        Raises:
            FeedFetchError, FeedTimeoutError, FeedParsingError,
            UnsupportedFeedFormatError: before sink.begin() is called.
            Errors from sink.commit() propagate and leave the ledger
            untouched, so the next cycle writes the same items again.
        """
        cfg = self.configuration
        document = await self.fetcher(cfg.feed_url, cfg.http_options)
        parsed = parse_feed(document, cfg.parser_options, cfg.expected_kind, cfg.feed_url)

        if not cfg.has_explicit_interval:
            self.recommended_interval = detect_polling_interval(parsed.tree)

        result = SyncResult(parsed.kind)
        # identity -> hash for this cycle, applied to the ledger only after commit
        handled: Dict[str, str] = {}

        sink.begin()
        for raw_item in parsed.items:
            try:
                value = self.normalizer.normalize(raw_item, parsed.kind)
                key = cfg.get_key(value)
                identity = self._identity(raw_item, parsed.kind)
            except Exception as e:
                # Not recorded in the ledger, so the next cycle retries it
                logger.warning(f"Skipping item from {cfg.feed_url}: {e.__class__.__name__}: {e}")
                result.skipped += 1
                continue

            if identity in handled:
                logger.debug(f"Duplicate item {identity!r} in {cfg.feed_url}, keeping the first occurrence")
                result.duplicates += 1
                continue

            content_hash = get_content_hash(raw_item)
            classification = self.ledger.classify_hash(identity, content_hash)
            if classification == NEW:
                sink.write({'type': 'insert', 'key': key, 'value': value})
                result.inserted += 1
            elif classification == UPDATED:
                sink.write({'type': 'update', 'key': key, 'value': value})
                result.updated += 1
            else:
                result.unchanged += 1
            handled[identity] = content_hash

        committed = sink.commit()
        if inspect.isawaitable(committed):
            await committed

        current_time = now_ms()
        for identity, content_hash in handled.items():
            self.ledger.record(identity, content_hash, current_time)
        result.evicted = self.ledger.evict(self.effective_interval * LEDGER_RETENTION_CYCLES, cfg.max_seen_items)

        if result.writes:
            logger.debug(f"Added {result.inserted} new and {result.updated} updated items from {cfg.feed_url}")
        return result
