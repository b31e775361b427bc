#!/usr/bin/env python3
"""
Command-line entry point for the feed sync engine.

Modes:
  once <url>   Run a single sync cycle against an in-memory collection and
               print the resulting items.
  watch        Mirror every feed from feeds.yaml and log collection sizes
               until interrupted.
  status       Print the effective configuration defaults and feed list.
"""

import argparse
import asyncio
import functools
import sys
from typing import Any, Dict, Optional

from aiohttp import ClientSession

from collection import FeedCollection
from config import config, get_logger, load_feed_definitions
from errors import FeedSyncError
from feed_sync import FeedSync
from fetcher import fetch_feed
from telemetry import init_telemetry, trace_span
from utils import coerce_text, format_duration

logger = get_logger("main")
init_telemetry("feed-sync")

STATUS_INTERVAL_SECONDS = 60


def item_key(item: Dict[str, Any]) -> Any:
    """Sink key for items produced by the default transforms."""
    for field in ('guid', 'id', 'link', 'title'):
        value = coerce_text(item.get(field))
        if value and not isinstance(value, (dict, list)):
            return str(value)
    return repr(sorted(item.items(), key=lambda kv: kv[0]))


def _print_items(collection: FeedCollection) -> None:
    for item in collection.values():
        title = coerce_text(item.get('title')) or '(untitled)'
        link = item.get('link') or ''
        when = item.get('pubDate') or item.get('updated') or item.get('published')
        stamp = when.isoformat() if hasattr(when, 'isoformat') else ''
        print(f"- {title}\n  {link} {stamp}".rstrip())


@trace_span("main.once", tracer_name="main", attr_from_args=lambda url, kind=None: {"feed.url": url})
async def run_once(url: str, kind: Optional[str] = None) -> int:
    collection = FeedCollection(get_key=item_key)
    feed = FeedSync(url, get_key=item_key, start_polling=False, expected_kind=kind)
    # A single cycle without the scheduler, so failures reach us instead of the log
    try:
        result = await feed.session.run(collection)
    except FeedSyncError as e:
        logger.error(f"Sync failed: {e}")
        return 1
    finally:
        collection.mark_ready()
    _print_items(collection)
    logger.info(f"{collection.size} items from {url} ({result})")
    return 0


async def run_watch(feeds_path: Optional[str] = None) -> int:
    definitions = load_feed_definitions(feeds_path)
    if not definitions:
        logger.error("No feeds configured - nothing to watch")
        return 1

    async with ClientSession() as http_session:
        fetcher = functools.partial(fetch_feed, session=http_session)
        engines: Dict[str, FeedSync] = {}
        collections: Dict[str, FeedCollection] = {}
        for slug, kwargs in definitions.items():
            try:
                engines[slug] = FeedSync(get_key=item_key, fetcher=fetcher, **kwargs)
            except (FeedSyncError, ValueError, TypeError) as e:
                logger.error(f"Skipping feed {slug}: {e}")
                continue
            collections[slug] = FeedCollection(get_key=item_key)
            engines[slug].sync(collections[slug])

        try:
            while True:
                await asyncio.sleep(STATUS_INTERVAL_SECONDS)
                for slug, engine in engines.items():
                    logger.info(
                        f"{slug}: {collections[slug].size} items, {engine.get_seen_items_count()} seen, "
                        f"polling every {format_duration(engine.effective_interval)}"
                    )
        except asyncio.CancelledError:
            logger.info("Watch cancelled - shutting down")
        finally:
            await asyncio.gather(*(engine.close() for engine in engines.values()))
    return 0


def print_status(feeds_path: Optional[str] = None) -> None:
    summary = config.get_config_summary()
    print("Feed sync configuration")
    for key, value in summary.items():
        print(f"  {key}: {value}")
    definitions = load_feed_definitions(feeds_path)
    print(f"Feeds ({len(definitions)}):")
    for slug, kwargs in definitions.items():
        print(f"  {slug}: {kwargs.get('feed_url')}")


def main():
    parser = argparse.ArgumentParser(description='RSS/Atom feed sync engine')
    parser.add_argument('mode', choices=['once', 'watch', 'status'], help='What to run')
    parser.add_argument('url', nargs='?', help='Feed URL (once mode)')
    parser.add_argument('--kind', choices=['rss', 'atom'], help='Reject feeds of the other kind')
    parser.add_argument('--feeds', type=str, help='Path to feeds.yaml (default: FEEDS_CONFIG_PATH)')
    args = parser.parse_args()

    if args.mode == 'status':
        print_status(args.feeds)
        return 0
    if args.mode == 'once':
        if not args.url:
            parser.error("once mode requires a feed URL")
        return asyncio.run(run_once(args.url, args.kind))
    try:
        return asyncio.run(run_watch(args.feeds))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 0


if __name__ == '__main__':
    sys.exit(main())
