#!/usr/bin/env python3
"""
Utility functions for the feed sync engine.

Contains the content hash used for change detection, the polling interval
advisor driven by syndication metadata, and small time helpers shared by the
ledger and the scheduler.
"""

import json
import re
from datetime import date, datetime
from time import time
from typing import Any, Dict, Mapping, Optional

from config import get_logger

logger = get_logger("utils")

# Fields whose changes mean an item was edited; everything else is metadata
HASHED_FIELDS = (
    'title',
    'description',
    'summary',
    'content',
    'link',
    'author',
    'category',
    'enclosure',
)

HASH_SEED = 5381
HASH_MASK = 0xFFFFFFFF
BASE36_DIGITS = '0123456789abcdefghijklmnopqrstuvwxyz'

LEADING_INT_RE = re.compile(r"\s*([+-]?\d+)")

SECOND_MS = 1000
MINUTE_MS = 60 * SECOND_MS
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS

DEFAULT_POLLING_INTERVAL_MS = 5 * MINUTE_MS
MIN_POLLING_INTERVAL_MS = MINUTE_MS

UPDATE_PERIODS = {
    'hourly': HOUR_MS,
    'daily': DAY_MS,
    'weekly': 7 * DAY_MS,
    'monthly': 30 * DAY_MS,
    'yearly': 365 * DAY_MS,
}


def now_ms() -> float:
    """Current wall-clock time in milliseconds since the epoch."""
    return time() * 1000


def format_duration(milliseconds: float) -> str:
    """Format a millisecond duration for log messages (e.g. '30m', '1h 30m')."""
    seconds = int(milliseconds // 1000)
    if seconds < 60:
        return f"{seconds}s"
    minutes, seconds = divmod(seconds, 60)
    if minutes < 60:
        return f"{minutes}m {seconds}s" if seconds else f"{minutes}m"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes}m" if minutes else f"{hours}h"


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _to_base36(number: int) -> str:
    if number == 0:
        return '0'
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(BASE36_DIGITS[remainder])
    return ''.join(reversed(digits))


def get_content_hash(item: Mapping[str, Any]) -> str:
    """Hash the change-relevant fields of a feed item (djb2, base 36).

    Only HASHED_FIELDS take part, serialized in that order. A field that is
    absent is left out entirely while an explicit None is kept, so the two
    hash differently. Timestamps and other metadata never affect the result.
    """
    subset = {field: item[field] for field in HASHED_FIELDS if field in item}
    content = json.dumps(subset, ensure_ascii=False, separators=(',', ':'), default=_json_default)

    value = HASH_SEED
    for char in content:
        value = (value * 33 + ord(char)) & HASH_MASK
    return _to_base36(value)


def _hint_value(node: Any, name: str) -> Any:
    if not isinstance(node, dict):
        return None
    # Trees built with ignore_namespace carry the bare local name
    for key in (name, name.split(':', 1)[-1]):
        if node.get(key) not in (None, ''):
            return node[key]
    return None


def _syndication_hint(feed_data: Mapping[str, Any], name: str) -> Any:
    rss = feed_data.get('rss')
    channel = rss.get('channel') if isinstance(rss, dict) else None
    if not isinstance(channel, dict):
        channel = feed_data.get('channel')
    value = _hint_value(channel, name)
    if value is None:
        value = _hint_value(feed_data.get('feed'), name)
    return value


def _frequency(value: Any) -> Optional[float]:
    """Leading integer of the hint, so '2.5' reads as 2."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(int(value))
    match = LEADING_INT_RE.match(str(value))
    return float(match.group(1)) if match else None


def detect_polling_interval(feed_data: Mapping[str, Any]) -> float:
    """Recommend a polling interval from sy:updatePeriod / sy:updateFrequency.

    Args:
        feed_data: The parsed document tree (top-level 'rss', 'channel' or 'feed').

    Returns:
        period / frequency in milliseconds, never below one minute; five
        minutes when either hint is missing or unusable.
    """
    period = _syndication_hint(feed_data, 'sy:updatePeriod')
    frequency = _frequency(_syndication_hint(feed_data, 'sy:updateFrequency'))

    if isinstance(period, str) and frequency and frequency > 0:
        base_interval = UPDATE_PERIODS.get(period.strip().lower())
        if base_interval:
            interval = max(base_interval / frequency, MIN_POLLING_INTERVAL_MS)
            logger.debug(f"Detected polling interval {format_duration(interval)} ({period} / {frequency:g})")
            return interval

    logger.debug("Using default 5-minute polling interval")
    return DEFAULT_POLLING_INTERVAL_MS


def coerce_text(value: Any, text_keys: tuple = ('$text', '#text')) -> Any:
    """Unwrap a {'$text': ...} style node to its text; other values pass through."""
    if isinstance(value, dict):
        for key in text_keys:
            if key in value:
                return value[key]
    return value


__all__ = [
    "get_content_hash",
    "detect_polling_interval",
    "coerce_text",
    "format_duration",
    "now_ms",
    "DEFAULT_POLLING_INTERVAL_MS",
    "MIN_POLLING_INTERVAL_MS",
    "UPDATE_PERIODS",
    "HASHED_FIELDS",
]
