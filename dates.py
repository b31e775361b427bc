#!/usr/bin/env python3
"""
Feed date parsing.

RSS uses RFC 2822 dates (pubDate) and Atom uses RFC 3339 (published/updated).
Both are parsed strictly first so that the explicit offset is always applied
and the result is a timezone-aware UTC datetime. Anything else goes through
the more lenient parsers (ISO 8601, then email.utils, then feedparser's
date handlers).
"""

import re
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Optional, Union

from feedparser.datetimes import _parse_date as feedparser_parse_date

from config import get_logger

logger = get_logger("dates")

RFC3339_RE = re.compile(
    r'^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.(\d{3}))?(Z|[+-]\d{2}:\d{2})$'
)
RFC2822_RE = re.compile(
    r'^(\w{3}),\s+(\d{1,2})\s+(\w{3})\s+(\d{4})\s+(\d{2}):(\d{2}):(\d{2})\s+(GMT|[+-]\d{4})$'
)
OFFSET_RE = re.compile(r'^([+-])(\d{2}):?(\d{2})$')

MONTHS = {
    'Jan': 1, 'Feb': 2, 'Mar': 3, 'Apr': 4, 'May': 5, 'Jun': 6,
    'Jul': 7, 'Aug': 8, 'Sep': 9, 'Oct': 10, 'Nov': 11, 'Dec': 12,
}


def _offset(zone: str) -> timedelta:
    """Return the UTC offset encoded by Z/GMT, +HH:MM or +HHMM."""
    match = OFFSET_RE.match(zone)
    if not match:
        return timedelta(0)
    sign, hours, minutes = match.groups()
    delta = timedelta(hours=int(hours), minutes=int(minutes))
    return delta if sign == '+' else -delta


def _parse_rfc3339(match: re.Match) -> Optional[datetime]:
    year, month, day, hour, minute, second, millis, zone = match.groups()
    try:
        parsed = datetime(
            int(year), int(month), int(day), int(hour), int(minute), int(second),
            int(millis) * 1000 if millis else 0,
            tzinfo=timezone.utc,
        )
    except ValueError as e:
        logger.debug(f"Invalid RFC 3339 date components: {match.group(0)} ({e})")
        return None
    # Wall clock was read as UTC; subtracting the offset yields the true instant
    return parsed - _offset(zone)


def _parse_rfc2822(match: re.Match) -> Optional[datetime]:
    # Weekday name is intentionally not checked
    _, day, month_name, year, hour, minute, second, zone = match.groups()
    month = MONTHS.get(month_name)
    if month is None:
        logger.debug(f"Invalid month name in RFC 2822 date: {month_name}")
        return None
    try:
        parsed = datetime(
            int(year), month, int(day), int(hour), int(minute), int(second),
            tzinfo=timezone.utc,
        )
    except ValueError as e:
        logger.debug(f"Invalid RFC 2822 date components: {match.group(0)} ({e})")
        return None
    return parsed - _offset(zone)


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _parse_with_feedparser(date_str: str) -> Optional[datetime]:
    try:
        time_struct = feedparser_parse_date(date_str)
    except (ValueError, TypeError, OverflowError):
        return None
    if not time_struct:
        return None
    try:
        return datetime(*time_struct[:6], tzinfo=timezone.utc)
    except (ValueError, TypeError):
        return None


def _parse_with_email_utils(date_str: str) -> Optional[datetime]:
    try:
        return _as_utc(parsedate_to_datetime(date_str))
    except (TypeError, ValueError, IndexError, OverflowError):
        return None


def _parse_with_isoformat(date_str: str) -> Optional[datetime]:
    try:
        return _as_utc(datetime.fromisoformat(date_str))
    except ValueError:
        return None


# Strict parsers first; feedparser accepts partial matches
_FALLBACK_PARSERS = (
    _parse_with_isoformat,
    _parse_with_email_utils,
    _parse_with_feedparser,
)


def parse_feed_date(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse an RSS or Atom date into a UTC datetime.

    Args:
        value: A date string, an existing datetime, or None.

    Returns:
        The datetime unchanged when one is given; a timezone-aware UTC
        datetime for a parseable string; None for empty or unparseable
        input. Never raises for bad input.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value

    date_str = str(value).strip()
    if not date_str:
        return None

    match = RFC3339_RE.match(date_str)
    if match:
        return _parse_rfc3339(match)

    match = RFC2822_RE.match(date_str)
    if match:
        # A strict match with a bad month is rejected rather than guessed at
        return _parse_rfc2822(match)

    for parser in _FALLBACK_PARSERS:
        parsed = parser(date_str)
        if parsed is not None:
            return parsed

    logger.debug(f"Failed to parse date: {date_str}")
    return None
