#!/usr/bin/env python3
"""
Data model for the feed sync engine.

These are small value objects: the per-identity ledger record, the parsed
feed handed from the parser to the sync session, and the validated
configuration of one feed.
"""

from typing import Any, Callable, Dict, List, Mapping, Optional

from config import config, DEFAULT_ACCEPT
from errors import FeedURLRequiredError, GetKeyRequiredError, InvalidPollingIntervalError

FEED_KINDS = ('rss', 'atom')


class SeenItemRecord:
    """Ledger entry for one item identity.

    Attributes:
        identity: Deduplication key of the item.
        last_seen_at: Milliseconds since the epoch of the latest sighting.
        content_hash: Hash of the tracked fields at the latest sighting.
    """

    __slots__ = ('identity', 'last_seen_at', 'content_hash')

    def __init__(self, identity: str, last_seen_at: float, content_hash: str):
        self.identity = identity
        self.last_seen_at = last_seen_at
        self.content_hash = content_hash

    def __repr__(self) -> str:
        return f"SeenItemRecord({self.identity!r}, last_seen_at={self.last_seen_at}, hash={self.content_hash!r})"


class ParsedFeed:
    """Result of parsing one fetched document.

    Attributes:
        kind: 'rss' or 'atom'.
        items: Raw item/entry mappings in document order.
        tree: The full document tree, used for syndication hints.
    """

    def __init__(self, kind: str, items: List[Dict[str, Any]], tree: Optional[Dict[str, Any]] = None):
        self.kind = kind
        self.items = items
        self.tree = tree or {}

    def __len__(self) -> int:
        return len(self.items)

    def __repr__(self) -> str:
        return f"ParsedFeed(kind={self.kind!r}, items={len(self.items)})"


class HTTPOptions:
    """Request options for fetching a feed. Timeout is in milliseconds."""

    def __init__(self, timeout: Optional[float] = None, headers: Optional[Mapping[str, str]] = None,
                 user_agent: Optional[str] = None):
        self.timeout = timeout if timeout is not None else config.HTTP_TIMEOUT_MS
        if self.timeout <= 0:
            raise ValueError(f"HTTP timeout must be positive, got {timeout}")
        self.headers = dict(headers or {})
        self.user_agent = user_agent or config.USER_AGENT

    @classmethod
    def coerce(cls, value: Any) -> "HTTPOptions":
        if value is None:
            return cls()
        if isinstance(value, cls):
            return value
        return cls(**dict(value))

    def request_headers(self) -> Dict[str, str]:
        """Headers to send: defaults first, caller headers override them."""
        headers = {
            'User-Agent': self.user_agent,
            'Accept': DEFAULT_ACCEPT,
        }
        headers.update(self.headers)
        return headers


class ParserOptions:
    """Controls how the XML document is turned into a key/value tree.

    Attributes:
        attribute_prefix: Prefix for attribute keys (default '@_').
        text_node_name: Key for element text when the element also has
            attributes or children (default '#text').
        ignore_attributes: Drop attributes entirely.
        parse_attribute_value: Convert numeric/boolean attribute values.
        ignore_namespace: Drop namespace prefixes from element names.
    """

    def __init__(self, attribute_prefix: str = '@_', text_node_name: str = '#text',
                 ignore_attributes: bool = False, parse_attribute_value: bool = True,
                 ignore_namespace: bool = False):
        self.attribute_prefix = attribute_prefix
        self.text_node_name = text_node_name
        self.ignore_attributes = ignore_attributes
        self.parse_attribute_value = parse_attribute_value
        self.ignore_namespace = ignore_namespace

    @classmethod
    def coerce(cls, value: Any) -> "ParserOptions":
        if value is None:
            return cls()
        if isinstance(value, cls):
            return value
        return cls(**dict(value))


class SyncConfiguration:
    """Validated, read-only configuration for one feed.

    Raises:
        FeedURLRequiredError: feed_url missing or blank.
        GetKeyRequiredError: get_key missing or not callable.
        InvalidPollingIntervalError: explicit polling_interval not > 0.
        ValueError: bad max_seen_items or expected_kind.
    """

    def __init__(
        self,
        feed_url: Optional[str],
        get_key: Optional[Callable[[Any], Any]],
        polling_interval: Optional[float] = None,
        http_options: Any = None,
        parser_options: Any = None,
        start_polling: bool = True,
        max_seen_items: Optional[int] = None,
        transform: Optional[Callable[..., Any]] = None,
        identity_key: Optional[Callable[[Mapping[str, Any]], str]] = None,
        expected_kind: Optional[str] = None,
    ):
        if not feed_url or not str(feed_url).strip():
            raise FeedURLRequiredError()
        if get_key is None or not callable(get_key):
            raise GetKeyRequiredError()
        if polling_interval is not None:
            if isinstance(polling_interval, bool) or not isinstance(polling_interval, (int, float)) \
                    or polling_interval <= 0:
                raise InvalidPollingIntervalError(polling_interval)
        if max_seen_items is None:
            max_seen_items = config.MAX_SEEN_ITEMS
        if isinstance(max_seen_items, bool) or not isinstance(max_seen_items, int) or max_seen_items <= 0:
            raise ValueError(f"max_seen_items must be a positive integer, got {max_seen_items!r}")
        if expected_kind is not None and expected_kind not in FEED_KINDS:
            raise ValueError(f"expected_kind must be one of {FEED_KINDS}, got {expected_kind!r}")

        object.__setattr__(self, 'feed_url', str(feed_url).strip())
        object.__setattr__(self, 'get_key', get_key)
        object.__setattr__(self, 'explicit_polling_interval', polling_interval)
        object.__setattr__(self, 'http_options', HTTPOptions.coerce(http_options))
        object.__setattr__(self, 'parser_options', ParserOptions.coerce(parser_options))
        object.__setattr__(self, 'start_polling', bool(start_polling))
        object.__setattr__(self, 'max_seen_items', max_seen_items)
        object.__setattr__(self, 'transform', transform)
        object.__setattr__(self, 'identity_key', identity_key)
        object.__setattr__(self, 'expected_kind', expected_kind)

    def __setattr__(self, name, value):
        raise AttributeError(f"SyncConfiguration is read-only ({name})")

    @property
    def polling_interval(self) -> float:
        """Explicit interval if one was configured, else the process default."""
        if self.explicit_polling_interval is not None:
            return self.explicit_polling_interval
        return config.DEFAULT_POLLING_INTERVAL_MS

    @property
    def has_explicit_interval(self) -> bool:
        return self.explicit_polling_interval is not None

    def __repr__(self) -> str:
        return (f"SyncConfiguration(feed_url={self.feed_url!r}, polling_interval={self.polling_interval}, "
                f"expected_kind={self.expected_kind!r}, max_seen_items={self.max_seen_items})")
