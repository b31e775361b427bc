#!/usr/bin/env python3
"""
Item normalization and identity extraction.

Raw RSS items and Atom entries come out of the parser as nested dicts whose
shape depends on the dialect. The default transforms flatten the common
Atom wrappers and convert dates; a user transform replaces them entirely.
"""

import json
from typing import Any, Callable, Dict, Mapping, Optional

from config import get_logger
from dates import parse_feed_date
from models import ParserOptions
from utils import coerce_text

logger = get_logger("normalizer")


def _text_keys(options: Optional[ParserOptions]) -> tuple:
    name = options.text_node_name if options else '#text'
    return ('$text', name) if name != '$text' else ('$text',)


def _attr(node: Mapping[str, Any], name: str, options: Optional[ParserOptions]) -> Any:
    prefix = options.attribute_prefix if options else '@_'
    if prefix + name in node:
        return node[prefix + name]
    return node.get(name)


def _unwrap(value: Any, options: Optional[ParserOptions]) -> Any:
    return coerce_text(value, _text_keys(options))


def resolve_atom_link(link: Any, options: Optional[ParserOptions] = None) -> Optional[str]:
    """Resolve an Atom link from a bare href, a link object or a list of them.

    From a list the entry with rel 'alternate' (or no rel) wins, else the first.
    """
    if link is None:
        return None
    if isinstance(link, str):
        return link or None
    if isinstance(link, dict):
        return _attr(link, 'href', options)
    if isinstance(link, list):
        candidates = [entry for entry in link if isinstance(entry, dict)]
        for entry in candidates:
            rel = _attr(entry, 'rel', options)
            if not rel or rel == 'alternate':
                href = _attr(entry, 'href', options)
                if href:
                    return href
        if candidates:
            return _attr(candidates[0], 'href', options)
        strings = [entry for entry in link if isinstance(entry, str) and entry]
        return strings[0] if strings else None
    return None


def default_rss_transform(item: Mapping[str, Any]) -> Dict[str, Any]:
    """Pass RSS fields through, converting pubDate to a datetime."""
    normalized = dict(item)
    normalized['pubDate'] = parse_feed_date(item.get('pubDate')) if item.get('pubDate') else None
    return normalized


def default_atom_transform(item: Mapping[str, Any], options: Optional[ParserOptions] = None) -> Dict[str, Any]:
    """Flatten an Atom entry into plain strings and datetimes."""
    normalized = dict(item)

    for field in ('title', 'summary', 'content'):
        if field in item:
            normalized[field] = _unwrap(item[field], options)

    if 'link' in item and not isinstance(item['link'], str):
        normalized['link'] = resolve_atom_link(item['link'], options)

    for field in ('updated', 'published'):
        if item.get(field):
            normalized[field] = parse_feed_date(_unwrap(item[field], options))

    author = item.get('author')
    if isinstance(author, dict) and 'name' in author:
        normalized['author'] = _unwrap(author['name'], options)

    return normalized


def _identity_part(value: Any, options: Optional[ParserOptions]) -> Optional[str]:
    value = _unwrap(value, options)
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def _serialize(item: Mapping[str, Any]) -> str:
    return json.dumps(item, sort_keys=True, ensure_ascii=False, separators=(',', ':'), default=str)


def get_item_identity(item: Mapping[str, Any], kind: str, options: Optional[ParserOptions] = None) -> str:
    """Derive the deduplication identity of a raw item.

    RSS: guid, then link, then title. Atom: id, then resolved link, then
    title text. The full serialized item is the last resort for both.
    """
    if kind == 'atom':
        candidates = (item.get('id'), resolve_atom_link(item.get('link'), options), item.get('title'))
    else:
        candidates = (item.get('guid'), item.get('link'), item.get('title'))

    for candidate in candidates:
        identity = _identity_part(candidate, options)
        if identity:
            return identity
    return _serialize(item)


class ItemNormalizer:
    """Maps raw items to the caller's target shape.

    Args:
        transform: Optional callable taking (raw_item, kind). When omitted the
            dialect's default transform is used.
        parser_options: Options the tree was built with, so the Atom defaults
            know the attribute prefix and text node name.
    """

    def __init__(self, transform: Optional[Callable[[Mapping[str, Any], str], Any]] = None,
                 parser_options: Optional[ParserOptions] = None):
        self.transform = transform
        self.parser_options = parser_options or ParserOptions()

    def normalize(self, raw_item: Mapping[str, Any], kind: str) -> Any:
        """Normalize one item. Exceptions from a user transform propagate to the caller."""
        if self.transform is not None:
            return self.transform(raw_item, kind)
        if kind == 'atom':
            return default_atom_transform(raw_item, self.parser_options)
        return default_rss_transform(raw_item)
