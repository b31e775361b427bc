#!/usr/bin/env python3
"""
RSS/Atom document parsing.

The XML document is first checked for well-formedness, then converted into a
plain nested dict/list/str tree (attributes under a prefix, text under a
text-node key, repeated siblings as lists, namespaced names as 'prefix:local').
Feed kind detection and item extraction work on that tree only.
"""

import io
import re
import xml.etree.ElementTree as ET
from typing import Any, Dict, List, Optional, Tuple

from config import get_logger
from errors import FeedParsingError, UnsupportedFeedFormatError
from models import ParsedFeed, ParserOptions

logger = get_logger("parser")

XML_NAMESPACE = 'http://www.w3.org/XML/1998/namespace'
# Decoded text no longer matches the encoding a declaration names
XML_DECLARATION_RE = re.compile(r"^\ufeff?\s*<\?xml[^>]*\?>")


def validate_document(document: Any, url: str = '') -> Tuple[ET.Element, Dict[str, str]]:
    """Check that a fetched document is well-formed XML.

    Args:
        document: The response body (str or bytes).
        url: Feed URL, used only for error reporting.

    Returns:
        (root element, namespace uri -> prefix mapping)

    Raises:
        FeedParsingError: if the document is empty or not well-formed.
    """
    if isinstance(document, str):
        data = XML_DECLARATION_RE.sub("", document, count=1).encode("utf-8")
    elif isinstance(document, (bytes, bytearray)):
        data = bytes(document)
    else:
        raise FeedParsingError(url, TypeError(f"Expected str or bytes, got {type(document).__name__}"))

    if not data.strip():
        raise FeedParsingError(url, ValueError("Empty document"))

    namespaces: Dict[str, str] = {XML_NAMESPACE: 'xml'}
    root = None
    try:
        for event, payload in ET.iterparse(io.BytesIO(data), events=('start-ns', 'start')):
            if event == 'start-ns':
                prefix, uri = payload
                # First declaration wins; the default namespace maps to ''
                namespaces.setdefault(uri, prefix)
            elif root is None:
                root = payload
    except ET.ParseError as e:
        raise FeedParsingError(url, ValueError(f"Invalid XML content: {e}")) from e

    if root is None:
        raise FeedParsingError(url, ValueError("Invalid XML content: no root element"))
    return root, namespaces


def _qualify(name: str, namespaces: Dict[str, str], options: ParserOptions) -> str:
    if not name.startswith('{'):
        return name
    uri, local = name[1:].split('}', 1)
    if options.ignore_namespace:
        return local
    prefix = namespaces.get(uri, '')
    return f"{prefix}:{local}" if prefix else local


def _attribute_value(value: str, options: ParserOptions) -> Any:
    if not options.parse_attribute_value:
        return value
    lowered = value.strip().lower()
    if lowered == 'true':
        return True
    if lowered == 'false':
        return False
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        return value


def element_to_tree(element: ET.Element, options: ParserOptions,
                    namespaces: Optional[Dict[str, str]] = None) -> Any:
    """Convert an element into a dict/list/str tree.

    A text-only element becomes its stripped text. An element with attributes
    or children becomes a dict; its own text (if any) goes under
    options.text_node_name. Repeated child names collect into a list.
    """
    namespaces = namespaces or {XML_NAMESPACE: 'xml'}
    node: Dict[str, Any] = {}

    if not options.ignore_attributes:
        for name, value in element.attrib.items():
            node[options.attribute_prefix + _qualify(name, namespaces, options)] = _attribute_value(value, options)

    text_parts = [element.text or '']
    for child in element:
        key = _qualify(child.tag, namespaces, options)
        value = element_to_tree(child, options, namespaces)
        if key in node:
            existing = node[key]
            if isinstance(existing, list):
                existing.append(value)
            else:
                node[key] = [existing, value]
        else:
            node[key] = value
        text_parts.append(child.tail or '')

    text = ''.join(text_parts).strip()
    if not node:
        return text
    if text:
        node[options.text_node_name] = text
    return node


def parse_document(document: Any, options: Optional[ParserOptions] = None, url: str = '') -> Dict[str, Any]:
    """Validate a document and return its tree keyed by the root element name."""
    options = options or ParserOptions()
    root, namespaces = validate_document(document, url)
    return {_qualify(root.tag, namespaces, options): element_to_tree(root, options, namespaces)}


def _as_list(value: Any) -> List[Any]:
    if value is None or value == '':
        return []
    return value if isinstance(value, list) else [value]


def _item_dicts(values: List[Any], label: str) -> List[Dict[str, Any]]:
    items = [value for value in values if isinstance(value, dict)]
    skipped = len(values) - len(items)
    if skipped:
        logger.debug(f"Skipped {skipped} empty {label} element(s)")
    return items


def extract_rss_items(tree: Dict[str, Any], url: str = '') -> List[Dict[str, Any]]:
    rss = tree.get('rss')
    if isinstance(rss, dict) and 'channel' in rss:
        channel = rss['channel']
    elif 'channel' in tree:
        channel = tree['channel']
    else:
        raise FeedParsingError(url, ValueError("Invalid RSS feed structure: missing channel"))

    if not isinstance(channel, dict):
        return []
    items = channel.get('item') or channel.get('items') or []
    return _item_dicts(_as_list(items), 'item')


def extract_atom_entries(tree: Dict[str, Any], url: str = '') -> List[Dict[str, Any]]:
    feed = tree.get('feed')
    if feed is None:
        raise FeedParsingError(url, ValueError("Invalid Atom feed structure"))
    if not isinstance(feed, dict):
        return []
    return _item_dicts(_as_list(feed.get('entry')), 'entry')


def detect_feed_kind(tree: Dict[str, Any]) -> Optional[str]:
    if 'feed' in tree:
        return 'atom'
    if 'rss' in tree or 'channel' in tree:
        return 'rss'
    return None


def parse_feed(document: Any, options: Optional[ParserOptions] = None,
               expected_kind: Optional[str] = None, url: str = '') -> ParsedFeed:
    """Parse a fetched RSS or Atom document.

    Args:
        document: Response body.
        options: Tree-shaping options.
        expected_kind: 'rss' or 'atom' to reject the other dialect.
        url: Feed URL for error reporting.

    Raises:
        FeedParsingError: malformed XML, unknown top-level shape or
            missing RSS channel.
        UnsupportedFeedFormatError: detected kind differs from expected_kind.
    """
    tree = parse_document(document, options, url)
    kind = detect_feed_kind(tree)
    if kind is None:
        raise FeedParsingError(url, ValueError(f"Unknown feed format (root: {', '.join(tree) or 'none'})"))

    if kind == 'atom':
        items = extract_atom_entries(tree, url)
    else:
        items = extract_rss_items(tree, url)

    if expected_kind is not None and expected_kind != kind:
        raise UnsupportedFeedFormatError(url, expected=expected_kind, detected=kind)

    logger.debug(f"Parsed {len(items)} items from {kind} feed {url}")
    return ParsedFeed(kind, items, tree)
