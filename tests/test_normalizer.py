import json
from datetime import datetime, timezone

import pytest

from models import ParserOptions
from normalizer import (
    ItemNormalizer,
    default_atom_transform,
    default_rss_transform,
    get_item_identity,
    resolve_atom_link,
)


def test_rss_pubdate_is_converted():
    item = {'title': 'Post', 'pubDate': 'Mon, 25 Dec 2023 10:30:00 GMT'}
    normalized = default_rss_transform(item)
    assert normalized['pubDate'] == datetime(2023, 12, 25, 10, 30, tzinfo=timezone.utc)
    assert normalized['title'] == 'Post'
    assert item['pubDate'] == 'Mon, 25 Dec 2023 10:30:00 GMT'


def test_rss_without_or_with_bad_pubdate():
    assert default_rss_transform({'title': 'x'})['pubDate'] is None
    assert default_rss_transform({'title': 'x', 'pubDate': 'garbage'})['pubDate'] is None


def test_atom_entry_is_flattened():
    entry = {
        'id': 'urn:uuid:1',
        'title': {'@_type': 'html', '#text': 'Hello'},
        'summary': {'$text': 'Short'},
        'content': 'Plain',
        'link': [
            {'@_rel': 'self', '@_href': 'https://example.com/self'},
            {'@_rel': 'alternate', '@_href': 'https://example.com/post'},
        ],
        'updated': '2023-12-25T10:30:00Z',
        'published': {'#text': '2023-12-24T10:30:00+01:00'},
        'author': {'name': 'Jane', 'email': 'jane@example.com'},
    }
    normalized = default_atom_transform(entry)
    assert normalized['title'] == 'Hello'
    assert normalized['summary'] == 'Short'
    assert normalized['content'] == 'Plain'
    assert normalized['link'] == 'https://example.com/post'
    assert normalized['updated'] == datetime(2023, 12, 25, 10, 30, tzinfo=timezone.utc)
    assert normalized['published'] == datetime(2023, 12, 24, 9, 30, tzinfo=timezone.utc)
    assert normalized['author'] == 'Jane'


@pytest.mark.parametrize("link,expected", [
    (None, None),
    ('https://example.com/a', 'https://example.com/a'),
    ({'@_href': 'https://example.com/b'}, 'https://example.com/b'),
    ({'href': 'https://example.com/c'}, 'https://example.com/c'),
    ([{'@_rel': 'self', '@_href': 'https://example.com/self'}, {'@_href': 'https://example.com/d'}],
     'https://example.com/d'),
    ([{'@_rel': 'self', '@_href': 'https://example.com/self'}], 'https://example.com/self'),
])
def test_resolve_atom_link(link, expected):
    assert resolve_atom_link(link) == expected


def test_resolve_atom_link_with_custom_prefix():
    options = ParserOptions(attribute_prefix='$')
    assert resolve_atom_link({'$href': 'https://example.com/x'}, options) == 'https://example.com/x'


def test_rss_identity_priority():
    assert get_item_identity({'guid': 'g', 'link': 'l', 'title': 't'}, 'rss') == 'g'
    assert get_item_identity({'guid': {'@_isPermaLink': False, '#text': 'g2'}}, 'rss') == 'g2'
    assert get_item_identity({'link': 'l', 'title': 't'}, 'rss') == 'l'
    assert get_item_identity({'title': 't'}, 'rss') == 't'


def test_atom_identity_priority():
    assert get_item_identity({'id': 'urn:1', 'link': {'@_href': 'l'}}, 'atom') == 'urn:1'
    assert get_item_identity({'link': {'@_href': 'https://example.com/e'}}, 'atom') == 'https://example.com/e'
    assert get_item_identity({'title': {'@_type': 'text', '#text': 'Title'}}, 'atom') == 'Title'


def test_identity_falls_back_to_serialization():
    item = {'description': 'no identifying fields', 'category': 'misc'}
    identity = get_item_identity(item, 'rss')
    assert json.loads(identity) == item
    assert get_item_identity(dict(reversed(list(item.items()))), 'rss') == identity


def test_normalizer_uses_custom_transform():
    calls = []

    def transform(item, kind):
        calls.append(kind)
        return {'key': item['guid']}

    normalizer = ItemNormalizer(transform)
    assert normalizer.normalize({'guid': 'x'}, 'rss') == {'key': 'x'}
    assert calls == ['rss']


def test_normalizer_transform_errors_propagate():
    def transform(item, kind):
        raise ValueError("bad item")

    with pytest.raises(ValueError):
        ItemNormalizer(transform).normalize({'guid': 'x'}, 'rss')


def test_normalizer_defaults_by_kind():
    normalizer = ItemNormalizer()
    assert normalizer.normalize({'title': {'#text': 'A'}}, 'atom')['title'] == 'A'
    assert normalizer.normalize({'title': 'R'}, 'rss')['pubDate'] is None
