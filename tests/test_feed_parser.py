import pytest

from errors import FeedParsingError, UnsupportedFeedFormatError
from feed_parser import detect_feed_kind, parse_document, parse_feed
from models import ParserOptions
from utils import detect_polling_interval

RSS_TWO_ITEMS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:sy="http://purl.org/rss/1.0/modules/syndication/">
  <channel>
    <title>Example</title>
    <sy:updatePeriod>hourly</sy:updatePeriod>
    <sy:updateFrequency>2</sy:updateFrequency>
    <item><guid isPermaLink="false">a-1</guid><title>First</title></item>
    <item><guid>a-2</guid><title>Second</title></item>
  </channel>
</rss>"""

RSS_ONE_ITEM = """<rss version="2.0"><channel><title>Solo</title>
<item><title>Only</title><link>https://example.com/only</link></item>
</channel></rss>"""

ATOM_FEED = """<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Atom Example</title>
  <entry>
    <id>urn:uuid:1</id>
    <title type="text">Entry</title>
    <link rel="alternate" href="https://example.com/entry"/>
    <updated>2023-12-25T10:30:00Z</updated>
  </entry>
</feed>"""


def test_rss_detection_and_items():
    parsed = parse_feed(RSS_TWO_ITEMS)
    assert parsed.kind == 'rss'
    assert len(parsed.items) == 2
    assert parsed.items[0]['title'] == 'First'
    assert parsed.items[0]['guid'] == {'@_isPermaLink': False, '#text': 'a-1'}
    assert parsed.items[1]['guid'] == 'a-2'


def test_namespaced_channel_fields_are_kept():
    parsed = parse_feed(RSS_TWO_ITEMS)
    channel = parsed.tree['rss']['channel']
    assert channel['sy:updatePeriod'] == 'hourly'
    # Element text is not numerically coerced
    assert channel['sy:updateFrequency'] == '2'


def test_single_item_is_promoted_to_list():
    parsed = parse_feed(RSS_ONE_ITEM)
    assert isinstance(parsed.items, list)
    assert parsed.items[0]['link'] == 'https://example.com/only'


def test_atom_detection_and_entries():
    parsed = parse_feed(ATOM_FEED)
    assert parsed.kind == 'atom'
    entry = parsed.items[0]
    assert entry['id'] == 'urn:uuid:1'
    assert entry['title'] == {'@_type': 'text', '#text': 'Entry'}
    assert entry['link'] == {'@_rel': 'alternate', '@_href': 'https://example.com/entry'}


def test_channel_without_items():
    parsed = parse_feed("<rss><channel><title>Empty</title></channel></rss>")
    assert parsed.kind == 'rss'
    assert parsed.items == []


def test_rss_without_channel_fails():
    with pytest.raises(FeedParsingError):
        parse_feed('<rss version="2.0"><title>No channel</title></rss>', url='https://example.com/rss')


def test_unknown_root_fails():
    with pytest.raises(FeedParsingError):
        parse_feed("<html><body>Not a feed</body></html>")


@pytest.mark.parametrize("document", ["", "   ", "<rss><channel>", "not xml at all"])
def test_malformed_documents_fail(document):
    with pytest.raises(FeedParsingError):
        parse_feed(document)


def test_bytes_documents_are_accepted():
    parsed = parse_feed(RSS_ONE_ITEM.encode('utf-8'))
    assert len(parsed.items) == 1


def test_expected_kind_mismatch():
    with pytest.raises(UnsupportedFeedFormatError) as exc_info:
        parse_feed(ATOM_FEED, expected_kind='rss', url='https://example.com/atom')
    assert exc_info.value.expected == 'rss'
    assert exc_info.value.detected == 'atom'


def test_expected_kind_match():
    assert parse_feed(RSS_ONE_ITEM, expected_kind='rss').kind == 'rss'


def test_parser_options():
    options = ParserOptions(attribute_prefix='$', text_node_name='$text', parse_attribute_value=False)
    tree = parse_document(RSS_TWO_ITEMS, options)
    guid = tree['rss']['channel']['item'][0]['guid']
    assert guid == {'$isPermaLink': 'false', '$text': 'a-1'}

    tree = parse_document(RSS_TWO_ITEMS, ParserOptions(ignore_attributes=True, ignore_namespace=True))
    channel = tree['rss']['channel']
    assert channel['updatePeriod'] == 'hourly'
    assert channel['item'][0]['guid'] == 'a-1'


def test_detect_feed_kind():
    assert detect_feed_kind({'feed': {}}) == 'atom'
    assert detect_feed_kind({'rss': {}}) == 'rss'
    assert detect_feed_kind({'channel': {}}) == 'rss'
    assert detect_feed_kind({'html': {}}) is None


def test_str_document_with_legacy_encoding_declaration():
    document = ('<?xml version="1.0" encoding="ISO-8859-1"?>'
                '<rss><channel><title>T</title><item><title>Café déjà vu</title></item></channel></rss>')
    parsed = parse_feed(document)
    assert parsed.items[0]['title'] == 'Café déjà vu'

    parsed = parse_feed(document.encode('iso-8859-1'))
    assert parsed.items[0]['title'] == 'Café déjà vu'


def test_ignore_namespace_tree_still_drives_interval():
    tree = parse_document(RSS_TWO_ITEMS, ParserOptions(ignore_namespace=True))
    assert detect_polling_interval(tree) == 1_800_000
