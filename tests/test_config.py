import textwrap

from config import config, get_logger, load_feed_definitions
from models import HTTPOptions


def test_get_logger_namespace():
    assert get_logger("fetcher").name == "FeedSync.fetcher"


def test_config_defaults():
    summary = config.get_config_summary()
    assert summary["user_agent"] == config.USER_AGENT
    assert config.HTTP_TIMEOUT_MS > 0
    assert config.DEFAULT_POLLING_INTERVAL_MS > 0
    assert config.MAX_SEEN_ITEMS > 0


def test_load_feed_definitions(tmp_path):
    feeds_file = tmp_path / "feeds.yaml"
    feeds_file.write_text(textwrap.dedent("""
        feeds:
          hn:
            url: https://news.ycombinator.com/rss
            kind: rss
            polling_interval_ms: 600000
            timeout_ms: 10000
            headers:
              X-Test: "1"
          blog:
            url: https://example.com/atom.xml
            start_polling: false
          broken:
            kind: atom
    """))

    definitions = load_feed_definitions(str(feeds_file))

    assert set(definitions) == {"hn", "blog"}
    assert definitions["hn"] == {
        "feed_url": "https://news.ycombinator.com/rss",
        "expected_kind": "rss",
        "polling_interval": 600000,
        "http_options": {"timeout": 10000, "headers": {"X-Test": "1"}},
    }
    assert definitions["blog"] == {"feed_url": "https://example.com/atom.xml", "start_polling": False}


def test_load_feed_definitions_missing_file(tmp_path):
    assert load_feed_definitions(str(tmp_path / "missing.yaml")) == {}


def test_load_feed_definitions_without_feeds_section(tmp_path):
    feeds_file = tmp_path / "feeds.yaml"
    feeds_file.write_text("other: true\n")
    assert load_feed_definitions(str(feeds_file)) == {}


def test_http_options_headers(monkeypatch):
    monkeypatch.setattr(config, 'USER_AGENT', 'TestAgent/2.0')
    options = HTTPOptions(timeout=5000, headers={'Accept': 'application/rss+xml'})
    headers = options.request_headers()
    assert headers['User-Agent'] == 'TestAgent/2.0'
    assert headers['Accept'] == 'application/rss+xml'
    assert HTTPOptions(user_agent='Custom/1').request_headers()['User-Agent'] == 'Custom/1'
