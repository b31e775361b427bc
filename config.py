#!/usr/bin/env python3
"""
Configuration for the feed sync engine.

Sets up process-wide logging, reads the environment defaults every engine
falls back to, and loads feed definitions from feeds.yaml. Per-feed values
are validated later by models.SyncConfiguration; this module only supplies
defaults and raw definitions.

Environment variables:
    LOG_LEVEL                    DEBUG, INFO, WARNING or ERROR (default INFO)
    LOG_TIMESTAMPS               'false' drops timestamps from log lines
    USER_AGENT                   Default User-Agent header (FeedSync/1.0)
    HTTP_TIMEOUT_MS              Default fetch timeout (30000)
    DEFAULT_POLLING_INTERVAL_MS  Interval when a feed gives no hints (300000)
    MAX_SEEN_ITEMS               Default ledger capacity (1000)
    FEEDS_CONFIG_PATH            Location of feeds.yaml
"""

import sys
from logging import DEBUG, ERROR, INFO, WARNING, StreamHandler, basicConfig, getLogger
from os import R_OK, access, environ, path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

LOGGER_ROOT = "FeedSync"
LOG_LEVELS = {"DEBUG": DEBUG, "INFO": INFO, "WARNING": WARNING, "ERROR": ERROR}

DEFAULT_USER_AGENT = "FeedSync/1.0"
DEFAULT_ACCEPT = "application/rss+xml, application/atom+xml, application/xml, text/xml"

BASE_DIR = path.dirname(path.abspath(__file__))
MAX_FEEDS_FILE_SIZE = 5 * 1024 * 1024


def _configure_logging():
    """Configure the root handler once; modules log through get_logger()."""
    level = LOG_LEVELS.get(environ.get("LOG_LEVEL", "INFO").upper(), INFO)
    fields = '%(name)s - %(levelname)s - %(message)s'
    if environ.get("LOG_TIMESTAMPS", "true").lower() != "false":
        fields = '%(asctime)s - ' + fields

    basicConfig(level=level, format=fields, handlers=[StreamHandler(sys.stdout)], force=True)

    # Azure SDK loggers are chatty at INFO
    azure_level = LOG_LEVELS.get(environ.get("AZURE_LOG_LEVEL", "WARNING").upper(), WARNING)
    for name in ("azure", "azure.core", "azure.monitor.opentelemetry.exporter"):
        getLogger(name).setLevel(azure_level)

    return getLogger(LOGGER_ROOT)


def get_logger(name: str):
    """Return the 'FeedSync.<name>' logger (e.g. get_logger("scheduler"))."""
    return getLogger(f"{LOGGER_ROOT}.{name}")


logger = _configure_logging()


class Config:
    """Process-wide defaults, read from the environment after an optional .env file."""

    def __init__(self):
        dotenv_path = path.join(BASE_DIR, '.env')
        if path.exists(dotenv_path):
            load_dotenv(dotenv_path)
            logger.info(f"Loaded environment variables from {dotenv_path}")
        self.reload()

    @staticmethod
    def _env_int(name: str, default: int) -> int:
        """Read a positive integer, falling back to the default with a warning."""
        raw = environ.get(name)
        if raw is None:
            return default
        try:
            value = int(raw)
        except ValueError:
            logger.warning(f"{name}={raw!r} is not an integer, using {default}")
            return default
        if value < 1:
            logger.warning(f"{name} must be positive, using {default}")
            return default
        return value

    def reload(self) -> None:
        """Re-read every setting from the environment."""
        self.USER_AGENT = environ.get("USER_AGENT", DEFAULT_USER_AGENT)
        # All durations are milliseconds, like SyncConfiguration
        self.HTTP_TIMEOUT_MS = self._env_int("HTTP_TIMEOUT_MS", 30000)
        self.DEFAULT_POLLING_INTERVAL_MS = self._env_int("DEFAULT_POLLING_INTERVAL_MS", 300000)
        self.MAX_SEEN_ITEMS = self._env_int("MAX_SEEN_ITEMS", 1000)
        self.FEEDS_CONFIG_PATH = environ.get("FEEDS_CONFIG_PATH", path.join(BASE_DIR, "feeds.yaml"))

    def get_config_summary(self) -> Dict[str, Any]:
        return {
            "user_agent": self.USER_AGENT,
            "http_timeout_ms": self.HTTP_TIMEOUT_MS,
            "default_polling_interval_ms": self.DEFAULT_POLLING_INTERVAL_MS,
            "max_seen_items": self.MAX_SEEN_ITEMS,
            "feeds_config_path": self.FEEDS_CONFIG_PATH,
            "telemetry_disabled": environ.get("DISABLE_TELEMETRY", "false").lower() == "true",
        }


def _read_feeds_file(file_path: str) -> Optional[Any]:
    """Load feeds.yaml, returning None (after logging why) if it cannot be used."""
    if not path.isfile(file_path):
        logger.warning(f"Feeds file not found at {file_path}")
        return None
    if not access(file_path, R_OK):
        logger.error(f"Feeds file {file_path} is not readable")
        return None
    size = path.getsize(file_path)
    if size > MAX_FEEDS_FILE_SIZE:
        logger.error(f"Feeds file {file_path} is {size} bytes, over the {MAX_FEEDS_FILE_SIZE} byte limit")
        return None
    try:
        with open(file_path, 'r') as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error(f"Invalid YAML in {file_path}: {e}")
    except OSError as e:
        logger.error(f"Could not read {file_path}: {e}")
    return None


# feeds.yaml key -> SyncConfiguration keyword
FEED_KEYS = {
    'url': 'feed_url',
    'kind': 'expected_kind',
    'polling_interval_ms': 'polling_interval',
    'max_seen_items': 'max_seen_items',
    'start_polling': 'start_polling',
}
# feeds.yaml key -> HTTPOptions keyword
HTTP_KEYS = {
    'timeout_ms': 'timeout',
    'headers': 'headers',
    'user_agent': 'user_agent',
}


def load_feed_definitions(file_path: Optional[str] = None) -> Dict[str, Dict[str, Any]]:
    """Load feed definitions from a feeds.yaml file.

    Expected layout::

        feeds:
          hn:
            url: https://news.ycombinator.com/rss
            kind: rss
            polling_interval_ms: 600000
            timeout_ms: 10000

    Args:
        file_path: Path to the file; defaults to FEEDS_CONFIG_PATH.

    Returns:
        Mapping of slug to SyncConfiguration keyword arguments. Entries
        without a url are skipped; a missing or unusable file yields {}.
    """
    feeds_path = file_path or config.FEEDS_CONFIG_PATH
    data = _read_feeds_file(feeds_path)
    feeds = data.get('feeds') if isinstance(data, dict) else None
    if not isinstance(feeds, dict):
        logger.warning(f"No 'feeds' mapping in {feeds_path}")
        return {}

    definitions: Dict[str, Dict[str, Any]] = {}
    for slug, entry in feeds.items():
        if not isinstance(entry, dict) or not entry.get('url'):
            logger.warning(f"Skipping feed '{slug}': a url is required")
            continue
        kwargs = {target: entry[key] for key, target in FEED_KEYS.items() if key in entry}
        http_options = {target: entry[key] for key, target in HTTP_KEYS.items() if key in entry}
        if http_options:
            kwargs['http_options'] = http_options
        definitions[str(slug)] = kwargs

    logger.info(f"Loaded {len(definitions)} feeds from {feeds_path}")
    return definitions


config = Config()
