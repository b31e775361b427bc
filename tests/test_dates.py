from datetime import datetime, timezone

from dates import parse_feed_date


def test_rfc3339_with_z_suffix():
    parsed = parse_feed_date("2023-12-25T10:30:00Z")
    assert parsed == datetime(2023, 12, 25, 10, 30, tzinfo=timezone.utc)
    assert parsed.tzinfo is not None


def test_rfc3339_with_milliseconds_and_offset():
    parsed = parse_feed_date("2023-12-25T12:30:00.250+02:00")
    assert parsed == datetime(2023, 12, 25, 10, 30, 0, 250000, tzinfo=timezone.utc)


def test_rfc2822_gmt_and_numeric_offset():
    assert parse_feed_date("Mon, 25 Dec 2023 10:30:00 GMT") == datetime(2023, 12, 25, 10, 30, tzinfo=timezone.utc)
    assert parse_feed_date("Mon, 25 Dec 2023 05:30:00 -0500") == datetime(2023, 12, 25, 10, 30, tzinfo=timezone.utc)


def test_same_instant_in_both_formats_is_equal():
    rss = parse_feed_date("Mon, 25 Dec 2023 15:30:00 +0500")
    atom = parse_feed_date("2023-12-25T10:30:00Z")
    assert rss == atom
    assert rss.timestamp() == atom.timestamp()


def test_unknown_month_is_rejected():
    assert parse_feed_date("Mon, 25 Foo 2023 10:30:00 GMT") is None


def test_invalid_components_are_rejected():
    assert parse_feed_date("2023-02-30T10:30:00Z") is None


def test_lenient_fallbacks():
    expected = datetime(2023, 12, 25, 10, 30, tzinfo=timezone.utc)
    assert parse_feed_date("2023-12-25 10:30:00") == expected
    assert parse_feed_date("Invalid, 25 Dec 2023 10:30:00 GMT") == expected


def test_unparseable_and_empty_input():
    assert parse_feed_date("not a date") is None
    assert parse_feed_date("") is None
    assert parse_feed_date("   ") is None
    assert parse_feed_date(None) is None


def test_datetime_passes_through():
    value = datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert parse_feed_date(value) is value
