from ledger import DedupLedger, NEW, UNCHANGED, UPDATED
from utils import get_content_hash


def test_classify_new_unchanged_updated():
    ledger = DedupLedger()
    item = {'title': 'Hello', 'link': 'https://example.com/1'}

    assert ledger.classify('id-1', item) == NEW
    ledger.record('id-1', get_content_hash(item), now=1000)
    assert ledger.classify('id-1', item) == UNCHANGED
    assert ledger.classify('id-1', {**item, 'title': 'Hello (edited)'}) == UPDATED
    assert ledger.classify('id-1', {**item, 'pubDate': 'later'}) == UNCHANGED


def test_classify_does_not_record():
    ledger = DedupLedger()
    ledger.classify('id-1', {'title': 'x'})
    assert ledger.size() == 0
    assert 'id-1' not in ledger


def test_record_refreshes_existing_entry():
    ledger = DedupLedger()
    ledger.record('id-1', 'aaa', now=1000)
    record = ledger.record('id-1', 'bbb', now=2000)
    assert len(ledger) == 1
    assert record.last_seen_at == 2000
    assert ledger.get('id-1').content_hash == 'bbb'


def test_evict_by_age():
    ledger = DedupLedger()
    ledger.record('old', 'h', now=0)
    ledger.record('recent', 'h', now=9_000)

    removed = ledger.evict(max_age=5_000, max_size=100, now=10_000)

    assert removed == 1
    assert 'old' not in ledger
    assert 'recent' in ledger


def test_evict_by_size_keeps_most_recently_seen():
    ledger = DedupLedger()
    for i in range(5):
        ledger.record(f'id-{i}', 'h', now=1_000 + i)

    removed = ledger.evict(max_age=1_000_000, max_size=2, now=2_000)

    assert removed == 3
    assert ledger.size() == 2
    assert 'id-3' in ledger and 'id-4' in ledger


def test_clear():
    ledger = DedupLedger()
    ledger.record('id-1', 'h')
    ledger.clear()
    assert ledger.size() == 0
