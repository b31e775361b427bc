#!/usr/bin/env python3
"""
In-memory deduplication ledger.

Tracks every item identity seen by one feed engine together with the time it
was last seen and the hash of its tracked fields. The ledger is not
persisted; a restarted process re-inserts whatever the feed still carries.
"""

from typing import Any, Dict, Mapping, Optional

from config import get_logger
from models import SeenItemRecord
from utils import get_content_hash, now_ms

logger = get_logger("ledger")

NEW = 'new'
UPDATED = 'updated'
UNCHANGED = 'unchanged'


class DedupLedger:
    """Bounded map of identity -> SeenItemRecord with age and size eviction."""

    def __init__(self):
        self._records: Dict[str, SeenItemRecord] = {}

    def classify_hash(self, identity: str, content_hash: str) -> str:
        record = self._records.get(identity)
        if record is None:
            return NEW
        if record.content_hash != content_hash:
            return UPDATED
        return UNCHANGED

    def classify(self, identity: str, item: Mapping[str, Any]) -> str:
        """Classify an item as 'new', 'updated' or 'unchanged' without recording it."""
        return self.classify_hash(identity, get_content_hash(item))

    def record(self, identity: str, content_hash: str, now: Optional[float] = None) -> SeenItemRecord:
        """Create or refresh the record for an identity."""
        seen_at = now if now is not None else now_ms()
        record = self._records.get(identity)
        if record is None:
            record = SeenItemRecord(identity, seen_at, content_hash)
            self._records[identity] = record
        else:
            record.last_seen_at = seen_at
            record.content_hash = content_hash
        return record

    def evict(self, max_age: float, max_size: int, now: Optional[float] = None) -> int:
        """Drop records older than max_age ms, then keep only the max_size most recently seen.

        Returns:
            Number of records removed.
        """
        current = now if now is not None else now_ms()
        before = len(self._records)

        kept = {identity: record for identity, record in self._records.items()
                if current - record.last_seen_at < max_age}
        aged_out = before - len(kept)

        if len(kept) > max_size:
            newest = sorted(kept.values(), key=lambda r: r.last_seen_at, reverse=True)[:max_size]
            kept = {record.identity: record for record in newest}

        self._records = kept
        removed = before - len(kept)
        if removed:
            logger.debug(f"Evicted {removed} ledger entries ({aged_out} by age, {removed - aged_out} by size)")
        return removed

    def get(self, identity: str) -> Optional[SeenItemRecord]:
        return self._records.get(identity)

    def clear(self) -> None:
        self._records = {}

    def size(self) -> int:
        return len(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, identity: str) -> bool:
        return identity in self._records
