#!/usr/bin/env python3
"""
In-memory keyed collection implementing the sink contract.

Writes are buffered between begin() and commit() and applied together, so
readers never observe half of a cycle. Readiness is exposed as an asyncio
event that mark_ready() sets.
"""

import asyncio
from typing import Any, Callable, Dict, Iterator, List, Optional

from config import get_logger
from errors import GetKeyRequiredError

logger = get_logger("collection")

WRITE_TYPES = ('insert', 'update', 'delete')


class FeedCollection:
    """Dict-backed sink for a feed sync engine.

    Args:
        get_key: Maps a value to its key; used when a write message has no key.
    """

    def __init__(self, get_key: Callable[[Any], Any]):
        if get_key is None or not callable(get_key):
            raise GetKeyRequiredError()
        self.get_key = get_key
        self._items: Dict[Any, Any] = {}
        self._pending: Optional[List[Dict[str, Any]]] = None
        self._ready = asyncio.Event()
        self.commits = 0

    def begin(self) -> None:
        if self._pending is not None:
            raise RuntimeError("A transaction is already open")
        self._pending = []

    def write(self, message: Dict[str, Any]) -> None:
        if self._pending is None:
            raise RuntimeError("write() called outside of begin()/commit()")
        if message.get('type') not in WRITE_TYPES:
            raise ValueError(f"Unknown write type: {message.get('type')!r}")
        self._pending.append(message)

    def commit(self) -> None:
        if self._pending is None:
            raise RuntimeError("commit() called without begin()")
        pending, self._pending = self._pending, None
        for message in pending:
            key = message['key'] if 'key' in message else self.get_key(message['value'])
            if message['type'] == 'delete':
                self._items.pop(key, None)
            else:
                self._items[key] = message['value']
        self.commits += 1
        logger.debug(f"Committed {len(pending)} writes; collection size {len(self._items)}")

    def mark_ready(self) -> None:
        self._ready.set()

    def is_ready(self) -> bool:
        return self._ready.is_set()

    async def wait_until_ready(self) -> None:
        await self._ready.wait()

    @property
    def size(self) -> int:
        return len(self._items)

    def get(self, key: Any, default: Any = None) -> Any:
        return self._items.get(key, default)

    def values(self) -> List[Any]:
        return list(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._items.values())

    def __contains__(self, key: Any) -> bool:
        return key in self._items
