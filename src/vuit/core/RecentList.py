# vuit/core/RecentList.py
"""RecentList Module
=================
Bounded most-recently-used list of opened files.

Opening a file pushes it to the front. Re-opening a file that is already in the
list moves it to the front instead of inserting a duplicate. When the bound is
exceeded the oldest entry is evicted.
"""

import logging
from typing import Iterable, Iterator, Optional


class RecentList:
    """Most-recently-used paths, most recent first."""

    DEFAULT_LIMIT = 5

    def __init__(self, limit: int = DEFAULT_LIMIT, entries: Optional[Iterable[str]] = None) -> None:
        if limit < 1:
            raise ValueError(f"RecentList limit must be positive, got {limit}")
        self.limit = limit
        self._items: list[str] = []
        for entry in reversed(list(entries or [])):
            self.push(entry)

    def push(self, path: str) -> None:
        """Moves `path` to the front, evicting the oldest entries past the bound."""
        if path in self._items:
            self._items.remove(path)
        self._items.insert(0, path)
        del self._items[self.limit:]
        logging.debug(f"RecentList: pushed '{path}', size {len(self._items)}")

    def remove(self, path: str) -> bool:
        if path not in self._items:
            return False
        self._items.remove(path)
        return True

    def items(self) -> list[str]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._items))

    def __contains__(self, path: object) -> bool:
        return path in self._items
