# vuit/core/FilterEngine.py
"""FilterEngine Module
===================
Per-window filter state and the built-in substring matcher.

Every query change is given a new generation number from a process-wide
monotonic counter. Background results carry the generation they were computed
for and are applied only while that generation is still the current one, so a
slow answer to an older query can never overwrite the answer to a newer one.

The built-in matcher is used when no external fuzzy matcher is installed. It is
smart-case (case-insensitive unless the query contains an uppercase letter) and
keeps the original order of the backing list.
"""

import itertools
import logging
import threading
from typing import Iterable, Optional


_generation_counter = itertools.count(1)
_generation_lock = threading.Lock()


def next_generation() -> int:
    """Returns a new, strictly increasing generation number."""
    with _generation_lock:
        return next(_generation_counter)


def _is_case_sensitive(query: str) -> bool:
    return any(ch.isupper() for ch in query)


def matches(entry: str, query: str) -> bool:
    """Substring containment with smart-case."""
    if not query:
        return True
    if _is_case_sensitive(query):
        return query in entry
    return query.lower() in entry.lower()


def substring_filter(entries: Iterable[str], query: str) -> list[str]:
    """Entries containing `query`, in original order. Empty query returns everything."""
    if not query:
        return list(entries)
    if _is_case_sensitive(query):
        return [e for e in entries if query in e]
    needle = query.lower()
    return [e for e in entries if needle in e.lower()]


class FilterState:
    """Query, backing list and filtered view of one list window.

    Attributes:
        query (str): The current free-text query.
        backing (list[str]): The full list the window shows when the query is empty.
        filtered (list[str]): The currently displayed subsequence of `backing`.
        generation (int): Generation of the most recent query change.
        pending (bool): True while a background result for `generation` is outstanding.
    """

    def __init__(self, entries: Optional[Iterable[str]] = None) -> None:
        self.query: str = ""
        self.backing: list[str] = list(entries or [])
        self.filtered: list[str] = list(self.backing)
        self.generation: int = next_generation()
        self.pending: bool = False

    def set_backing(self, entries: Iterable[str]) -> None:
        """Replaces the backing list. The caller is expected to re-filter afterwards."""
        self.backing = list(entries)
        if not self.query:
            self.filtered = list(self.backing)
        else:
            # Drop entries that vanished; the next filter pass re-ranks.
            present = set(self.backing)
            self.filtered = [e for e in self.filtered if e in present]

    def begin(self, query: str) -> int:
        """Records a new query and returns its generation.

        An empty query resolves immediately to the full backing list.
        """
        self.query = query
        self.generation = next_generation()
        if not query:
            self.filtered = list(self.backing)
            self.pending = False
        else:
            self.pending = True
        return self.generation

    def apply_sync(self, generation: int) -> None:
        """Resolves `generation` in-thread with the substring matcher."""
        self.apply(generation, substring_filter(self.backing, self.query))

    def apply(self, generation: int, results: Iterable[str]) -> bool:
        """Applies background results if `generation` is still current.

        Returns:
            bool: True if the results were applied, False if they were stale.
        """
        if generation != self.generation:
            logging.debug(
                "FilterState: discarding stale result (gen %d, current %d)",
                generation,
                self.generation,
            )
            return False
        present = set(self.backing)
        seen: set[str] = set()
        filtered: list[str] = []
        for entry in results:
            if entry in present and entry not in seen:
                seen.add(entry)
                filtered.append(entry)
        self.filtered = filtered
        self.pending = False
        return True
