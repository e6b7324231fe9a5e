"""Generation tokens for superseding in-flight searches.

Every new search takes a fresh token. Results arriving for an older token are
stale and get dropped instead of replacing the current list.
"""

from __future__ import annotations

import threading

from loguru import logger

from core.models import HuntLocation


class SearchSession:
    """Tracks the latest search request and its accepted results."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._generation = 0
        self._query = ""
        self.locations: list[HuntLocation] = []

    def begin(self, query: str = "") -> int:
        """Start a new search and return its generation token."""
        with self._lock:
            self._generation += 1
            self._query = query
            return self._generation

    def accept(self, token: int, results: list[HuntLocation]) -> bool:
        """Store `results` if `token` is still current; return whether stored."""
        with self._lock:
            if token != self._generation:
                logger.info(
                    "Dropping stale search results (token {} < {})", token, self._generation
                )
                return False
            self.locations = list(results)
            logger.info("Accepted {} results for '{}'", len(results), self._query)
            return True
