"""Condition result cache, keyed by exact condition text."""

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Optional

logger = logging.getLogger("loot_conditions.cache")


@dataclass(frozen=True)
class CacheInfo:
    hits: int
    misses: int
    size: int


class ConditionCache:
    """
    Unbounded map from condition text to its evaluated result.

    Lookups are verbatim: differently formatted but equivalent conditions
    are cached separately.
    """

    def __init__(self):
        self._results: Dict[str, bool] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, condition: str) -> Optional[bool]:
        with self._lock:
            result = self._results.get(condition)
            if result is None:
                self._misses += 1
            else:
                self._hits += 1

        if result is None:
            logger.debug("condition_cache_miss", extra={"condition": condition})
        else:
            logger.debug("condition_cache_hit", extra={"condition": condition})
        return result

    def put(self, condition: str, result: bool) -> None:
        with self._lock:
            self._results[condition] = result

    def clear(self) -> None:
        with self._lock:
            self._results.clear()

    def info(self) -> CacheInfo:
        with self._lock:
            return CacheInfo(
                hits=self._hits, misses=self._misses, size=len(self._results)
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)

    def __contains__(self, condition: object) -> bool:
        with self._lock:
            return condition in self._results
