"""In-memory memoization of version lookups."""

from __future__ import annotations

import structlog

from github_ci.actions.models import CacheStats, VersionKey, VersionResult

log = structlog.get_logger("github_ci.cache")


class ResultCache:
    """Two lookup tables, one per key shape, with lifetime hit/miss counters.

    Entries are never evicted: a cache lives for a single command run.
    """

    def __init__(self) -> None:
        self._constrained: dict[VersionKey, VersionResult] = {}
        self._unconstrained: dict[VersionKey, VersionResult] = {}
        self._hits = 0
        self._misses = 0

    # ── lookups ────────────────────────────────────────────────────────────

    def get_constrained(self, key: VersionKey) -> VersionResult | None:
        return self._get(self._constrained, key)

    def get_unconstrained(self, key: VersionKey) -> VersionResult | None:
        return self._get(self._unconstrained, key)

    def set_constrained(self, key: VersionKey, result: VersionResult) -> bool:
        return self._set(self._constrained, key, result)

    def set_unconstrained(self, key: VersionKey, result: VersionResult) -> bool:
        return self._set(self._unconstrained, key, result)

    # ── bookkeeping ────────────────────────────────────────────────────────

    def clear(self) -> None:
        """Drop all entries. Counters describe lifetime usage and are kept."""
        self._constrained.clear()
        self._unconstrained.clear()

    def stats(self) -> CacheStats:
        return CacheStats(hits=self._hits, misses=self._misses)

    def __len__(self) -> int:
        return len(self._constrained) + len(self._unconstrained)

    # ── internal ───────────────────────────────────────────────────────────

    def _get(self, table: dict[VersionKey, VersionResult], key: VersionKey) -> VersionResult | None:
        result = table.get(key)
        if result is None:
            self._misses += 1
            return None
        self._hits += 1
        log.debug("cache.hit", key=str(key), error=result.is_error)
        return result

    @staticmethod
    def _set(table: dict[VersionKey, VersionResult], key: VersionKey, result: VersionResult) -> bool:
        """Store *result* unless it wraps a possibly transient failure."""
        if not result.cacheable:
            log.debug("cache.skip_transient", key=str(key), error=str(result.error))
            return False
        table[key] = result
        return True
