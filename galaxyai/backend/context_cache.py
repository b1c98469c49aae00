"""Context cache: bounded, TTL-expiring cache of scene snapshots and projections.

Snapshots are held through weak references: the cache speeds up access
while something else keeps a snapshot alive, but never keeps one alive
on its own.  Projections (plain dict trees) are held directly.

An entry is only returned while all of these hold:
  - its age is within the TTL,
  - the snapshot is still reachable,
  - the caller's current object count equals the count recorded at insert,
  - the caller's scene revision (when both sides carry one) is unchanged.
Otherwise the entry is purged and the read is a miss.  Projection keys
carry the object count and, when known, the scene revision.

Usage::

    cache = ContextCache(ttl_seconds=300)
    cache.put("FloaterLandGalaxy", None, snapshot)
    snap = cache.get("FloaterLandGalaxy", None, expected_count=len(snapshot))
"""

from __future__ import annotations

import itertools
import logging
import threading
import time
import weakref
from typing import Any, Callable, Optional

from .scene_model import SceneSnapshot

logger = logging.getLogger("galaxyai.cache")

DEFAULT_PARAMS = {
    "max_contexts": 10,
    "max_projections": 50,
    "ttl_seconds": 300.0,
}

FULL_SCOPE = "full"
BYTES_PER_OBJECT = 100
BYTES_PER_CONTEXT = 1000
BYTES_PER_PROJECTION = 500


class _ContextEntry:
    __slots__ = ("ref", "created_at", "last_access", "object_count", "revision")

    def __init__(self, snapshot: SceneSnapshot, created_at: float, access: int,
                 revision: Optional[int]) -> None:
        self.ref = weakref.ref(snapshot)
        self.created_at = created_at
        self.last_access = access
        self.object_count = snapshot.object_count
        self.revision = revision


class _ProjectionEntry:
    __slots__ = ("projection", "created_at", "last_access")

    def __init__(self, projection: dict, created_at: float, access: int) -> None:
        self.projection = projection
        self.created_at = created_at
        self.last_access = access


def context_key(scope: str, sub_scope: Optional[str] = None) -> str:
    return f"{scope}:{sub_scope or FULL_SCOPE}"


def projection_key(level: Any, scope: str, sub_scope: Optional[str], object_count: int,
                   revision: Optional[int] = None) -> str:
    level_name = getattr(level, "value", level)
    key = f"{level_name}:{scope}:{sub_scope or FULL_SCOPE}:{object_count}"
    return key if revision is None else f"{key}:r{revision}"


class ContextCache:
    """Thread-safe LRU/TTL cache for ``SceneSnapshot`` objects and their projections.

    Recency is tracked with one shared, monotonically increasing access
    counter stamped on every hit and every write; eviction removes the
    entry with the smallest stamp.

    Args:
        max_contexts: Maximum resident snapshot entries.
        max_projections: Maximum resident projection entries.
        ttl_seconds: Entry lifetime.
        clock: Monotonic time source, replaceable in tests.
    """

    def __init__(
        self,
        max_contexts: int = DEFAULT_PARAMS["max_contexts"],
        max_projections: int = DEFAULT_PARAMS["max_projections"],
        ttl_seconds: float = DEFAULT_PARAMS["ttl_seconds"],
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_contexts < 1 or max_projections < 1:
            raise ValueError("Cache capacities must be at least 1")
        self.max_contexts = max_contexts
        self.max_projections = max_projections
        self.ttl_seconds = ttl_seconds
        self._clock = clock

        self._lock = threading.RLock()
        self._counter = itertools.count(1)
        self._contexts: dict[str, _ContextEntry] = {}
        self._projections: dict[str, _ProjectionEntry] = {}
        self._total_accesses = 0
        self._hits = 0
        self._misses = 0

    # ── Snapshots ────────────────────────────────────────────

    def get(
        self,
        scope: str,
        sub_scope: Optional[str],
        expected_count: int,
        revision: Optional[int] = None,
    ) -> Optional[SceneSnapshot]:
        """Return the cached snapshot, or ``None`` if absent or no longer valid."""
        key = context_key(scope, sub_scope)
        with self._lock:
            self._total_accesses += 1
            entry = self._contexts.get(key)
            if entry is None:
                self._misses += 1
                return None

            reason = None
            snapshot = entry.ref()
            if self._expired(entry.created_at):
                reason = "expired"
            elif snapshot is None:
                reason = "collected"
            elif entry.object_count != expected_count:
                reason = f"count {entry.object_count} != {expected_count}"
            elif revision is not None and entry.revision is not None and revision != entry.revision:
                reason = f"revision {entry.revision} != {revision}"

            if reason is not None:
                del self._contexts[key]
                self._misses += 1
                logger.debug("Context %s invalid (%s); purged", key, reason)
                return None

            entry.last_access = next(self._counter)
            self._hits += 1
            return snapshot

    def put(
        self,
        scope: str,
        sub_scope: Optional[str],
        snapshot: SceneSnapshot,
        revision: Optional[int] = None,
    ) -> None:
        key = context_key(scope, sub_scope)
        with self._lock:
            self._sweep()
            if key not in self._contexts and len(self._contexts) >= self.max_contexts:
                self._evict_lru(self._contexts, "context")
            self._contexts[key] = _ContextEntry(
                snapshot, self._clock(), next(self._counter), revision
            )
            logger.debug("Cached context %s (%d objects)", key, snapshot.object_count)

    # ── Projections ──────────────────────────────────────────

    def get_projection(
        self, level: Any, scope: str, sub_scope: Optional[str], object_count: int,
        revision: Optional[int] = None,
    ) -> Optional[dict]:
        key = projection_key(level, scope, sub_scope, object_count, revision)
        with self._lock:
            self._total_accesses += 1
            entry = self._projections.get(key)
            if entry is None:
                self._misses += 1
                return None
            if self._expired(entry.created_at):
                del self._projections[key]
                self._misses += 1
                logger.debug("Projection %s expired; purged", key)
                return None
            entry.last_access = next(self._counter)
            self._hits += 1
            return entry.projection

    def put_projection(
        self,
        level: Any,
        scope: str,
        sub_scope: Optional[str],
        object_count: int,
        projection: dict,
        revision: Optional[int] = None,
    ) -> None:
        key = projection_key(level, scope, sub_scope, object_count, revision)
        with self._lock:
            self._sweep()
            if key not in self._projections and len(self._projections) >= self.max_projections:
                self._evict_lru(self._projections, "projection")
            self._projections[key] = _ProjectionEntry(
                projection, self._clock(), next(self._counter)
            )

    # ── Invalidation ─────────────────────────────────────────

    def invalidate_scope(self, scope: str) -> int:
        """Drop every snapshot and projection belonging to *scope*.

        Returns:
            Number of entries removed.
        """
        prefix, token = f"{scope}:", f":{scope}:"
        with self._lock:
            ctx_keys = [k for k in self._contexts if k.startswith(prefix)]
            proj_keys = [k for k in self._projections if token in k]
            for k in ctx_keys:
                del self._contexts[k]
            for k in proj_keys:
                del self._projections[k]
        removed = len(ctx_keys) + len(proj_keys)
        logger.info("Invalidated scope %s (%d entries)", scope, removed)
        return removed

    def invalidate_sub_scope(self, scope: str, sub_scope: str) -> int:
        """Drop one zone's snapshot, the whole-galaxy snapshot, and the galaxy's projections."""
        token = f":{scope}:"
        with self._lock:
            removed = 0
            for key in {context_key(scope, sub_scope), context_key(scope, None)}:
                if self._contexts.pop(key, None) is not None:
                    removed += 1
            proj_keys = [k for k in self._projections if token in k]
            for k in proj_keys:
                del self._projections[k]
            removed += len(proj_keys)
        logger.info("Invalidated zone %s/%s (%d entries)", scope, sub_scope, removed)
        return removed

    def clear(self) -> None:
        with self._lock:
            self._contexts.clear()
            self._projections.clear()
        logger.info("Context cache cleared")

    # ── Introspection ────────────────────────────────────────

    @property
    def context_count(self) -> int:
        with self._lock:
            return len(self._contexts)

    @property
    def projection_count(self) -> int:
        with self._lock:
            return len(self._projections)

    def last_access_of(self, scope: str, sub_scope: Optional[str] = None) -> Optional[int]:
        with self._lock:
            entry = self._contexts.get(context_key(scope, sub_scope))
            return entry.last_access if entry else None

    def statistics(self) -> dict:
        with self._lock:
            memory = 0
            for entry in self._contexts.values():
                if entry.ref() is not None:
                    memory += entry.object_count * BYTES_PER_OBJECT + BYTES_PER_CONTEXT
            memory += len(self._projections) * BYTES_PER_PROJECTION
            return {
                "context_cache_size": len(self._contexts),
                "projection_cache_size": len(self._projections),
                "max_context_cache_size": self.max_contexts,
                "max_projection_cache_size": self.max_projections,
                "ttl_seconds": self.ttl_seconds,
                "total_accesses": self._total_accesses,
                "hits": self._hits,
                "misses": self._misses,
                "estimated_memory_bytes": memory,
            }

    # ── Internals (caller holds the lock) ────────────────────

    def _expired(self, created_at: float) -> bool:
        return self._clock() - created_at > self.ttl_seconds

    def _sweep(self) -> None:
        dead = [k for k, e in self._contexts.items()
                if self._expired(e.created_at) or e.ref() is None]
        for k in dead:
            del self._contexts[k]
        stale = [k for k, e in self._projections.items() if self._expired(e.created_at)]
        for k in stale:
            del self._projections[k]
        if dead or stale:
            logger.debug("Swept %d contexts, %d projections", len(dead), len(stale))

    @staticmethod
    def _evict_lru(entries: dict, label: str) -> None:
        if not entries:
            return
        victim = min(entries, key=lambda k: entries[k].last_access)
        del entries[victim]
        logger.debug("Evicted LRU %s %s", label, victim)
