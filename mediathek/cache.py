#!/usr/bin/env python3
"""
Cache-aside resolution over a persistent record store

resolve(key): store lookup, falling back to the external resolver on a miss
and persisting its record with a plain create.

resolve_many(keys): one store lookup for all distinct keys, then the misses
are resolved concurrently and persisted with upsert, so a caller racing on
the same key gets the stored record instead of a DuplicateKeyError.

Within one process each missing key has at most one resolver call in flight;
later callers for that key wait on the running call. Nothing is memoized
beyond the store itself.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Dict, Generic, Iterable, TypeVar

from mediathek.errors import DuplicateKeyError
from mediathek.store import JsonRecordStore

logger = logging.getLogger(__name__)

R = TypeVar('R')
V = TypeVar('V')

DEFAULT_MAX_WORKERS = 8


class ResolutionCache(Generic[R, V]):
    """Generic cache-aside primitive keyed by string"""

    def __init__(self, store: JsonRecordStore[R],
                 resolver: Callable[[str], R],
                 value_of: Callable[[R], V],
                 max_workers: int = DEFAULT_MAX_WORKERS):
        self.store = store
        self.resolver = resolver
        self.value_of = value_of
        self.max_workers = max_workers
        self._lock = threading.Lock()
        self._in_flight: Dict[str, Future] = {}
        self.hits = 0
        self.misses = 0

    def resolve(self, key: str) -> V:
        cached = self.store.find(key)
        if cached is not None:
            self.hits += 1
            logger.debug(f"Cache hit: {key!r}")
            return self.value_of(cached)

        self.misses += 1
        logger.debug(f"Cache miss: {key!r} - resolving")
        return self._resolve_missing(key, self.store.create)

    def resolve_many(self, keys: Iterable[str]) -> Dict[str, V]:
        unique_keys = list(dict.fromkeys(keys))
        results: Dict[str, V] = {}

        for key, record in self.store.find_many(unique_keys).items():
            results[key] = self.value_of(record)
        self.hits += len(results)

        missing = [key for key in unique_keys if key not in results]
        if not missing:
            return results

        self.misses += len(missing)
        logger.debug(f"Resolving {len(missing)} uncached keys ({len(results)} cache hits)")

        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(missing))) as pool:
            futures = {key: pool.submit(self._resolve_missing, key, self.store.upsert)
                       for key in missing}
        for key, future in futures.items():
            results[key] = future.result()

        return results

    def _resolve_missing(self, key: str, write: Callable[[R], R]) -> V:
        """Run the resolver for key, or wait for the call already running"""
        with self._lock:
            pending = self._in_flight.get(key)
            owner = pending is None
            if owner:
                pending = Future()
                self._in_flight[key] = pending

        if not owner:
            logger.debug(f"Joining in-flight resolution for {key!r}")
            try:
                return pending.result()
            except DuplicateKeyError:
                # The owner lost a create race, so the record is stored
                return self.value_of(self.store.find(key))

        try:
            # An earlier owner may have finished since our store lookup
            stored = self.store.find(key)
            if stored is None:
                stored = write(self.resolver(key))
            else:
                logger.debug(f"Resolved by an earlier caller: {key!r}")
            value = self.value_of(stored)
        except Exception as e:
            pending.set_exception(e)
            raise
        else:
            pending.set_result(value)
            return value
        finally:
            with self._lock:
                del self._in_flight[key]

    def get_cache_stats(self) -> Dict:
        total = self.hits + self.misses
        hit_rate = (self.hits / total * 100) if total > 0 else 0

        return {
            'hits': self.hits,
            'misses': self.misses,
            'total_queries': total,
            'hit_rate': hit_rate,
            'cache_size': len(self.store),
        }
