#!/usr/bin/env python3
"""
Test suite for mediathek/cache.py — cache-aside resolution
"""

import logging
import threading
import time
import pytest
import sys
from pathlib import Path
from unittest.mock import MagicMock

sys.path.insert(0, str(Path(__file__).parent.parent))

from mediathek.cache import ResolutionCache
from mediathek.errors import DuplicateKeyError
from mediathek.models import MediaCategory, TopicCategoryRecord
from mediathek.store import TopicCategoryStore


def make_cache(store=None, resolver=None):
    store = store if store is not None else TopicCategoryStore()
    resolver = resolver or MagicMock(
        side_effect=lambda topic: TopicCategoryRecord(topic, MediaCategory.SERIES))
    return ResolutionCache(store, resolver=resolver, value_of=lambda r: r.category), resolver


class TestResolve:

    def test_miss_resolves_and_persists(self):
        cache, resolver = make_cache()
        assert cache.resolve("Tatort") == MediaCategory.SERIES
        resolver.assert_called_once_with("Tatort")
        assert cache.store.find("Tatort") is not None

    def test_hit_skips_resolver(self):
        store = TopicCategoryStore()
        store.create(TopicCategoryRecord("Tatort", MediaCategory.MOVIE))
        cache, resolver = make_cache(store)

        assert cache.resolve("Tatort") == MediaCategory.MOVIE
        resolver.assert_not_called()

    def test_resolver_error_propagates_without_write(self):
        cache, _ = make_cache(resolver=MagicMock(side_effect=RuntimeError("TMDb down")))
        with pytest.raises(RuntimeError):
            cache.resolve("Tatort")
        assert cache.store.find("Tatort") is None

    def test_single_key_path_uses_plain_create(self):
        store = MagicMock()
        store.find.return_value = None
        store.create.side_effect = DuplicateKeyError("Tatort")
        cache, _ = make_cache(store)

        with pytest.raises(DuplicateKeyError):
            cache.resolve("Tatort")


class TestResolveMany:

    def test_duplicates_resolved_once(self):
        cache, resolver = make_cache()
        results = cache.resolve_many(["Tatort", "Tatort", "Tagesschau", "Tatort"])

        assert results == {"Tatort": MediaCategory.SERIES, "Tagesschau": MediaCategory.SERIES}
        assert resolver.call_count == 2

    def test_one_store_query_for_all_keys(self):
        store = MagicMock(wraps=TopicCategoryStore())
        store.create(TopicCategoryRecord("a", MediaCategory.MOVIE))
        cache, _ = make_cache(store)
        cache.resolve_many(["a", "b", "c"])

        store.find_many.assert_called_once()
        # Only keys about to be resolved are looked up again
        assert sorted(c.args[0] for c in store.find.call_args_list) == ["b", "c"]

    def test_only_missing_keys_resolved(self):
        store = TopicCategoryStore()
        store.create(TopicCategoryRecord("Tatort", MediaCategory.MOVIE))
        cache, resolver = make_cache(store)

        results = cache.resolve_many(["Tatort", "Tagesschau"])
        assert results["Tatort"] == MediaCategory.MOVIE
        resolver.assert_called_once_with("Tagesschau")

    def test_upsert_returns_winning_record(self):
        """A record written by someone else between lookup and write wins"""
        store = TopicCategoryStore()

        def racing_resolver(topic):
            store.create(TopicCategoryRecord(topic, MediaCategory.MOVIE))
            return TopicCategoryRecord(topic, MediaCategory.SERIES)

        cache, _ = make_cache(store, racing_resolver)
        assert cache.resolve_many(["Tatort"]) == {"Tatort": MediaCategory.MOVIE}

    def test_concurrent_callers_share_in_flight_resolution(self, caplog):
        caplog.set_level(logging.DEBUG, logger="mediathek.cache")
        release = threading.Event()
        started = threading.Event()
        calls = []

        def slow_resolver(topic):
            calls.append(topic)
            started.set()
            release.wait(5)
            return TopicCategoryRecord(topic, MediaCategory.SERIES)

        cache, _ = make_cache(resolver=slow_resolver)
        results = {}

        first = threading.Thread(target=lambda: results.update(a=cache.resolve_many(["Tatort"])))
        first.start()
        assert started.wait(5)

        second = threading.Thread(
            target=lambda: results.update(b=cache.resolve_many(["Tatort", "Tatort"])))
        second.start()

        deadline = time.monotonic() + 5
        while not any("Joining in-flight" in r.getMessage() for r in caplog.records):
            assert time.monotonic() < deadline
            time.sleep(0.01)
        release.set()
        first.join(5)
        second.join(5)

        assert calls == ["Tatort"]
        assert results["a"] == results["b"] == {"Tatort": MediaCategory.SERIES}

    def test_caller_with_stale_lookup_does_not_resolve_again(self):
        """A batch whose store lookup predates another caller's write reuses it"""
        lookup_done = threading.Event()
        release = threading.Event()

        class SlowLookupStore(TopicCategoryStore):
            def find_many(self, keys):
                found = super().find_many(keys)
                if threading.current_thread().name == "late-caller":
                    lookup_done.set()
                    release.wait(5)
                return found

        cache, resolver = make_cache(SlowLookupStore())
        results = {}

        late = threading.Thread(target=lambda: results.update(late=cache.resolve_many(["Tatort"])),
                                name="late-caller")
        late.start()
        assert lookup_done.wait(5)

        assert cache.resolve_many(["Tatort"]) == {"Tatort": MediaCategory.SERIES}
        release.set()
        late.join(5)

        resolver.assert_called_once_with("Tatort")
        assert results["late"] == {"Tatort": MediaCategory.SERIES}

    def test_batch_caller_joining_failed_create_reads_store(self, caplog):
        caplog.set_level(logging.DEBUG, logger="mediathek.cache")
        store = TopicCategoryStore()
        release = threading.Event()
        started = threading.Event()

        def racing_resolver(topic):
            started.set()
            release.wait(5)
            store.create(TopicCategoryRecord(topic, MediaCategory.MOVIE))
            return TopicCategoryRecord(topic, MediaCategory.SERIES)

        cache, _ = make_cache(store, racing_resolver)
        errors = []

        def single_key():
            try:
                cache.resolve("Tatort")
            except DuplicateKeyError as e:
                errors.append(e)

        first = threading.Thread(target=single_key)
        first.start()
        assert started.wait(5)

        results = {}
        second = threading.Thread(target=lambda: results.update(cache.resolve_many(["Tatort"])))
        second.start()

        deadline = time.monotonic() + 5
        while not any("Joining in-flight" in r.getMessage() for r in caplog.records):
            assert time.monotonic() < deadline
            time.sleep(0.01)
        release.set()
        first.join(5)
        second.join(5)

        assert len(errors) == 1
        assert results == {"Tatort": MediaCategory.MOVIE}

    def test_in_flight_marker_cleared_after_failure(self):
        resolver = MagicMock(side_effect=[RuntimeError("TMDb down"),
                                          TopicCategoryRecord("Tatort", MediaCategory.SERIES)])
        cache, _ = make_cache(resolver=resolver)

        with pytest.raises(RuntimeError):
            cache.resolve_many(["Tatort"])
        assert cache.resolve_many(["Tatort"]) == {"Tatort": MediaCategory.SERIES}

    def test_cache_stats(self):
        cache, _ = make_cache()
        cache.resolve_many(["a", "b"])
        cache.resolve("a")

        stats = cache.get_cache_stats()
        assert stats['hits'] == 1
        assert stats['misses'] == 2
        assert stats['cache_size'] == 2
