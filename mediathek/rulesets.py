#!/usr/bin/env python3
"""
In-memory topic → rulesets index

load() fetches the full ruleset collection from the remote manifest (GitHub),
falls back to the local snapshot file, adds rulesets from any extra sources
(e.g. the generated ruleset store) and swaps in a freshly built mapping. Each
topic's rulesets are sorted by ascending priority.

ensure_loaded() is the entry point for request handlers:
- index populated → kick off a background refresh-if-stale and return
- index empty     → run the initial load; concurrent callers share one load,
                    and a failed load can be retried by the next call
"""

import json
import logging
import threading
import time
from collections import defaultdict
from concurrent.futures import Future
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

import requests

from mediathek.constants import REFRESH_INTERVAL_SECONDS, USER_AGENT
from mediathek.errors import MediathekError, RulesetLoadError, TransportError
from mediathek.fetch import fetch_with_retry
from mediathek.models import Ruleset

logger = logging.getLogger(__name__)


def fetch_remote_rulesets(url: str, session: Optional[requests.Session] = None,
                          **retry_options) -> Optional[List[Dict]]:
    """Fetch the manifest document, None on any failure"""
    logger.info(f"Fetching rulesets from {url}")
    try:
        response = fetch_with_retry('GET', url, session=session,
                                    headers={'User-Agent': USER_AGENT}, **retry_options)
    except TransportError as e:
        logger.warning(f"Error fetching rulesets: {e}")
        return None

    if not response.ok:
        logger.warning(f"Ruleset fetch failed: {response.status_code}")
        return None

    try:
        rulesets = response.json()
    except ValueError as e:
        logger.warning(f"Ruleset manifest is not valid JSON: {e}")
        return None
    if not isinstance(rulesets, list):
        logger.warning("Ruleset manifest is not a list")
        return None

    logger.info(f"Fetched {len(rulesets)} rulesets from {url}")
    return rulesets


def load_local_rulesets(path: Path) -> List[Dict]:
    with open(path, 'r', encoding='utf-8') as f:
        rulesets = json.load(f)
    logger.info(f"Loaded {len(rulesets)} rulesets from local file {path}")
    return rulesets


class RulesetIndex:
    """Topic-keyed, priority-sorted view over all known rulesets"""

    def __init__(self, fetch_remote: Callable[[], Optional[List[Dict]]],
                 local_path: Path,
                 extra_sources: Iterable[Callable[[], List[Ruleset]]] = (),
                 refresh_interval: float = REFRESH_INTERVAL_SECONDS,
                 clock: Callable[[], float] = time.monotonic):
        self.fetch_remote = fetch_remote
        self.local_path = local_path
        self.extra_sources = list(extra_sources)
        self.refresh_interval = refresh_interval
        self.clock = clock

        self._by_topic: Dict[str, List[Ruleset]] = {}
        self._last_loaded: Optional[float] = None
        self._lock = threading.Lock()
        self._initial_load: Optional[Future] = None
        self._refresh_thread: Optional[threading.Thread] = None

    def _fetch_all(self) -> List[Ruleset]:
        raw = self.fetch_remote()
        if raw is None:
            logger.info("Falling back to local file")
            try:
                raw = load_local_rulesets(self.local_path)
            except (OSError, ValueError) as e:
                raise RulesetLoadError(f"Could not load rulesets from {self.local_path}: {e}") from e

        try:
            rulesets = [Ruleset.from_dict(entry) for entry in raw]
        except (KeyError, TypeError, ValueError) as e:
            raise RulesetLoadError(f"Malformed ruleset collection: {e}") from e

        for source in self.extra_sources:
            try:
                rulesets.extend(source())
            except MediathekError as e:
                raise RulesetLoadError(f"Could not read extra ruleset source: {e}") from e
        return rulesets

    @staticmethod
    def _build_index(rulesets: List[Ruleset]) -> Dict[str, List[Ruleset]]:
        grouped = defaultdict(list)
        for ruleset in rulesets:
            grouped[ruleset.topic].append(ruleset)
        return {topic: sorted(group, key=lambda r: r.priority) for topic, group in grouped.items()}

    def load(self):
        """Rebuild the index; on failure the previous index stays in place"""
        rulesets = self._fetch_all()
        by_topic = self._build_index(rulesets)

        # Readers only ever see a complete mapping
        self._by_topic = by_topic
        self._last_loaded = self.clock()
        logger.info(f"Indexed {len(rulesets)} rulesets for {len(by_topic)} topics")

    def is_stale(self) -> bool:
        if self._last_loaded is None:
            return True
        return self.clock() - self._last_loaded > self.refresh_interval

    def refresh_if_needed(self) -> bool:
        """Reload when the last successful load is older than the interval"""
        if not self.is_stale():
            return False
        logger.info("Refreshing rulesets (hourly update)")
        self.load()
        return True

    def _background_refresh(self):
        try:
            self.refresh_if_needed()
        except RulesetLoadError as e:
            logger.error(f"Background ruleset refresh failed: {e}")

    def ensure_loaded(self):
        if self.is_loaded():
            with self._lock:
                running = self._refresh_thread is not None and self._refresh_thread.is_alive()
                if not running and self.is_stale():
                    self._refresh_thread = threading.Thread(
                        target=self._background_refresh, name='ruleset-refresh', daemon=True)
                    self._refresh_thread.start()
            return

        with self._lock:
            # A load may have finished between the check above and here
            if self.is_loaded():
                return
            pending = self._initial_load
            owner = pending is None
            if owner:
                pending = Future()
                self._initial_load = pending

        if not owner:
            pending.result()
            return

        try:
            self.load()
        except Exception as e:
            pending.set_exception(e)
            raise
        else:
            pending.set_result(None)
        finally:
            with self._lock:
                self._initial_load = None

    def wait_for_refresh(self, timeout: Optional[float] = None):
        """Block until a background refresh started by ensure_loaded() is done"""
        thread = self._refresh_thread
        if thread is not None:
            thread.join(timeout)

    def rulesets_for_topic(self, topic: str) -> List[Ruleset]:
        return list(self._by_topic.get(topic, []))

    def rulesets_for_topic_and_external_id(self, topic: str, tvdb_id: int) -> List[Ruleset]:
        return [r for r in self.rulesets_for_topic(topic)
                if r.media is not None and r.media.media_tvdbId == tvdb_id]

    def all_topics(self) -> List[str]:
        return list(self._by_topic.keys())

    def is_loaded(self) -> bool:
        return len(self._by_topic) > 0
