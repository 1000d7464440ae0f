#!/usr/bin/env python3
"""
Topic → movie/tv/unknown classification

Uses the topic category store as a cache and falls back to a TMDb
multi-search on a miss. Blank topics are "unknown" without touching the store.
"""

import logging
from typing import Dict, Iterable

from mediathek.cache import ResolutionCache
from mediathek.models import MediaCategory, TopicCategoryRecord
from mediathek.store import TopicCategoryStore

logger = logging.getLogger(__name__)


class CategoryClassifier:
    """Resolve MediathekView topics to a media category"""

    def __init__(self, store: TopicCategoryStore, metadata_search):
        self.store = store
        self.metadata_search = metadata_search
        self.cache = ResolutionCache(
            store,
            resolver=self._search_topic,
            value_of=lambda record: record.category,
        )

    def _search_topic(self, topic: str) -> TopicCategoryRecord:
        result = self.metadata_search.search_multi(topic)
        return TopicCategoryRecord(topic=topic, category=result.media_type, tmdb_id=result.tmdb_id)

    def classify(self, topic: str) -> MediaCategory:
        if not topic or not topic.strip():
            return MediaCategory.UNKNOWN
        return self.cache.resolve(topic)

    def classify_batch(self, topics: Iterable[str]) -> Dict[str, MediaCategory]:
        """
        Classify many topics with one store query and parallel TMDb lookups

        Blank topics map to UNKNOWN and are never looked up.
        """
        topics = list(topics)
        results = {topic: MediaCategory.UNKNOWN for topic in topics if not topic or not topic.strip()}
        results.update(self.cache.resolve_many(t for t in topics if t and t.strip()))
        logger.debug(f"Classified {len(results)} distinct topics")
        return results

    def get_cache_stats(self) -> Dict:
        return self.cache.get_cache_stats()
