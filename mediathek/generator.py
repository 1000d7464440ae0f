#!/usr/bin/env python3
"""
Generate rulesets for shows that no curated ruleset covers

Pipeline for one TVDB show:
1. Existing generated ruleset for the TVDB id → return it (never regenerate)
2. Search MediathekView by German name, falling back to the primary name
3. Pick the topic (mediathek.matcher)
4. Existing generated ruleset for that topic → return it (topic is the key)
5. Detect title format and synthesize patterns (mediathek.strategy)
6. Persist and return the new ruleset

"Nothing found" at any step is a normal outcome and returns None. Store
errors propagate.

Concurrent first-time generations for one topic are not locked against each
other; the store's unique topic key is what rejects the second create.
"""

import logging
from typing import List, Optional

from mediathek.constants import DEFAULT_FILTERS
from mediathek.models import CatalogItem, GeneratedRuleset, Ruleset, ShowMetadata
from mediathek.matcher import match_topic
from mediathek.store import GeneratedRulesetStore
from mediathek.strategy import detect_strategy, synthesize_patterns

logger = logging.getLogger(__name__)


class RulesetGenerator:
    """Synthesize and persist rulesets from MediathekView samples"""

    def __init__(self, store: GeneratedRulesetStore, catalog):
        self.store = store
        self.catalog = catalog

    def generate(self, tvdb_id: int, show: ShowMetadata) -> Optional[Ruleset]:
        logger.info(f"Attempting to generate ruleset for '{show.display_name}' (TVDB: {tvdb_id})")

        existing = self.store.find_by_external_id(tvdb_id)
        if existing:
            logger.info(f"Found existing ruleset for TVDB {tvdb_id}: topic='{existing.topic}'")
            return existing.to_ruleset()

        query = show.display_name
        logger.info(f"Searching MediathekView for: '{query}'")
        results = self.catalog.search(query)
        logger.info(f"MediathekView returned {len(results)} results")

        if not results and show.german_name and show.name != show.german_name:
            logger.info(f"Trying primary name: '{show.name}'")
            results = self.catalog.search(show.name)

        if not results:
            logger.info("No results found in MediathekView")
            return None

        return self._generate_from_results(tvdb_id, show, results)

    def _generate_from_results(self, tvdb_id: int, show: ShowMetadata,
                               results: List[CatalogItem]) -> Optional[Ruleset]:
        match = match_topic((item.topic for item in results), show)
        if match is None:
            logger.info("Could not find matching topic")
            return None

        existing = self.store.find(match.topic)
        if existing:
            if existing.tvdb_id != tvdb_id:
                logger.warning(
                    f"Topic '{match.topic}' exists with different TVDB id "
                    f"({existing.tvdb_id} vs {tvdb_id}), keeping existing ruleset"
                )
            return existing.to_ruleset()

        titles = [item.title for item in results if item.topic == match.topic]
        detection = detect_strategy(titles)
        patterns = synthesize_patterns(titles, detection.strategy, match.topic)

        logger.info(
            f"Creating new ruleset: topic='{match.topic}' ({match.match_pass} match), "
            f"strategy='{detection.strategy.value}', patterns={patterns.source}"
        )
        generated = self.store.create(GeneratedRuleset(
            topic=match.topic,
            tvdb_id=tvdb_id,
            show_name=show.name,
            german_name=show.german_name,
            matching_strategy=detection.strategy,
            filters=DEFAULT_FILTERS,
            episode_regex=patterns.episode_regex,
            season_regex=patterns.season_regex,
            title_regex_rules=patterns.title_regex_rules,
        ))

        logger.info(f"Created ruleset with ID: {generated.id}")
        return generated.to_ruleset()

    def all_generated(self) -> List[Ruleset]:
        return [record.to_ruleset() for record in self.store.all()]

    def generated_for_topic(self, topic: str) -> Optional[Ruleset]:
        record = self.store.find(topic)
        return record.to_ruleset() if record else None

    def generated_for_external_id(self, tvdb_id: int) -> Optional[Ruleset]:
        record = self.store.find_by_external_id(tvdb_id)
        return record.to_ruleset() if record else None
