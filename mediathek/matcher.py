#!/usr/bin/env python3
"""
Pick the MediathekView topic that belongs to a show

Three passes, first hit wins:
1. exact          - topic equals a show name (case-insensitive)
2. substring      - topic contains a show name or vice versa
3. sole_candidate - only one distinct topic came back at all

Several ambiguous topics with no name overlap → no match. Guessing between
candidates is never done.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from mediathek.models import ShowMetadata

logger = logging.getLogger(__name__)

EXACT = 'exact'
SUBSTRING = 'substring'
SOLE_CANDIDATE = 'sole_candidate'


@dataclass
class TopicMatch:
    topic: str
    match_pass: str


def search_names(show: ShowMetadata) -> List[str]:
    """German name, primary name, then aliases - lowercased, blanks dropped"""
    names = [show.german_name, show.name] + [alias.name for alias in show.aliases]
    return [name.lower() for name in names if name]


def match_topic(topics: Iterable[str], show: ShowMetadata) -> Optional[TopicMatch]:
    # Distinct topics in order of first appearance; an empty topic would
    # substring-match every name
    candidates = [topic for topic in dict.fromkeys(topics) if topic]
    if not candidates:
        return None

    names = search_names(show)

    for topic in candidates:
        if topic.lower() in names:
            logger.info(f"Exact topic match: '{topic}'")
            return TopicMatch(topic, EXACT)

    for topic in candidates:
        topic_lower = topic.lower()
        for name in names:
            if name in topic_lower or topic_lower in name:
                logger.info(f"Partial topic match: '{topic}' ~ '{name}'")
                return TopicMatch(topic, SUBSTRING)

    if len(candidates) == 1:
        logger.info(f"Using single topic: '{candidates[0]}'")
        return TopicMatch(candidates[0], SOLE_CANDIDATE)

    logger.info(f"No matching topic found. Available: {', '.join(candidates)}")
    return None
