#!/usr/bin/env python3
"""
Record types shared by the classifier, the ruleset generator and the index

Persisted records (TopicCategoryRecord, GeneratedRuleset) serialize to plain
dicts for the JSON stores. Ruleset uses the camelCase manifest shape of
rulesets.json so manifest documents round-trip through from_dict/to_dict.
"""

import json
import uuid
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional

from mediathek.constants import FALLBACK_RULESET_ID


class MediaCategory(str, Enum):
    """What a topic is, as far as the metadata search can tell"""
    MOVIE = 'movie'
    SERIES = 'tv'
    UNKNOWN = 'unknown'


class MatchingStrategy(str, Enum):
    SEASON_AND_EPISODE_NUMBER = 'SeasonAndEpisodeNumber'
    ITEM_TITLE_EQUALS_AIRDATE = 'ItemTitleEqualsAirdate'
    ITEM_TITLE_EXACT = 'ItemTitleExact'


@dataclass
class TopicCategoryRecord:
    """Cached classification of one catalog topic"""
    topic: str
    category: MediaCategory
    tmdb_id: Optional[int] = None

    def to_dict(self) -> Dict:
        return {'topic': self.topic, 'category': self.category.value, 'tmdb_id': self.tmdb_id}

    @classmethod
    def from_dict(cls, data: Dict) -> 'TopicCategoryRecord':
        return cls(
            topic=data['topic'],
            category=MediaCategory(data.get('category', 'unknown')),
            tmdb_id=data.get('tmdb_id'),
        )


@dataclass
class ShowAlias:
    name: str


@dataclass
class ShowMetadata:
    """Show information supplied by TVDB (read-only here)"""
    tvdb_id: int
    name: str
    german_name: Optional[str] = None
    aliases: List[ShowAlias] = field(default_factory=list)

    @property
    def display_name(self) -> str:
        return self.german_name or self.name


@dataclass
class CatalogItem:
    """One MediathekView search hit; many items share a topic"""
    topic: str
    title: str
    channel: Optional[str] = None
    timestamp: Optional[int] = None
    duration: Optional[int] = None

    @classmethod
    def from_api(cls, data: Dict) -> 'CatalogItem':
        return cls(
            topic=data.get('topic') or '',
            title=data.get('title') or '',
            channel=data.get('channel'),
            timestamp=data.get('timestamp'),
            duration=data.get('duration'),
        )


def _as_json_text(value: Any, default: str = '[]') -> str:
    """Manifest documents carry filters/rules either as JSON text or as lists"""
    if value is None:
        return default
    if isinstance(value, str):
        return value
    return json.dumps(value)


def ruleset_id_from_uuid(value: str) -> int:
    """Derive a numeric ruleset id from the first 8 hex digits of a UUID"""
    try:
        numeric = int(value.replace('-', '')[:8], 16)
    except ValueError:
        return FALLBACK_RULESET_ID
    return numeric or FALLBACK_RULESET_ID


@dataclass
class RulesetMedia:
    media_id: int
    media_name: str
    media_type: str = 'show'
    media_tvdbId: Optional[int] = None
    media_tmdbId: Optional[int] = None
    media_imdbId: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict) -> 'RulesetMedia':
        return cls(
            media_id=data.get('media_id'),
            media_name=data.get('media_name', ''),
            media_type=data.get('media_type', 'show'),
            media_tvdbId=data.get('media_tvdbId'),
            media_tmdbId=data.get('media_tmdbId'),
            media_imdbId=data.get('media_imdbId'),
        )


@dataclass
class Ruleset:
    """Projection consumed by the query layer; several may exist per topic"""
    id: int
    mediaId: Optional[int]
    topic: str
    matchingStrategy: MatchingStrategy
    priority: int = 0
    filters: str = '[]'
    titleRegexRules: str = '[]'
    episodeRegex: Optional[str] = None
    seasonRegex: Optional[str] = None
    media: Optional[RulesetMedia] = None

    @classmethod
    def from_dict(cls, data: Dict) -> 'Ruleset':
        media = data.get('media')
        return cls(
            id=data['id'],
            mediaId=data.get('mediaId'),
            topic=data['topic'],
            matchingStrategy=MatchingStrategy(data['matchingStrategy']),
            priority=data.get('priority') or 0,
            filters=_as_json_text(data.get('filters')),
            titleRegexRules=_as_json_text(data.get('titleRegexRules')),
            episodeRegex=data.get('episodeRegex') or None,
            seasonRegex=data.get('seasonRegex') or None,
            media=RulesetMedia.from_dict(media) if media else None,
        )

    def to_dict(self) -> Dict:
        data = asdict(self)
        data['matchingStrategy'] = self.matchingStrategy.value
        return data


@dataclass
class GeneratedRuleset:
    """Ruleset synthesized from catalog samples, unique per topic"""
    topic: str
    tvdb_id: int
    show_name: str
    matching_strategy: MatchingStrategy
    filters: str
    german_name: Optional[str] = None
    episode_regex: str = ''
    season_regex: str = ''
    title_regex_rules: str = '[]'
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_ruleset(self) -> Ruleset:
        return Ruleset(
            id=ruleset_id_from_uuid(self.id),
            mediaId=self.tvdb_id,
            topic=self.topic,
            priority=0,
            filters=self.filters,
            titleRegexRules=self.title_regex_rules,
            episodeRegex=self.episode_regex or None,
            seasonRegex=self.season_regex or None,
            matchingStrategy=self.matching_strategy,
            media=RulesetMedia(
                media_id=self.tvdb_id,
                media_name=self.show_name,
                media_type='show',
                media_tvdbId=self.tvdb_id,
            ),
        )

    def to_dict(self) -> Dict:
        data = asdict(self)
        data['matching_strategy'] = self.matching_strategy.value
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> 'GeneratedRuleset':
        return cls(
            id=data['id'],
            topic=data['topic'],
            tvdb_id=data['tvdb_id'],
            show_name=data['show_name'],
            german_name=data.get('german_name'),
            matching_strategy=MatchingStrategy(data['matching_strategy']),
            filters=data.get('filters', '[]'),
            episode_regex=data.get('episode_regex') or '',
            season_regex=data.get('season_regex') or '',
            title_regex_rules=data.get('title_regex_rules') or '[]',
        )
