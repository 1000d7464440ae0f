#!/usr/bin/env python3
"""
TMDb multi-search client used to decide whether a topic is a movie or a show

Caching lives in the topic category store, not here. HTTP errors propagate to
the caller so that a transient TMDb outage is never cached as "unknown".
"""

import logging
from dataclasses import dataclass
from typing import Optional

import requests

from mediathek.constants import TMDB_BASE_URL
from mediathek.fetch import fetch_with_retry
from mediathek.models import MediaCategory

logger = logging.getLogger(__name__)


@dataclass
class MetadataSearchResult:
    media_type: MediaCategory
    tmdb_id: Optional[int] = None


class TMDbClient:
    """Interface to The Movie Database multi-search endpoint"""

    def __init__(self, api_key: str, language: str = 'de-DE',
                 session: Optional[requests.Session] = None,
                 base_url: str = TMDB_BASE_URL, **retry_options):
        self.api_key = api_key
        self.language = language
        self.session = session
        self.base_url = base_url
        self.retry_options = retry_options

    def search_multi(self, query: str) -> MetadataSearchResult:
        """
        Search movies and TV shows at once and infer the media type

        The first movie or tv result wins (people are skipped). No usable
        result means MediaCategory.UNKNOWN without an id.
        """
        response = fetch_with_retry(
            'GET', f"{self.base_url}/search/multi",
            session=self.session,
            params={
                'api_key': self.api_key,
                'query': query,
                'language': self.language,
                'include_adult': False,
            },
            **self.retry_options,
        )
        response.raise_for_status()

        for candidate in response.json().get('results', []):
            media_type = candidate.get('media_type')
            if media_type == 'movie':
                category = MediaCategory.MOVIE
            elif media_type == 'tv':
                category = MediaCategory.SERIES
            else:
                continue

            logger.info(f"TMDb: '{query}' → {category.value} (id {candidate.get('id')})")
            return MetadataSearchResult(media_type=category, tmdb_id=candidate.get('id'))

        logger.debug(f"No TMDb movie/tv results for '{query}'")
        return MetadataSearchResult(media_type=MediaCategory.UNKNOWN)
