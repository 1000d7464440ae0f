#!/usr/bin/env python3
"""
MediathekViewWeb search client

Searches the topic field and returns the most recent items first. Failures of
any kind (network, non-2xx, malformed JSON) are logged and reported as an empty
result list; an unreachable catalog is "nothing found", not a crash.
"""

import json
import logging
from typing import List, Optional

import requests

from mediathek.constants import CATALOG_RESULT_SIZE, CATALOG_URL
from mediathek.errors import TransportError
from mediathek.fetch import fetch_with_retry
from mediathek.models import CatalogItem

logger = logging.getLogger(__name__)


class MediathekClient:
    """Interface to the MediathekViewWeb query API"""

    def __init__(self, url: str = CATALOG_URL,
                 session: Optional[requests.Session] = None,
                 size: int = CATALOG_RESULT_SIZE, **retry_options):
        self.url = url
        self.session = session
        self.size = size
        self.retry_options = retry_options

    def _build_query(self, query: str) -> str:
        return json.dumps({
            'queries': [{'fields': ['topic'], 'query': query}],
            'sortBy': 'timestamp',
            'sortOrder': 'desc',
            'future': False,
            'offset': 0,
            'size': self.size,
        })

    def search(self, query: str) -> List[CatalogItem]:
        try:
            response = fetch_with_retry(
                'POST', self.url,
                session=self.session,
                headers={'Content-Type': 'text/plain'},
                data=self._build_query(query),
                **self.retry_options,
            )
        except TransportError as e:
            logger.error(f"Error searching MediathekView for '{query}': {e}")
            return []

        if not response.ok:
            logger.warning(f"MediathekView API error for '{query}': {response.status_code}")
            return []

        try:
            data = response.json()
        except ValueError as e:
            logger.warning(f"MediathekView returned invalid JSON for '{query}': {e}")
            return []
        if not isinstance(data, dict):
            logger.warning(f"Unexpected MediathekView response shape for '{query}'")
            return []

        # The live API nests hits under "result"; older snapshots don't
        results = (data.get('result') or {}).get('results') or data.get('results') or []
        return [CatalogItem.from_api(item) for item in results]
