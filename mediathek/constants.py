#!/usr/bin/env python3
"""
Shared constants for topic resolution and ruleset synthesis

Single source of truth for the title format patterns, the synthesized regex
vocabulary and the external endpoints. DO NOT duplicate these lists in other
modules - import from here instead.
"""

import re

# Season/episode formats seen in MediathekView titles, most specific first
SEASON_EPISODE_PATTERNS = [
    re.compile(r'\(S(\d{2})/E(\d{2})\)'),                    # (S01/E01)
    re.compile(r'S(\d{2})E(\d{2})'),                         # S01E01
    re.compile(r'Staffel\s*(\d+).*Folge\s*(\d+)', re.IGNORECASE),  # Staffel 1 Folge 1
]

# "vom 15. Januar 2024" and "vom 15.01.2024"
AIRDATE_PHRASE = r'vom\s+(\d{1,2}\.\s*\w+\.?\s*\d{4})'

DATE_PATTERNS = [
    re.compile(AIRDATE_PHRASE),
    re.compile(r'(\d{1,2}\.\d{1,2}\.\d{4})'),                # 15.01.2024
]

PARENTHESIZED_SE = re.compile(r'\(S\d{2}/E\d{2}\)')
BARE_SE = re.compile(r'S\d{2}E\d{2}')
AIRDATE_PHRASE_PATTERN = re.compile(AIRDATE_PHRASE)

# Regex pairs handed to the downstream matcher (never compiled here)
PARENTHESIZED_EPISODE_REGEX = r'(?<=E)(\d{2})(?=\))'
PARENTHESIZED_SEASON_REGEX = r'(?<=S)(\d{2})(?=/E)'
BARE_EPISODE_REGEX = r'(?<=E)(\d{2})'
BARE_SEASON_REGEX = r'(?<=S)(\d{2})(?=E)'

# Sample sizes
DETECTION_SAMPLE_SIZE = 10
SYNTHESIS_SAMPLE_SIZE = 5

# Items shorter than 15 minutes are trailers, teasers and clips
DEFAULT_FILTERS = '[{"attribute":"duration","type":"GreaterThan","value":"15"}]'
EMPTY_RULES = '[]'

# Characters escaped when a topic is embedded in a title rule
REGEX_METACHARACTERS = re.compile(r'[.*+?^${}()|\[\]\\]')

# Ruleset ids derived from a malformed UUID
FALLBACK_RULESET_ID = 99999

# External endpoints
TMDB_BASE_URL = 'https://api.themoviedb.org/3'
CATALOG_URL = 'https://mediathekviewweb.de/api/query'
RULESETS_URL = 'https://raw.githubusercontent.com/mediathekarr/mediathekarr/main/data/rulesets.json'
USER_AGENT = 'MediathekArr'

CATALOG_RESULT_SIZE = 50
REFRESH_INTERVAL_SECONDS = 60 * 60  # hourly

# Retry wrapper: 5xx and rate limiting are transient
RETRYABLE_STATUS_MIN = 500
RATE_LIMIT_STATUS = 429
DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY = 1.0
DEFAULT_MAX_DELAY = 10.0
RETRY_JITTER = 0.3
REQUEST_TIMEOUT = 10
