#!/usr/bin/env python3
"""
resolve.py - MediathekView topic resolution

Classifies catalog topics as movie/tv, generates rulesets for shows that no
curated ruleset covers, and queries the ruleset index.

Examples:
  python resolve.py classify "Tatort" "Der Tatortreiniger"
  python resolve.py generate --tvdb-id 83214 --name "Crime Scene" --german-name "Tatort"
  python resolve.py rulesets "Tatort" --tvdb-id 83214
  python resolve.py topics
"""

import sys
import json
import os
import logging
import argparse
from pathlib import Path

import yaml

from mediathek.catalog import MediathekClient
from mediathek.category import CategoryClassifier
from mediathek.constants import (
    CATALOG_URL, DEFAULT_BASE_DELAY, DEFAULT_MAX_DELAY, DEFAULT_MAX_RETRIES,
    REFRESH_INTERVAL_SECONDS, RULESETS_URL,
)
from mediathek.errors import MediathekError
from mediathek.generator import RulesetGenerator
from mediathek.models import ShowAlias, ShowMetadata
from mediathek.rulesets import RulesetIndex, fetch_remote_rulesets
from mediathek.store import GeneratedRulesetStore, TopicCategoryStore
from mediathek.tmdb import TMDbClient

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = {
    'tmdb_api_key': None,
    'tmdb_language': 'de-DE',
    'catalog_url': CATALOG_URL,
    'rulesets_url': RULESETS_URL,
    'local_rulesets_path': 'data/rulesets.json',
    'cache_dir': 'output',
    'refresh_interval_seconds': REFRESH_INTERVAL_SECONDS,
    'max_retries': DEFAULT_MAX_RETRIES,
    'retry_base_delay': DEFAULT_BASE_DELAY,
    'retry_max_delay': DEFAULT_MAX_DELAY,
}


def load_config(config_path: Path) -> dict:
    """Load configuration from YAML file, filling in defaults"""
    config = dict(DEFAULT_CONFIG)
    if config_path.exists():
        with open(config_path, 'r') as f:
            config.update(yaml.safe_load(f) or {})
    else:
        logger.info(f"Config file not found: {config_path} - using defaults")

    if os.environ.get('RULESETS_URL'):
        config['rulesets_url'] = os.environ['RULESETS_URL']
    return config


def retry_options(config: dict) -> dict:
    return {
        'max_retries': config['max_retries'],
        'base_delay': config['retry_base_delay'],
        'max_delay': config['retry_max_delay'],
    }


def build_generated_store(config: dict) -> GeneratedRulesetStore:
    return GeneratedRulesetStore(Path(config['cache_dir']) / 'generated_rulesets.json')


def build_classifier(config: dict) -> CategoryClassifier:
    tmdb = TMDbClient(
        api_key=config['tmdb_api_key'],
        language=config['tmdb_language'],
        **retry_options(config),
    )
    store = TopicCategoryStore(Path(config['cache_dir']) / 'topic_categories.json')
    return CategoryClassifier(store, tmdb)


def build_generator(config: dict) -> RulesetGenerator:
    catalog = MediathekClient(url=config['catalog_url'], **retry_options(config))
    return RulesetGenerator(build_generated_store(config), catalog)


def build_index(config: dict) -> RulesetIndex:
    generated = build_generated_store(config)
    url = config['rulesets_url']
    options = retry_options(config)
    return RulesetIndex(
        fetch_remote=lambda: fetch_remote_rulesets(url, **options),
        local_path=Path(config['local_rulesets_path']),
        extra_sources=[lambda: [record.to_ruleset() for record in generated.all()]],
        refresh_interval=config['refresh_interval_seconds'],
    )


def cmd_classify(args, config: dict) -> int:
    if not config.get('tmdb_api_key'):
        logger.error("Topic classification needs tmdb_api_key in the config")
        return 1

    classifier = build_classifier(config)
    categories = classifier.classify_batch(args.topics)
    for topic in args.topics:
        print(f"{topic}\t{categories[topic].value}")

    stats = classifier.get_cache_stats()
    logger.info(f"TMDb: {stats['misses']} API queries, {stats['hits']} cache hits "
                f"({stats['hit_rate']:.0f}% hit rate)")
    return 0


def cmd_generate(args, config: dict) -> int:
    show = ShowMetadata(
        tvdb_id=args.tvdb_id,
        name=args.name,
        german_name=args.german_name,
        aliases=[ShowAlias(name) for name in args.alias],
    )
    ruleset = build_generator(config).generate(args.tvdb_id, show)
    if ruleset is None:
        print("no ruleset")
        return 1

    print(json.dumps(ruleset.to_dict(), indent=2, ensure_ascii=False))
    return 0


def cmd_rulesets(args, config: dict) -> int:
    index = build_index(config)
    index.ensure_loaded()
    if args.tvdb_id is not None:
        rulesets = index.rulesets_for_topic_and_external_id(args.topic, args.tvdb_id)
    else:
        rulesets = index.rulesets_for_topic(args.topic)

    print(json.dumps([r.to_dict() for r in rulesets], indent=2, ensure_ascii=False))
    return 0


def cmd_topics(args, config: dict) -> int:
    index = build_index(config)
    index.ensure_loaded()
    for topic in sorted(index.all_topics()):
        print(topic)
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Resolve MediathekView topics to categories and rulesets',
    )
    parser.add_argument('--config', type=Path, default=Path('config.yaml'),
                        help='Configuration file (default: config.yaml)')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Enable debug logging')
    subparsers = parser.add_subparsers(dest='command', required=True)

    classify_parser = subparsers.add_parser('classify', help='Classify topics as movie/tv/unknown')
    classify_parser.add_argument('topics', nargs='+', help='MediathekView topics')
    classify_parser.set_defaults(func=cmd_classify)

    generate_parser = subparsers.add_parser('generate', help='Generate a ruleset for a TVDB show')
    generate_parser.add_argument('--tvdb-id', type=int, required=True)
    generate_parser.add_argument('--name', required=True, help='Primary (English) show name')
    generate_parser.add_argument('--german-name', help='German show name')
    generate_parser.add_argument('--alias', action='append', default=[],
                                 help='Alternative show name (repeatable)')
    generate_parser.set_defaults(func=cmd_generate)

    rulesets_parser = subparsers.add_parser('rulesets', help='Show indexed rulesets for a topic')
    rulesets_parser.add_argument('topic')
    rulesets_parser.add_argument('--tvdb-id', type=int)
    rulesets_parser.set_defaults(func=cmd_rulesets)

    topics_parser = subparsers.add_parser('topics', help='List all indexed topics')
    topics_parser.set_defaults(func=cmd_topics)

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    config = load_config(args.config)
    try:
        return args.func(args, config)
    except MediathekError as e:
        logger.error(str(e))
        return 1


if __name__ == '__main__':
    sys.exit(main())
