#!/usr/bin/env python3
"""
JSON-file record stores with keyed lookup, create and upsert

The on-disk format mirrors the TMDb response caches: one JSON object mapping
key → record dict, rewritten in full after every write. A store created with
path=None keeps records in memory only.

Concurrent writers inside one process are serialized by a lock. Read/write
failures raise StoreError; nothing is swallowed here.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Callable, Dict, Generic, Iterable, List, Optional, TypeVar

from mediathek.errors import DuplicateKeyError, StoreError
from mediathek.models import GeneratedRuleset, TopicCategoryRecord

logger = logging.getLogger(__name__)

R = TypeVar('R')


class JsonRecordStore(Generic[R]):
    """Keyed record collection persisted as a single JSON document"""

    def __init__(self, path: Optional[Path],
                 key_of: Callable[[R], str],
                 to_dict: Callable[[R], Dict],
                 from_dict: Callable[[Dict], R]):
        self.path = path
        self._key_of = key_of
        self._to_dict = to_dict
        self._from_dict = from_dict
        self._lock = threading.Lock()
        self._records: Dict[str, R] = self._load()

    def _load(self) -> Dict[str, R]:
        """Load records from the JSON file, empty if it doesn't exist yet"""
        if self.path is None or not self.path.exists():
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                raw = json.load(f)
            records = {key: self._from_dict(value) for key, value in raw.items()}
        except (OSError, ValueError, KeyError) as e:
            raise StoreError(f"Could not load store {self.path}: {e}") from e
        logger.info(f"Loaded {len(records)} records from {self.path}")
        return records

    def _save(self):
        """Write all records back to disk (caller holds the lock)"""
        if self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, 'w', encoding='utf-8') as f:
                json.dump(
                    {key: self._to_dict(record) for key, record in self._records.items()},
                    f, indent=2, ensure_ascii=False,
                )
        except OSError as e:
            raise StoreError(f"Could not save store {self.path}: {e}") from e
        logger.debug(f"Saved {len(self._records)} records to {self.path}")

    def find(self, key: str) -> Optional[R]:
        with self._lock:
            return self._records.get(key)

    def find_many(self, keys: Iterable[str]) -> Dict[str, R]:
        """Batched lookup; keys without a record are absent from the result"""
        with self._lock:
            return {key: self._records[key] for key in keys if key in self._records}

    def create(self, record: R) -> R:
        """Insert a new record, raising DuplicateKeyError if the key exists"""
        key = self._key_of(record)
        with self._lock:
            if key in self._records:
                raise DuplicateKeyError(key)
            self._insert(key, record)
        return record

    def _insert(self, key: str, record: R):
        self._records[key] = record
        try:
            self._save()
        except StoreError:
            del self._records[key]
            raise

    def upsert(self, record: R) -> R:
        """
        Insert record unless its key exists; return whichever record is stored

        Existing records are never modified, so a late writer racing on the
        same key simply gets the earlier record back.
        """
        key = self._key_of(record)
        with self._lock:
            existing = self._records.get(key)
            if existing is not None:
                return existing
            self._insert(key, record)
        return record

    def all(self) -> List[R]:
        with self._lock:
            return list(self._records.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


class TopicCategoryStore(JsonRecordStore[TopicCategoryRecord]):
    """topic → TopicCategoryRecord"""

    def __init__(self, path: Optional[Path] = None):
        super().__init__(
            path,
            key_of=lambda record: record.topic,
            to_dict=TopicCategoryRecord.to_dict,
            from_dict=TopicCategoryRecord.from_dict,
        )


class GeneratedRulesetStore(JsonRecordStore[GeneratedRuleset]):
    """topic → GeneratedRuleset, with a secondary lookup by TVDB id"""

    def __init__(self, path: Optional[Path] = None):
        super().__init__(
            path,
            key_of=lambda record: record.topic,
            to_dict=GeneratedRuleset.to_dict,
            from_dict=GeneratedRuleset.from_dict,
        )

    def find_by_external_id(self, tvdb_id: int) -> Optional[GeneratedRuleset]:
        with self._lock:
            for record in self._records.values():
                if record.tvdb_id == tvdb_id:
                    return record
        return None
