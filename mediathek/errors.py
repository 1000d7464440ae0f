#!/usr/bin/env python3
"""Exceptions raised by the topic resolution pipeline"""


class MediathekError(Exception):
    """Base class for all pipeline errors"""


class StoreError(MediathekError):
    """Persistent store could not be read or written"""


class DuplicateKeyError(StoreError):
    """A plain create hit a key that already exists"""

    def __init__(self, key: str):
        super().__init__(f"Record already exists: {key!r}")
        self.key = key


class TransportError(MediathekError):
    """All retries of an outbound request failed with network errors"""


class RulesetLoadError(MediathekError):
    """Neither the remote manifest nor the local snapshot could be loaded"""
