"""Per-user training data storage."""

from loadguard.persistence.repository import TrainingDataRepository
from loadguard.persistence.store import InMemoryKeyValueStore, KeyValueStore, RedisKeyValueStore

__all__ = ["InMemoryKeyValueStore", "KeyValueStore", "RedisKeyValueStore", "TrainingDataRepository"]
