"""Storage layer for persistent data."""

from zkt.storage.base import Entity, InMemoryStateStore, StateStore, entity_key
from zkt.storage.database import (
    AccumulatorSnapshotRecord,
    Base,
    DatabaseManager,
    SqlStateStore,
    StoredEntity,
    deserialize_entity,
    serialize_entity,
)

__all__ = [
    "Entity",
    "StateStore",
    "InMemoryStateStore",
    "entity_key",
    "DatabaseManager",
    "SqlStateStore",
    "StoredEntity",
    "AccumulatorSnapshotRecord",
    "Base",
    "serialize_entity",
    "deserialize_entity",
]
