"""StateStore contract and an in-memory implementation.

The core only ever talks to this contract. Entities are keyed inside an
owner's collection by ``entity_key``: an account by its public key, a note
by its commitment id. Saving an entity with an existing key replaces it.
"""

import abc
from typing import Dict, List, Union

from zkt.core.commitment import Account, ValueNote
from zkt.exceptions import SerializationError
from zkt.utils.encoding import to_field

Entity = Union[Account, ValueNote]


def entity_key(entity: Entity) -> str:
    """Identifier of an entity within its owner's collection."""
    if isinstance(entity, Account):
        return entity.pubkey
    if isinstance(entity, ValueNote):
        return entity.commitment_id
    raise SerializationError(f"Unsupported entity type: {type(entity).__name__}")


class StateStore(abc.ABC):
    """Persists entities between sessions."""

    @abc.abstractmethod
    def save(self, owner_key: str, entity: Entity) -> None:
        """Insert or replace ``entity`` in the owner's collection."""

    @abc.abstractmethod
    def list(self, owner_key: str) -> List[Entity]:
        """Owner's entities in the order they were first saved."""

    @abc.abstractmethod
    def delete(self, owner_key: str, key: str) -> bool:
        """Remove the entity with ``key`` (pubkey or commitment id). True if removed."""


class InMemoryStateStore(StateStore):
    """Dictionary-backed store for tests and short-lived sessions."""

    def __init__(self):
        self._entities: Dict[str, Dict[str, Entity]] = {}

    def save(self, owner_key: str, entity: Entity) -> None:
        self._entities.setdefault(owner_key, {})[entity_key(entity)] = entity

    def list(self, owner_key: str) -> List[Entity]:
        return list(self._entities.get(owner_key, {}).values())

    def delete(self, owner_key: str, key: str) -> bool:
        entities = self._entities.get(owner_key, {})
        return entities.pop(to_field(key), None) is not None
