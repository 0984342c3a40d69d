"""Fixed-depth Merkle accumulator over entity commitments.

Tree Structure:
    - Depth: 20 levels of proof (supports 2^20 commitments)
    - Leaves: commitments in insertion order, left-packed, never reordered
    - Hashing: CryptoEngine.hash([left, right])
    - Missing right sibling: ZERO, which carries the node up unchanged
    - Root of an empty tree: ZERO; root of a one-leaf tree: the leaf itself

The ZERO rule is shared by rebuild and verification: a ZERO sibling means
"no sibling present", not "hash with zero". With a single leaf every path
entry is ZERO, every index is left, and the leaf is the root.

Every mutation rebuilds all levels from the leaf list. Removal shifts the
index of every later leaf, so proofs issued before a removal are stale.
Mutation is not thread-safe; callers serialize insert/update/remove.

Example:
    Inserting a commitment and proving membership::

        engine = CryptoEngine()
        tree = MerkleAccumulator(engine)
        tree.insert(commitment)
        proof = tree.proof(commitment)
        assert tree.verify(commitment, proof)
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from zkt.crypto.engine import CryptoEngine
from zkt.exceptions import (
    DeserializationError,
    DuplicateLeafError,
    EncodingError,
    IntegrityError,
    InvalidCommitmentError,
    LeafNotFoundError,
    TreeCapacityExceededError,
)
from zkt.models.schemas import MERKLE_DEPTH, AccumulatorSnapshot, MerkleProofModel
from zkt.utils.encoding import ZERO_FIELD, FieldLike, to_field

logger = logging.getLogger(__name__)

LEFT = 0
RIGHT = 1


@dataclass
class MerkleProof:
    """
    Inclusion proof for one leaf.

    ``indices[i]`` is LEFT (0) when the running node is the left child at
    level ``i`` and RIGHT (1) otherwise.
    """

    root: str
    path: List[str]
    indices: List[int]
    leaf: Optional[str] = None
    leaf_index: Optional[int] = None

    @property
    def depth(self) -> int:
        return len(self.path)

    def indices_as_fields(self) -> List[str]:
        """Account-variant wire form: each index as a field element."""
        return [to_field(bit) for bit in self.indices]

    def indices_as_bools(self) -> List[bool]:
        """Value-note wire form: True when the node is a right child."""
        return [bit == RIGHT for bit in self.indices]

    def to_model(self) -> MerkleProofModel:
        return MerkleProofModel(root=self.root, path=self.path, indices=self.indices)

    @classmethod
    def from_model(cls, model: MerkleProofModel) -> "MerkleProof":
        return cls(root=model.root, path=list(model.path), indices=list(model.indices))


def compute_root(engine: CryptoEngine, leaf: FieldLike, path: List[str], indices: List[int]) -> str:
    """
    Replay a proof's hash chain from ``leaf`` and return the resulting root.

    Args:
        engine: Hash engine
        leaf: Starting commitment
        path: Sibling hashes, level 0 first
        indices: LEFT/RIGHT position of the running node per level

    Returns:
        str: Reconstructed root
    """
    if len(path) != len(indices):
        raise ValueError("Path and indices must have equal length")

    current = to_field(leaf)
    for sibling, position in zip(path, indices):
        current = _combine(engine, current, to_field(sibling), position)
    return current


def _combine(engine: CryptoEngine, current: str, sibling: str, position: int) -> str:
    if sibling == ZERO_FIELD:
        return current
    if position == LEFT:
        return engine.hash([current, sibling])
    return engine.hash([sibling, current])


class MerkleAccumulator:
    """
    Append/update/remove-capable Merkle accumulator with fixed proof depth.

    Keeps the ordered leaf list, a commitment -> index map, an opaque payload
    per leaf, and the derived levels (level 0 = leaves, last level = root).
    """

    def __init__(self, engine: CryptoEngine, depth: int = MERKLE_DEPTH):
        if depth < 1 or depth > 64:
            raise ValueError("Depth must be between 1 and 64")

        self.engine = engine
        self.depth = depth
        self.max_leaves = 2 ** depth

        self._leaves: List[str] = []
        self._payloads: List[Any] = []
        self._index: Dict[str, int] = {}
        self._levels: List[List[str]] = []

        # Set when a snapshot import was rejected and state was reset
        self.corrupted = False

    # Queries

    @property
    def root(self) -> str:
        """Current root. Read-only: it only changes through mutations."""
        if not self._levels:
            return ZERO_FIELD
        return self._levels[-1][0]

    @property
    def leaves(self) -> List[str]:
        """Copy of the ordered leaf list."""
        return list(self._leaves)

    def index_of(self, leaf: FieldLike) -> int:
        """
        Position of ``leaf`` in insertion order.

        Raises:
            LeafNotFoundError: If the leaf is absent
        """
        key = self._key(leaf)
        try:
            return self._index[key]
        except KeyError:
            raise LeafNotFoundError(f"Leaf {key[:10]}... not in accumulator") from None

    def payload(self, leaf: FieldLike) -> Any:
        return self._payloads[self.index_of(leaf)]

    def __contains__(self, leaf: object) -> bool:
        try:
            return self._key(leaf) in self._index
        except (EncodingError, TypeError):
            return False

    def __len__(self) -> int:
        return len(self._leaves)

    # Mutations

    def insert(self, leaf: FieldLike, payload: Any = None) -> int:
        """
        Append a commitment and rebuild.

        Args:
            leaf: Commitment to append
            payload: Opaque data stored alongside the leaf

        Returns:
            int: Index of the new leaf

        Raises:
            InvalidCommitmentError: If the leaf is ZERO or not encodable
            DuplicateLeafError: If the leaf is already present
            TreeCapacityExceededError: If the accumulator is full
        """
        key = self._checked_leaf(leaf)
        if key in self._index:
            raise DuplicateLeafError(f"Leaf {key[:10]}... already in accumulator")
        if len(self._leaves) >= self.max_leaves:
            raise TreeCapacityExceededError(f"Accumulator is full (max {self.max_leaves} leaves)")

        index = len(self._leaves)
        self._leaves.append(key)
        self._payloads.append(payload)
        self._index[key] = index
        self._rebuild()

        logger.debug(f"Inserted leaf {key[:10]}... at {index}, root {self.root[:10]}...")
        return index

    def update(self, old_leaf: FieldLike, new_leaf: FieldLike, payload: Any = None) -> int:
        """
        Replace a leaf in place and rebuild.

        Returns:
            int: Index of the replaced leaf

        Raises:
            LeafNotFoundError: If ``old_leaf`` is absent
            DuplicateLeafError: If ``new_leaf`` is already present elsewhere
        """
        index = self.index_of(old_leaf)
        new_key = self._checked_leaf(new_leaf)
        old_key = self._leaves[index]
        if new_key != old_key and new_key in self._index:
            raise DuplicateLeafError(f"Leaf {new_key[:10]}... already in accumulator")

        del self._index[old_key]
        self._leaves[index] = new_key
        self._payloads[index] = payload
        self._index[new_key] = index
        self._rebuild()

        logger.debug(f"Updated leaf {index}: {old_key[:10]}... -> {new_key[:10]}...")
        return index

    def remove(self, leaf: FieldLike) -> None:
        """
        Delete a leaf and rebuild from the remaining ordered list.

        Later leaves shift down by one; their earlier proofs become stale.

        Raises:
            LeafNotFoundError: If the leaf is absent
        """
        index = self.index_of(leaf)
        del self._leaves[index]
        del self._payloads[index]
        self._reindex()
        self._rebuild()

        logger.debug(f"Removed leaf {index}, {len(self._leaves)} remaining")

    def clear(self) -> None:
        self._leaves = []
        self._payloads = []
        self._index = {}
        self._levels = []

    # Proofs

    def proof(self, leaf: FieldLike) -> MerkleProof:
        """
        Build an inclusion proof of exactly ``depth`` steps.

        Raises:
            LeafNotFoundError: If the leaf is absent
        """
        leaf_index = self.index_of(leaf)
        path: List[str] = []
        indices: List[int] = []
        position = leaf_index

        for level in range(self.depth):
            if level < len(self._levels) - 1:
                nodes = self._levels[level]
                sibling = position ^ 1
                path.append(nodes[sibling] if sibling < len(nodes) else ZERO_FIELD)
                indices.append(position & 1)
                position >>= 1
            else:
                # Above the root: no siblings remain
                path.append(ZERO_FIELD)
                indices.append(LEFT)

        return MerkleProof(
            root=self.root,
            path=path,
            indices=indices,
            leaf=self._leaves[leaf_index],
            leaf_index=leaf_index,
        )

    def verify(self, leaf: FieldLike, proof: MerkleProof) -> bool:
        """
        Check that ``proof`` leads from ``leaf`` to ``proof.root``.

        Returns False for malformed input instead of raising.
        """
        try:
            if len(proof.path) != self.depth or len(proof.indices) != self.depth:
                return False
            if any(bit not in (LEFT, RIGHT) for bit in proof.indices):
                return False
            return compute_root(self.engine, leaf, proof.path, proof.indices) == to_field(proof.root)
        except (EncodingError, ValueError, TypeError):
            return False

    def verify_current(self, leaf: FieldLike, proof: MerkleProof) -> bool:
        """Like ``verify`` but also requires ``proof.root`` to be the current root."""
        try:
            if to_field(proof.root) != self.root:
                return False
        except (EncodingError, TypeError):
            return False
        return self.verify(leaf, proof)

    # Persistence

    def export_state(self) -> dict:
        """
        Serialize the ordered leaves and their payloads.

        The root is included for reference only; ``import_state`` recomputes it.
        """
        snapshot = AccumulatorSnapshot(
            depth=self.depth,
            leaves=[{"hash": leaf, "data": data} for leaf, data in zip(self._leaves, self._payloads)],
            root=self.root,
            timestamp=datetime.now(timezone.utc),
        )
        return snapshot.model_dump(mode="json")

    def import_state(self, state: Any) -> None:
        """
        Replace the contents with a snapshot produced by ``export_state``.

        The tree is rebuilt from the leaf list. On any problem the accumulator
        is left empty with ``corrupted`` set, and the error is raised.

        Raises:
            DeserializationError: If the snapshot is malformed
            IntegrityError: If leaves repeat or the embedded root disagrees
        """
        self.clear()
        self.corrupted = False
        try:
            snapshot = AccumulatorSnapshot.model_validate(state)
            if snapshot.depth != self.depth:
                raise DeserializationError(
                    f"Snapshot depth {snapshot.depth} does not match accumulator depth {self.depth}"
                )

            leaves = [entry.hash for entry in snapshot.leaves]
            if len(set(leaves)) != len(leaves):
                raise IntegrityError("Snapshot contains duplicate leaves")
            if ZERO_FIELD in leaves:
                raise IntegrityError("Snapshot contains the reserved ZERO leaf")
            if len(leaves) > self.max_leaves:
                raise IntegrityError("Snapshot exceeds accumulator capacity")

            self._leaves = leaves
            self._payloads = [entry.data for entry in snapshot.leaves]
            self._reindex()
            self._rebuild()

            if snapshot.root is not None and snapshot.root != self.root:
                raise IntegrityError("Snapshot root does not match rebuilt tree")
        except ValidationError as e:
            self._reject(f"Malformed snapshot: {e.error_count()} validation errors")
            raise DeserializationError("Malformed accumulator snapshot") from e
        except (DeserializationError, IntegrityError) as e:
            self._reject(str(e))
            raise

        logger.info(f"Imported {len(self._leaves)} leaves, root {self.root[:10]}...")

    # Internals

    def _reject(self, reason: str) -> None:
        logger.error(f"Rejected accumulator snapshot: {reason}")
        self.clear()
        self.corrupted = True

    @staticmethod
    def _key(leaf: object) -> str:
        return to_field(leaf)

    def _checked_leaf(self, leaf: FieldLike) -> str:
        try:
            key = self._key(leaf)
        except EncodingError as e:
            raise InvalidCommitmentError(str(e)) from e
        if key == ZERO_FIELD:
            raise InvalidCommitmentError("ZERO is reserved for empty siblings")
        return key

    def _reindex(self) -> None:
        self._index = {leaf: i for i, leaf in enumerate(self._leaves)}

    def _rebuild(self) -> None:
        """Recompute every level from the leaf list."""
        if not self._leaves:
            self._levels = []
            return

        level = list(self._leaves)
        levels = [level]
        while len(level) > 1:
            parents = []
            for i in range(0, len(level), 2):
                right = level[i + 1] if i + 1 < len(level) else ZERO_FIELD
                parents.append(_combine(self.engine, level[i], right, LEFT))
            level = parents
            levels.append(level)
        self._levels = levels

    def __repr__(self) -> str:
        return (
            f"MerkleAccumulator(depth={self.depth}, "
            f"leaves={len(self._leaves)}/{self.max_leaves}, "
            f"root={self.root[:18]}...)"
        )
