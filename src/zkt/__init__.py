"""Main package initialization."""

__version__ = "0.1.0"
__author__ = "ZK-Transfer Team"
__description__ = "Private balance transfers: commitments, nullifiers, and a Merkle accumulator"

from .crypto.engine import CryptoEngine
from .core.commitment import Account, ValueNote, CommitmentScheme
from .core.nullifier import NullifierScheme
from .core.merkle_tree import MerkleAccumulator, MerkleProof
from .core.transfer import TransferEngine
from .core.registry import AccountRegistry

__all__ = [
    "CryptoEngine",
    "Account",
    "ValueNote",
    "CommitmentScheme",
    "NullifierScheme",
    "MerkleAccumulator",
    "MerkleProof",
    "TransferEngine",
    "AccountRegistry",
]
