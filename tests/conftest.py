"""Pytest configuration and fixtures."""

import pytest
import sys
from pathlib import Path

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from zkt.core.commitment import CommitmentScheme
from zkt.core.merkle_tree import MerkleAccumulator
from zkt.core.nullifier import NullifierScheme
from zkt.crypto.engine import CryptoEngine
from zkt.utils.encoding import to_field


class AcceptingVerifier:
    """Stand-in for the external verifier that records what it was shown."""

    def __init__(self, result: bool = True):
        self.result = result
        self.calls = []

    def verify(self, proof, public_inputs):
        self.calls.append((proof, list(public_inputs)))
        return self.result


@pytest.fixture
def engine():
    """Reference SHA-256 engine."""
    return CryptoEngine()


@pytest.fixture
def commitments(engine):
    return CommitmentScheme(engine)


@pytest.fixture
def nullifiers(engine):
    return NullifierScheme(engine)


@pytest.fixture
def accumulator(engine):
    return MerkleAccumulator(engine)


@pytest.fixture
def verifier():
    return AcceptingVerifier()


@pytest.fixture(scope="session")
def test_data():
    """Secrets and balances shared by the transfer scenarios."""
    return {
        "alice_secret": to_field("0x1000"),
        "bob_secret": to_field("0x1001"),
        "alice_balance": 1000,
        "alice_nonce": 5,
        "bob_balance": 200,
        "bob_nonce": 3,
        "asset_id": 1,
    }
