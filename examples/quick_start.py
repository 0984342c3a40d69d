#!/usr/bin/env python3
"""
Quick start guide for the ZK private transfer core.

Run this to see an account transfer go from commitments to settlement.
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from zkt.core.registry import AccountRegistry
from zkt.core.transfer import TransferEngine
from zkt.crypto.engine import CryptoEngine
from zkt.crypto.prover import ProofResult


class DemoProver:
    """Stand-in for an external proving system."""

    def generate_proof(self, inputs):
        return ProofResult(proof=inputs["merkle_root"].encode(), public_inputs=[inputs["merkle_root"]])


class DemoVerifier:
    """Accepts proofs produced by DemoProver."""

    def verify(self, proof, public_inputs):
        return proof == public_inputs[0].encode()


def main():
    """Run a simple example of a private transfer."""

    print("=" * 70)
    print("ZK PRIVATE TRANSFER QUICK START")
    print("=" * 70)
    print()

    # Step 1: Build the registry around an explicit engine
    print("Step 1: Initialize the registry")
    print("-" * 70)
    engine = CryptoEngine()
    registry = AccountRegistry(engine)
    print(f"✓ {engine!r}")
    print(f"✓ Accumulator depth {registry.accumulator.depth}, root {registry.accumulator.root[:18]}...")
    print()

    # Step 2: Create accounts
    print("Step 2: Alice (1000) and Bob (200) join")
    print("-" * 70)
    alice_secret, bob_secret = "0x1000", "0x1001"
    alice = registry.commitments.create_account(alice_secret, balance=1000, nonce=5)
    bob = registry.commitments.create_account(bob_secret, balance=200, nonce=3)
    print(f"✓ Alice commitment: {registry.add_account(alice, 'alice')[:18]}...")
    print(f"✓ Bob commitment:   {registry.add_account(bob, 'bob')[:18]}...")
    print(f"  Root: {registry.accumulator.root[:18]}...")
    print()

    # Step 3: Alice prepares a transfer
    print("Step 3: Alice sends 300 to Bob")
    print("-" * 70)
    transfer = registry.transfer(alice_secret, alice, bob, 300)
    print(f"✓ Nullifier:  {transfer.nullifier[:18]}...")
    print(f"✓ Alice new:  balance {transfer.sender_new.balance}, nonce {transfer.sender_new.nonce}")
    print(f"✓ Bob new:    balance {transfer.recipient_new.balance}, nonce {transfer.recipient_new.nonce}")
    print()

    # Step 4: Prove and settle
    print("Step 4: Prove and settle")
    print("-" * 70)
    result = TransferEngine.prove(transfer.proof_inputs, DemoProver())
    new_root = registry.settle(transfer, result.proof, DemoVerifier())
    print(f"✓ Settled, new root {new_root[:18]}...")
    print(f"  Stats: {registry.get_stats()}")
    print()

    print("=" * 70)
    print("✓ QUICK START COMPLETE")
    print("=" * 70)


if __name__ == "__main__":
    main()
