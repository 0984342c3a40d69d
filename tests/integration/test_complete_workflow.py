"""Integration tests for complete private transfer workflows."""

import pytest

from conftest import AcceptingVerifier
from zkt.config import Settings
from zkt.core.registry import AccountRegistry
from zkt.core.transfer import TransferEngine
from zkt.crypto.engine import CryptoEngine
from zkt.crypto.prover import ProofResult
from zkt.exceptions import AccountNotFoundError, DoubleSpendError, StaleRootError
from zkt.storage import DatabaseManager, SqlStateStore


class EchoProver:
    """Prover stand-in: the proof is the public root, accepted by a matching verifier."""

    def generate_proof(self, inputs):
        return ProofResult(proof=inputs["merkle_root"].encode(), public_inputs=[inputs["merkle_root"]])


class RootBoundVerifier:
    """Accepts a proof only if it names the first public input."""

    def verify(self, proof, public_inputs):
        return proof == public_inputs[0].encode()


class TestCompleteTransferWorkflow:
    """End-to-end account transfers with persistence."""

    @pytest.fixture
    def db(self, tmp_path):
        manager = DatabaseManager(f"sqlite:///{tmp_path / 'workflow.db'}")
        manager.create_tables()
        yield manager
        manager.engine.dispose()

    @pytest.fixture
    def registry(self, db):
        engine = CryptoEngine.from_settings(Settings(_env_file=None))
        return AccountRegistry(engine, store=SqlStateStore(db), snapshots=db)

    def test_round_trip_between_two_accounts(self, registry, db, test_data):
        commitments = registry.commitments
        alice = commitments.create_account(test_data["alice_secret"], balance=1000, nonce=5)
        bob = commitments.create_account(test_data["bob_secret"], balance=200, nonce=3)
        registry.add_account(alice, "alice")
        registry.add_account(bob, "bob")
        prover, verifier = EchoProver(), RootBoundVerifier()

        # Alice -> Bob
        first = registry.transfer(test_data["alice_secret"], alice, bob, 300)
        proof = TransferEngine.prove(first.proof_inputs, prover)
        registry.settle(first, proof.proof, verifier)

        # Bob -> Alice, spending the state he just received
        second = registry.transfer(test_data["bob_secret"], first.recipient_new, first.sender_new, 50)
        proof = TransferEngine.prove(second.proof_inputs, prover)
        registry.settle(second, proof.proof, verifier)

        alice_now = registry.accounts_by_owner("alice")[0]
        bob_now = registry.accounts_by_owner("bob")[0]
        assert (alice_now.balance, alice_now.nonce) == (750, 7)
        assert (bob_now.balance, bob_now.nonce) == (450, 5)
        assert alice_now.balance + bob_now.balance == 1200
        assert len(registry.spent) == 2
        assert registry.verify_integrity()

        # Store holds only the latest state of each account
        assert registry.store.list("alice") == [alice_now]
        assert registry.store.list("bob") == [bob_now]

        # Snapshot and restore into a fresh registry
        registry.save_snapshot()
        restored = AccountRegistry(registry.engine, snapshots=db)
        assert restored.load_snapshot()
        assert restored.accumulator.root == registry.accumulator.root
        assert restored.accounts_by_owner("alice") == [alice_now]

        # The restored tree still accepts a spend of the current state
        third = restored.transfer(test_data["alice_secret"], alice_now, bob_now, 750)
        assert third.sender_new.balance == 0

    def test_replays_and_stale_states_rejected(self, registry, test_data):
        commitments = registry.commitments
        alice = commitments.create_account(test_data["alice_secret"], balance=100)
        bob = commitments.create_account(test_data["bob_secret"], balance=0)
        registry.add_account(alice, "alice")
        registry.add_account(bob, "bob")
        verifier = AcceptingVerifier()

        transfer = registry.transfer(test_data["alice_secret"], alice, bob, 60)
        registry.settle(transfer, b"proof", verifier)

        with pytest.raises(StaleRootError):
            registry.settle(transfer, b"proof", verifier)
        with pytest.raises(AccountNotFoundError):
            registry.transfer(test_data["alice_secret"], alice, bob, 60)

        # Even against the current root the spent tag stays spent
        transfer.proof_inputs.public_inputs.merkle_root = registry.accumulator.root
        with pytest.raises(DoubleSpendError):
            registry.settle(transfer, b"proof", verifier)


class TestNoteWorkflow:
    """Value-note spend against a shared accumulator."""

    def test_note_spend(self, engine, accumulator, test_data):
        transfers = TransferEngine(engine, accumulator)
        note = transfers.commitments.create_note(500, 0)
        accumulator.insert(transfers.commitments.note_commitment(note))
        for value in (10, 20, 30):
            filler = transfers.commitments.create_note(value, 0)
            accumulator.insert(transfers.commitments.note_commitment(filler))

        transfer = transfers.transfer_note(test_data["alice_secret"], note, 125)
        result = TransferEngine.prove(transfer.proof_inputs, EchoProver())
        assert RootBoundVerifier().verify(result.proof, transfer.proof_inputs.public_inputs_list())

        accumulator.update(transfer.note_commitment, transfer.note_new_commitment)
        accumulator.insert(transfer.recipient_commitment)
        assert len(accumulator) == 5
        assert transfer.note_new.value + transfer.recipient_note.value == 500
        proof = accumulator.proof(transfer.recipient_commitment)
        assert accumulator.verify_current(transfer.recipient_commitment, proof)
