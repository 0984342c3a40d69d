"""Property-based tests using Hypothesis for protocol invariants."""

from hypothesis import HealthCheck, given, settings, strategies as st

from zkt.core.commitment import CommitmentScheme
from zkt.core.merkle_tree import MerkleAccumulator
from zkt.core.transfer import TransferEngine
from zkt.crypto.engine import CryptoEngine
from zkt.utils.encoding import field_to_int, is_field, to_field

ENGINE = CryptoEngine()
COMMITMENTS = CommitmentScheme(ENGINE)

field_ints = st.integers(min_value=0, max_value=2 ** 256 - 1)
secrets_ = st.integers(min_value=1, max_value=2 ** 200)


class TestEncodingProperties:
    """Properties of the canonical encoding."""

    @given(field_ints)
    @settings(max_examples=200)
    def test_canonical_form(self, value: int):
        """Property: every encodable integer maps to one canonical string."""
        encoded = to_field(value)
        assert is_field(encoded)
        assert field_to_int(encoded) == value
        assert to_field(encoded) == encoded

    @given(field_ints)
    def test_string_forms_agree(self, value: int):
        """Property: decimal, lowercase hex, and uppercase hex agree."""
        assert to_field(str(value)) == to_field(hex(value)) == to_field(hex(value).upper().replace("0X", "0x"))


class TestCommitmentProperties:
    """Properties of commitments."""

    @given(secrets_, st.integers(min_value=0, max_value=10 ** 9 - 1), st.integers(min_value=0, max_value=10 ** 9 - 1))
    @settings(max_examples=50)
    def test_balance_binding(self, secret: int, balance: int, nonce: int):
        """Property: changing the balance always changes the commitment."""
        account = COMMITMENTS.create_account(secret, balance=balance, nonce=nonce)
        richer = COMMITMENTS.account_receive(account, 1)
        assert COMMITMENTS.account_commitment(account) != COMMITMENTS.account_commitment(richer)
        assert COMMITMENTS.verify_account(account, COMMITMENTS.account_commitment(account))


class TestAccumulatorProperties:
    """Properties of the Merkle accumulator."""

    @given(st.lists(secrets_, min_size=1, max_size=17, unique=True))
    @settings(max_examples=30, suppress_health_check=[HealthCheck.too_slow], deadline=None)
    def test_every_leaf_proves_inclusion(self, seeds):
        """Property: every inserted leaf has a depth-20 proof to the root."""
        tree = MerkleAccumulator(ENGINE)
        leaves = [ENGINE.hash_single(seed) for seed in seeds]
        for leaf in leaves:
            tree.insert(leaf)
        for leaf in leaves:
            proof = tree.proof(leaf)
            assert proof.depth == 20
            assert tree.verify_current(leaf, proof)

    @given(st.lists(secrets_, min_size=2, max_size=12, unique=True), st.data())
    @settings(max_examples=30, suppress_health_check=[HealthCheck.too_slow], deadline=None)
    def test_remove_matches_fresh_build(self, seeds, data):
        """Property: removing a leaf gives the same root as never inserting it."""
        leaves = [ENGINE.hash_single(seed) for seed in seeds]
        victim = data.draw(st.sampled_from(leaves))

        tree = MerkleAccumulator(ENGINE)
        for leaf in leaves:
            tree.insert(leaf)
        tree.remove(victim)

        fresh = MerkleAccumulator(ENGINE)
        for leaf in leaves:
            if leaf != victim:
                fresh.insert(leaf)
        assert tree.root == fresh.root


class TestTransferProperties:
    """Properties of account transfers."""

    @given(
        st.integers(min_value=0, max_value=10 ** 8),
        st.integers(min_value=0, max_value=10 ** 8),
        st.data(),
    )
    @settings(max_examples=50, suppress_health_check=[HealthCheck.too_slow], deadline=None)
    def test_value_is_conserved(self, sender_balance, recipient_balance, data):
        """Property: sender loses exactly what the recipient gains."""
        amount = data.draw(st.integers(min_value=0, max_value=sender_balance))
        sender = COMMITMENTS.create_account(11, balance=sender_balance, nonce=0)
        recipient = COMMITMENTS.create_account(22, balance=recipient_balance, nonce=0)

        tree = MerkleAccumulator(ENGINE)
        tree.insert(COMMITMENTS.account_commitment(sender))
        transfer = TransferEngine(ENGINE, tree).transfer(11, sender, recipient, amount)

        assert transfer.sender_new.balance == sender_balance - amount
        assert transfer.recipient_new.balance == recipient_balance + amount
        assert transfer.sender_new.nonce == transfer.recipient_new.nonce == 1
