"""Tests for accounts, value notes, and their commitments."""

import pytest

from zkt.core.commitment import (
    MAX_BALANCE,
    MAX_NONCE,
    Account,
    ValueNote,
    check_amount,
    generate_secret_key,
)
from zkt.exceptions import EncodingError, InsufficientBalanceError, InvalidAccountError, InvalidAmountError
from zkt.utils.encoding import FIELD_MODULUS, field_to_int, is_field, to_field


@pytest.fixture
def alice(commitments, test_data):
    return commitments.create_account(
        test_data["alice_secret"], balance=test_data["alice_balance"], nonce=test_data["alice_nonce"]
    )


class TestSecretKeys:
    """Tests for secret key generation."""

    def test_generated_key_is_field(self):
        key = generate_secret_key()
        assert is_field(key)
        assert field_to_int(key) < FIELD_MODULUS

    def test_generated_keys_differ(self):
        assert len({generate_secret_key() for _ in range(20)}) == 20


class TestAccount:
    """Tests for the Account entity."""

    def test_pubkey_derivation(self, engine, commitments, test_data):
        pubkey = commitments.derive_pubkey(test_data["alice_secret"])
        assert pubkey == engine.hash([test_data["alice_secret"]])

    def test_create_account(self, alice, commitments, test_data):
        assert alice.pubkey == commitments.derive_pubkey(test_data["alice_secret"])
        assert alice.balance == 1000
        assert alice.nonce == 5
        assert alice.asset_id == 1

    def test_field_strings_are_decoded(self, alice):
        decoded = Account(**alice.to_dict())
        assert decoded == alice
        assert decoded.balance == 1000

    def test_pubkey_is_canonicalized(self):
        account = Account(pubkey="0xABC", balance=0, nonce=0, asset_id=1)
        assert account.pubkey == to_field(0xABC)

    def test_negative_balance_rejected(self):
        with pytest.raises(EncodingError):
            Account(pubkey="0x1", balance=-1, nonce=0, asset_id=1)

    @pytest.mark.parametrize("field_name", ["balance", "nonce", "asset_id"])
    def test_field_wider_than_32_bytes_rejected(self, field_name):
        values = {"pubkey": "0x1", "balance": 0, "nonce": 0, "asset_id": 1, field_name: 2 ** 256}
        with pytest.raises(EncodingError):
            Account(**values)

    def test_non_integer_field_rejected(self):
        with pytest.raises(EncodingError):
            Account(pubkey="0x1", balance=1.5, nonce=0, asset_id=1)

    def test_accounts_are_immutable(self, alice):
        with pytest.raises(AttributeError):
            alice.balance = 5

    def test_to_dict(self, alice):
        data = alice.to_dict()
        assert data["balance"] == to_field(1000)
        assert data["nonce"] == to_field(5)
        assert all(is_field(value) for value in data.values())


class TestAccountBounds:
    """Tests for the circuit range limits on accounts."""

    def test_fields_within_limits(self, commitments, alice):
        assert commitments.verify_account_bounds(alice)
        edge = Account(pubkey=alice.pubkey, balance=MAX_BALANCE - 1, nonce=MAX_NONCE - 1, asset_id=1)
        assert commitments.verify_account_bounds(edge)

    @pytest.mark.parametrize(
        "overrides",
        [{"balance": MAX_BALANCE}, {"nonce": MAX_NONCE}, {"asset_id": 0}],
    )
    def test_fields_outside_limits(self, commitments, alice, overrides):
        assert not commitments.verify_account_bounds(Account(**{**alice.__dict__, **overrides}))

    @pytest.mark.parametrize(
        "overrides",
        [{"balance": MAX_BALANCE}, {"nonce": MAX_NONCE}, {"asset_id": 0}],
    )
    def test_create_account_rejects_out_of_range(self, commitments, test_data, overrides):
        with pytest.raises(InvalidAccountError):
            commitments.create_account(test_data["alice_secret"], **overrides)

    def test_create_account_accepts_upper_edge(self, commitments, test_data):
        account = commitments.create_account(
            test_data["alice_secret"], balance=MAX_BALANCE - 1, nonce=MAX_NONCE - 1
        )
        assert account.balance == MAX_BALANCE - 1

class TestAccountCommitment:
    """Tests for account commitments."""

    def test_commitment_formula(self, engine, commitments, alice):
        expected = engine.hash([alice.pubkey, 1000, 5, 1])
        assert commitments.account_commitment(alice) == expected

    def test_deterministic(self, commitments, alice):
        assert commitments.account_commitment(alice) == commitments.account_commitment(alice)

    @pytest.mark.parametrize("field_name", ["balance", "nonce", "asset_id"])
    def test_any_field_change_changes_commitment(self, commitments, alice, field_name):
        changed = Account(**{**alice.__dict__, field_name: getattr(alice, field_name) + 1})
        assert commitments.account_commitment(changed) != commitments.account_commitment(alice)

    def test_verify_account(self, commitments, alice):
        commitment = commitments.account_commitment(alice)
        assert commitments.verify_account(alice, commitment)
        assert commitments.verify_account(alice, commitment.upper().replace("0X", "0x"))

    def test_verify_account_mismatch(self, commitments, alice):
        assert not commitments.verify_account(alice, to_field(1))

    def test_verify_account_malformed(self, commitments, alice):
        assert not commitments.verify_account(alice, "not-a-commitment")
        assert not commitments.verify_account(None, to_field(1))


class TestAccountTransitions:
    """Tests for send/receive state transitions."""

    def test_send(self, commitments, alice):
        sent = commitments.account_send(alice, 300)
        assert sent.balance == 700
        assert sent.nonce == 6
        assert sent.pubkey == alice.pubkey
        assert alice.balance == 1000

    def test_send_entire_balance(self, commitments, alice):
        assert commitments.account_send(alice, 1000).balance == 0

    def test_send_insufficient(self, commitments, alice):
        with pytest.raises(InsufficientBalanceError):
            commitments.account_send(alice, 1001)

    def test_receive(self, commitments, alice):
        received = commitments.account_receive(alice, 50)
        assert received.balance == 1050
        assert received.nonce == 6

    def test_new_state_has_new_commitment(self, commitments, alice):
        sent = commitments.account_send(alice, 0)
        assert commitments.account_commitment(sent) != commitments.account_commitment(alice)


class TestCheckAmount:
    """Tests for amount validation."""

    def test_valid(self):
        assert check_amount(0) == 0
        assert check_amount(42) == 42

    @pytest.mark.parametrize("bad", [-1, 1.5, "10", True, None])
    def test_invalid(self, bad):
        with pytest.raises(InvalidAmountError):
            check_amount(bad)


class TestValueNote:
    """Tests for value notes."""

    def test_note_commitment_formula(self, engine, commitments):
        note = commitments.create_note(500, 2, asset_id=3)
        assert commitments.note_commitment(note) == engine.hash([500, 2, 3])

    def test_commitment_id_not_committed(self, commitments):
        first = commitments.create_note(500, 0, commitment_id=1)
        second = commitments.create_note(500, 0, commitment_id=2)
        assert commitments.note_commitment(first) == commitments.note_commitment(second)

    def test_random_commitment_id(self, commitments):
        first = commitments.create_note(1, 0)
        second = commitments.create_note(1, 0)
        assert is_field(first.commitment_id)
        assert first.commitment_id != second.commitment_id

    def test_explicit_commitment_id(self, commitments):
        note = commitments.create_note(1, 0, commitment_id="0x2A")
        assert note.commitment_id == to_field(42)

    def test_verify_note(self, commitments):
        note = commitments.create_note(500, 0)
        commitment = commitments.note_commitment(note)
        assert commitments.verify_note(note, commitment)
        assert not commitments.verify_note(note, to_field(1))
        assert not commitments.verify_note(note, "junk")

    def test_round_trip_through_dict(self):
        note = ValueNote(value=10, nonce=1, asset_id=1, commitment_id=7)
        assert ValueNote(**note.to_dict()) == note

    @pytest.mark.parametrize("field_name", ["value", "nonce", "asset_id"])
    def test_field_wider_than_32_bytes_rejected(self, field_name):
        values = {"value": 1, "nonce": 0, "asset_id": 1, field_name: 2 ** 256}
        with pytest.raises(EncodingError):
            ValueNote(**values)
