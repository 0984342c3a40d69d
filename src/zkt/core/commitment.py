"""Entities and their commitments.

Paper-style notation used below:
    account commitment  cm = H(pk || balance || nonce || asset)
    note commitment     cm = H(value || nonce || asset)
    public key          pk = H(sk)
"""

import secrets
from dataclasses import dataclass, field, replace
from typing import List, Optional, Sequence

from zkt.crypto.engine import CryptoEngine
from zkt.exceptions import (
    EncodingError,
    InsufficientBalanceError,
    InvalidAccountError,
    InvalidAmountError,
)
from zkt.utils.encoding import FIELD_MODULUS, FieldLike, field_to_int, to_field

# Circuit range limits for account fields
MAX_BALANCE = 10 ** 9
MAX_NONCE = 10 ** 9


def generate_secret_key() -> str:
    """
    Generate a secret key uniformly below the field modulus.

    Candidates at or above the modulus are rejected and redrawn, which keeps
    the distribution uniform inside the field.

    Returns:
        str: Canonical field element
    """
    while True:
        candidate = int.from_bytes(secrets.token_bytes(32), "big")
        if candidate < FIELD_MODULUS:
            return to_field(candidate)


def check_amount(amount: int) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmountError(f"Amount must be an integer, got {type(amount).__name__}")
    if amount < 0:
        raise InvalidAmountError(f"Amount must be non-negative, got {amount}")
    return amount


def _decode_numeric(entity: object, names: Sequence[str]) -> None:
    for name in names:
        value = getattr(entity, name)
        if isinstance(value, bool) or not isinstance(value, (int, str)):
            raise EncodingError(f"{name} must be a non-negative integer")
        object.__setattr__(entity, name, field_to_int(value))


@dataclass(frozen=True)
class Account:
    """Persistent balance entity. Replaced, never edited, on each transfer."""

    pubkey: str
    balance: int
    nonce: int
    asset_id: int

    def __post_init__(self):
        object.__setattr__(self, "pubkey", to_field(self.pubkey))
        _decode_numeric(self, ("balance", "nonce", "asset_id"))

    def fields(self) -> List[str]:
        """Committed fields in circuit order."""
        return [self.pubkey, to_field(self.balance), to_field(self.nonce), to_field(self.asset_id)]

    def to_dict(self) -> dict:
        return {
            "pubkey": self.pubkey,
            "balance": to_field(self.balance),
            "nonce": to_field(self.nonce),
            "asset_id": to_field(self.asset_id),
        }


@dataclass(frozen=True)
class ValueNote:
    """Single-use note. ``commitment_id`` is an opaque tag bound to the note."""

    value: int
    nonce: int
    asset_id: int
    commitment_id: str = field(default_factory=lambda: to_field(secrets.randbits(128)))

    def __post_init__(self):
        object.__setattr__(self, "commitment_id", to_field(self.commitment_id))
        _decode_numeric(self, ("value", "nonce", "asset_id"))

    def fields(self) -> List[str]:
        """Committed fields in circuit order."""
        return [to_field(self.value), to_field(self.nonce), to_field(self.asset_id)]

    def to_dict(self) -> dict:
        return {
            "value": to_field(self.value),
            "nonce": to_field(self.nonce),
            "asset_id": to_field(self.asset_id),
            "commitment_id": self.commitment_id,
        }


class CommitmentScheme:
    """
    Commitment derivation for both protocol variants.

    All methods are pure compositions of ``CryptoEngine.hash``; the same
    fields always give the same commitment and any field change gives a new one.
    """

    def __init__(self, engine: CryptoEngine):
        self.engine = engine

    def derive_pubkey(self, secret: FieldLike) -> str:
        """pk = H(sk)"""
        return self.engine.hash([secret])

    def account_commitment(self, account: Account) -> str:
        """cm = H(pubkey, balance, nonce, asset_id)"""
        return self.engine.hash(account.fields())

    def note_commitment(self, note: ValueNote) -> str:
        """cm = H(value, nonce, asset_id)"""
        return self.engine.hash(note.fields())

    def verify_account(self, account: Account, commitment: str) -> bool:
        """Recompute an account commitment and compare. Never raises."""
        try:
            return self.account_commitment(account) == to_field(commitment)
        except (EncodingError, TypeError, AttributeError):
            return False

    def verify_note(self, note: ValueNote, commitment: str) -> bool:
        """Recompute a note commitment and compare. Never raises."""
        try:
            return self.note_commitment(note) == to_field(commitment)
        except (EncodingError, TypeError, AttributeError):
            return False

    @staticmethod
    def verify_account_bounds(account: Account) -> bool:
        """Balance and nonce below 10**9 and a non-zero asset id."""
        return account.balance < MAX_BALANCE and account.nonce < MAX_NONCE and account.asset_id > 0

    def create_account(self, secret: FieldLike, balance: int = 0, nonce: int = 0,
                       asset_id: int = 1) -> Account:
        """
        Create an account owned by ``secret``.

        Args:
            secret: Owner secret key
            balance: Opening balance
            nonce: Opening nonce
            asset_id: Asset identifier

        Returns:
            Account: New account with pubkey derived from the secret

        Raises:
            InvalidAccountError: If the fields fall outside the range limits
        """
        account = Account(
            pubkey=self.derive_pubkey(secret),
            balance=balance,
            nonce=nonce,
            asset_id=asset_id,
        )
        if not self.verify_account_bounds(account):
            raise InvalidAccountError(
                f"Account out of range: balance={account.balance} nonce={account.nonce} "
                f"asset_id={account.asset_id}"
            )
        return account

    @staticmethod
    def create_note(value: int, nonce: int, asset_id: int = 1, commitment_id: Optional[FieldLike] = None) -> ValueNote:
        if commitment_id is None:
            return ValueNote(value=value, nonce=nonce, asset_id=asset_id)
        return ValueNote(value=value, nonce=nonce, asset_id=asset_id, commitment_id=commitment_id)

    @staticmethod
    def account_send(account: Account, amount: int) -> Account:
        """
        New account state after sending ``amount``.

        Raises:
            InsufficientBalanceError: If the balance would go negative
        """
        amount = check_amount(amount)
        if amount > account.balance:
            raise InsufficientBalanceError(
                f"Insufficient balance: {account.balance} < {amount}"
            )
        return replace(account, balance=account.balance - amount, nonce=account.nonce + 1)

    @staticmethod
    def account_receive(account: Account, amount: int) -> Account:
        """New account state after receiving ``amount``."""
        amount = check_amount(amount)
        return replace(account, balance=account.balance + amount, nonce=account.nonce + 1)
