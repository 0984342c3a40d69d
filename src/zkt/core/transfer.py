"""Transfer engine: validate a spend and package inputs for the external prover.

Transfer Flow (account variant):
    1. Ownership: H(secret) must equal the sender pubkey
    2. Inclusion: the sender commitment must be in the accumulator and its
       proof must verify against the current root
    3. Balance: amount <= sender.balance
    4. Compute sender_new / recipient_new (balance -+ amount, nonce + 1)
    5. Nullifier: H(sender_commitment, secret)
    6. Package public and private inputs

Every check runs before any new state is hashed, and nothing is mutated:
the accumulator only changes when a verified transfer is settled.

Trust boundary:
    The sender binds only the amount and the recipient public key. The
    recipient's nonce and secret are unauthenticated here; a malformed
    recipient commitment is caught when the recipient later spends it.
"""

import enum
import logging
from dataclasses import dataclass, replace
from typing import Optional

from zkt.core.commitment import Account, CommitmentScheme, ValueNote, check_amount
from zkt.core.merkle_tree import MerkleAccumulator, MerkleProof
from zkt.core.nullifier import NullifierScheme
from zkt.crypto.engine import CryptoEngine
from zkt.crypto.prover import ExternalProver, ProofResult
from zkt.exceptions import (
    AccountNotFoundError,
    AssetMismatchError,
    ConservationViolationError,
    EncodingError,
    InsufficientBalanceError,
    OwnershipError,
    TransferError,
)
from zkt.models.schemas import (
    AccountModel,
    AccountPrivateInputs,
    AccountProofInputs,
    AccountPublicInputs,
    NotePrivateInputs,
    NoteProofInputs,
    NotePublicInputs,
)
from zkt.utils.encoding import FieldLike

logger = logging.getLogger(__name__)


class TransferStage(str, enum.Enum):
    """Protocol stages a transfer moves through."""
    UNVALIDATED = "unvalidated"
    VALIDATED = "validated"
    COMPUTED = "computed"
    PACKAGED = "packaged"


@dataclass
class AccountTransfer:
    """Computed account-variant transfer."""

    sender: Account
    sender_new: Account
    recipient_old: Account
    recipient_new: Account
    amount: int
    sender_secret: str
    sender_commitment: str
    sender_new_commitment: str
    recipient_old_commitment: str
    recipient_new_commitment: str
    nullifier: str
    merkle_proof: MerkleProof
    stage: TransferStage = TransferStage.COMPUTED
    proof_inputs: Optional[AccountProofInputs] = None

    @property
    def merkle_root(self) -> str:
        return self.merkle_proof.root


@dataclass
class NoteTransfer:
    """Computed value-note transfer."""

    note: ValueNote
    note_new: ValueNote
    recipient_note: ValueNote
    amount: int
    secret: str
    note_commitment: str
    note_new_commitment: str
    recipient_commitment: str
    nullifier: str
    merkle_proof: MerkleProof
    stage: TransferStage = TransferStage.COMPUTED
    proof_inputs: Optional[NoteProofInputs] = None

    @property
    def merkle_root(self) -> str:
        return self.merkle_proof.root


class TransferEngine:
    """
    Orchestrates state transitions against one accumulator.

    The accumulator snapshot used to build a proof must stay current until the
    transfer is settled; callers hold exclusive access across that window.
    """

    def __init__(self, engine: CryptoEngine, accumulator: MerkleAccumulator):
        self.engine = engine
        self.accumulator = accumulator
        self.commitments = CommitmentScheme(engine)
        self.nullifiers = NullifierScheme(engine)

    # Account variant

    def transfer(self, sender_secret: FieldLike, sender: Account, recipient_old: Account,
                 amount: int) -> AccountTransfer:
        """
        Validate and package an account-to-account transfer.

        Args:
            sender_secret: Sender secret key
            sender: Current sender account (must be in the accumulator)
            recipient_old: Current recipient account
            amount: Units to move

        Returns:
            AccountTransfer: Computed transfer with ``proof_inputs`` packaged

        Raises:
            InvalidAmountError: If amount is negative or not an integer
            OwnershipError: If the secret does not own the sender
            AccountNotFoundError: If the sender fails the inclusion check
            InsufficientBalanceError: If amount > sender.balance
            AssetMismatchError: If recipient holds a different asset
        """
        transfer = self.prepare(sender_secret, sender, recipient_old, amount)
        self.package(transfer)
        return transfer

    def prepare(self, sender_secret: FieldLike, sender: Account, recipient_old: Account,
                amount: int) -> AccountTransfer:
        """Run every check and compute the new states (stage COMPUTED)."""
        amount = check_amount(amount)
        secret = self._secret(sender_secret)

        # UNVALIDATED -> VALIDATED
        if self.commitments.derive_pubkey(secret) != sender.pubkey:
            raise OwnershipError("Secret key does not own the sender account")

        sender_commitment = self.commitments.account_commitment(sender)
        merkle_proof = self._inclusion_proof(sender_commitment)

        if recipient_old.pubkey == sender.pubkey:
            raise TransferError("Sender and recipient are the same account")
        if amount > sender.balance:
            raise InsufficientBalanceError(f"Insufficient balance: {sender.balance} < {amount}")
        if recipient_old.asset_id != sender.asset_id:
            raise AssetMismatchError(
                f"Recipient asset {recipient_old.asset_id} != sender asset {sender.asset_id}"
            )

        # VALIDATED -> COMPUTED
        sender_new = replace(sender, balance=sender.balance - amount, nonce=sender.nonce + 1)
        recipient_new = replace(
            recipient_old, balance=recipient_old.balance + amount, nonce=recipient_old.nonce + 1
        )
        self._check_conservation(sender.balance, sender_new.balance, amount)
        self._check_conservation(recipient_new.balance, recipient_old.balance, amount)

        transfer = AccountTransfer(
            sender=sender,
            sender_new=sender_new,
            recipient_old=recipient_old,
            recipient_new=recipient_new,
            amount=amount,
            sender_secret=secret,
            sender_commitment=sender_commitment,
            sender_new_commitment=self.commitments.account_commitment(sender_new),
            recipient_old_commitment=self.commitments.account_commitment(recipient_old),
            recipient_new_commitment=self.commitments.account_commitment(recipient_new),
            nullifier=self.nullifiers.account_nullifier(sender_commitment, secret),
            merkle_proof=merkle_proof,
        )
        logger.info(
            f"Computed transfer of {amount} from {sender_commitment[:10]}... "
            f"against root {merkle_proof.root[:10]}..."
        )
        return transfer

    @staticmethod
    def package(transfer: AccountTransfer) -> AccountProofInputs:
        """Build the prover input bundle (stage PACKAGED)."""
        sender = transfer.sender
        proof_inputs = AccountProofInputs(
            public_inputs=AccountPublicInputs(
                merkle_root=transfer.merkle_proof.root,
                sender_nullifier=transfer.nullifier,
                sender_new_commitment=transfer.sender_new_commitment,
                recipient_new_commitment=transfer.recipient_new_commitment,
                asset_id=sender.asset_id,
            ),
            private_inputs=AccountPrivateInputs(
                sender_account=AccountModel(**sender.to_dict()),
                sender_secret_key=transfer.sender_secret,
                transfer_amount=transfer.amount,
                recipient_pubkey=transfer.recipient_old.pubkey,
                recipient_old_balance=transfer.recipient_old.balance,
                recipient_old_nonce=transfer.recipient_old.nonce,
                sender_new_account=AccountModel(**transfer.sender_new.to_dict()),
                sender_merkle_path=transfer.merkle_proof.path,
                sender_merkle_indices=transfer.merkle_proof.indices_as_fields(),
            ),
        )
        transfer.proof_inputs = proof_inputs
        transfer.stage = TransferStage.PACKAGED
        return proof_inputs

    # Value-note variant

    def transfer_note(self, secret: FieldLike, note: ValueNote, amount: int,
                      recipient_note: Optional[ValueNote] = None,
                      recipient_nonce: int = 0) -> NoteTransfer:
        """
        Spend a value note: keep the change, send ``amount`` to a recipient note.

        The recipient note defaults to an empty note at ``recipient_nonce``;
        after the transfer it holds its old value plus ``amount`` with its nonce
        advanced by one.

        Raises:
            InvalidAmountError: If amount is negative or not an integer
            AccountNotFoundError: If the note fails the inclusion check
            InsufficientBalanceError: If amount > note.value
            AssetMismatchError: If the recipient note holds a different asset
        """
        amount = check_amount(amount)
        secret = self._secret(secret)
        if recipient_note is None:
            recipient_note = ValueNote(value=0, nonce=recipient_nonce, asset_id=note.asset_id)

        note_commitment = self.commitments.note_commitment(note)
        merkle_proof = self._inclusion_proof(note_commitment)

        if amount > note.value:
            raise InsufficientBalanceError(f"Insufficient note value: {note.value} < {amount}")
        if recipient_note.asset_id != note.asset_id:
            raise AssetMismatchError(
                f"Recipient asset {recipient_note.asset_id} != note asset {note.asset_id}"
            )

        note_new = ValueNote(value=note.value - amount, nonce=note.nonce + 1, asset_id=note.asset_id)
        recipient_new = replace(
            recipient_note, value=recipient_note.value + amount, nonce=recipient_note.nonce + 1
        )
        self._check_conservation(note.value, note_new.value, amount)
        self._check_conservation(recipient_new.value, recipient_note.value, amount)

        transfer = NoteTransfer(
            note=note,
            note_new=note_new,
            recipient_note=recipient_new,
            amount=amount,
            secret=secret,
            note_commitment=note_commitment,
            note_new_commitment=self.commitments.note_commitment(note_new),
            recipient_commitment=self.commitments.note_commitment(recipient_new),
            nullifier=self.nullifiers.note_nullifier(secret, note.commitment_id),
            merkle_proof=merkle_proof,
        )
        transfer.proof_inputs = NoteProofInputs(
            public_inputs=NotePublicInputs(
                merkle_root=merkle_proof.root,
                nullifier_alice=transfer.nullifier,
                commitment_alice_new=transfer.note_new_commitment,
                commitment_bob_new=transfer.recipient_commitment,
                asset_id=note.asset_id,
            ),
            private_inputs=NotePrivateInputs(
                value_alice_old=note.value,
                value_alice_new=note_new.value,
                value_bob_received=amount,
                nonce_alice_old=note.nonce,
                nonce_alice_new=note_new.nonce,
                alice_secret_key=secret,
                alice_old_commitment_id=note.commitment_id,
                merkle_path=merkle_proof.path,
                merkle_indices=merkle_proof.indices_as_bools(),
            ),
        )
        transfer.stage = TransferStage.PACKAGED
        logger.info(f"Computed note spend of {amount} from {note_commitment[:10]}...")
        return transfer

    # Proving

    @staticmethod
    def prove(proof_inputs, prover: ExternalProver) -> ProofResult:
        """Hand a packaged bundle to the external prover."""
        return prover.generate_proof(proof_inputs.circuit_inputs())

    # Internals

    def _secret(self, secret: FieldLike) -> str:
        try:
            return self.engine.field(secret)
        except EncodingError as e:
            raise OwnershipError(f"Malformed secret key: {e}") from e

    def _inclusion_proof(self, commitment: str) -> MerkleProof:
        if commitment not in self.accumulator:
            raise AccountNotFoundError(f"Commitment {commitment[:10]}... not in accumulator")
        proof = self.accumulator.proof(commitment)
        if not self.accumulator.verify_current(commitment, proof):
            raise AccountNotFoundError(f"Inclusion proof for {commitment[:10]}... failed")
        return proof

    @staticmethod
    def _check_conservation(before: int, after: int, amount: int) -> None:
        if before != after + amount:
            raise ConservationViolationError(f"{before} != {after} + {amount}")
