"""Account registry: keeps entities, owners, and the accumulator in step.

Each tracked commitment maps to an entry ``{account, owner, added_at, seq}``
and to exactly one accumulator leaf. ``seq`` comes from a per-registry
counter and fixes the order of entries; ``added_at`` is informational. ``verify_integrity`` checks that the two
sets agree; after loading a snapshot that disagrees, the tree is rebuilt
from the tracked entries.

Settlement Flow:
    1. The bundle's root must still be the current root
    2. The nullifier must be unspent
    3. The external verifier must accept the proof
    4. Only then: register the nullifier, replace the sender leaf, and
       update (or insert) the recipient leaf
"""

import itertools
import logging
import time
from typing import Any, Dict, List, Optional

from zkt.core.commitment import Account, CommitmentScheme
from zkt.core.merkle_tree import MerkleAccumulator, MerkleProof
from zkt.core.nullifier import NullifierSet
from zkt.core.transfer import AccountTransfer, TransferEngine
from zkt.crypto.engine import CryptoEngine
from zkt.crypto.prover import ExternalVerifier
from zkt.exceptions import (
    ConservationViolationError,
    DeserializationError,
    DoubleSpendError,
    DuplicateLeafError,
    IntegrityError,
    InvalidProofError,
    LeafNotFoundError,
    StaleRootError,
    TreeCapacityExceededError,
)
from zkt.storage.base import StateStore
from zkt.storage.database import DatabaseManager

logger = logging.getLogger(__name__)


class AccountRegistry:
    """
    Coordinates accounts with accumulator state.

    Not thread-safe. One writer at a time, and the writer holds the registry
    from proof generation until ``settle`` returns.
    """

    def __init__(self, engine: CryptoEngine, accumulator: Optional[MerkleAccumulator] = None,
                 store: Optional[StateStore] = None, snapshots: Optional[DatabaseManager] = None,
                 snapshot_name: str = "accounts"):
        self.engine = engine
        self.accumulator = accumulator or MerkleAccumulator(engine)
        self.store = store
        self.snapshots = snapshots
        self.snapshot_name = snapshot_name

        self.commitments = CommitmentScheme(engine)
        self.transfers = TransferEngine(engine, self.accumulator)
        self.spent = NullifierSet()
        self._entries: Dict[str, Dict[str, Any]] = {}
        self._sequence = itertools.count()

    # Membership

    def add_account(self, account: Account, owner: str) -> str:
        """
        Commit an account and append it to the accumulator.

        Adding an already tracked account is a no-op.

        Returns:
            str: The account commitment
        """
        commitment = self.commitments.account_commitment(account)
        if commitment in self._entries:
            logger.info(f"Account already in tree: {commitment[:10]}...")
            return commitment

        entry = self._entry(account, owner)
        self.accumulator.insert(commitment, payload=_payload(entry))
        self._entries[commitment] = entry
        if self.store is not None:
            self.store.save(owner, account)

        logger.info(
            f"Added account {commitment[:10]}... for {owner}, "
            f"root {self.accumulator.root[:10]}..., total {len(self._entries)}"
        )
        return commitment

    def update_account(self, old_account: Account, new_account: Account, owner: str) -> bool:
        """Replace an account's leaf with its new state. False if the old one is untracked."""
        old_commitment = self.commitments.account_commitment(old_account)
        if old_commitment not in self._entries:
            return False

        new_commitment = self.commitments.account_commitment(new_account)
        entry = self._entry(new_account, owner)
        entry["added_at"] = self._entries[old_commitment]["added_at"]
        entry["seq"] = self._entries[old_commitment]["seq"]
        self.accumulator.update(old_commitment, new_commitment, payload=_payload(entry))
        del self._entries[old_commitment]
        self._entries[new_commitment] = entry
        if self.store is not None:
            self.store.save(owner, new_account)

        logger.info(
            f"Updated account {old_commitment[:10]}... -> {new_commitment[:10]}... "
            f"(balance {new_account.balance}, nonce {new_account.nonce})"
        )
        return True

    def remove_account(self, account: Account) -> bool:
        """
        Drop an account and rebuild the tree.

        Proofs issued for any later leaf are stale afterwards.
        """
        commitment = self.commitments.account_commitment(account)
        entry = self._entries.pop(commitment, None)
        if entry is None:
            return False

        self.accumulator.remove(commitment)
        if self.store is not None:
            self.store.delete(entry["owner"], account.pubkey)

        logger.info(f"Removed account {commitment[:10]}..., {len(self._entries)} remaining")
        return True

    def has_account(self, account: Account) -> bool:
        return self.commitments.account_commitment(account) in self._entries

    def generate_proof(self, account: Account) -> MerkleProof:
        """
        Inclusion proof for an account's current commitment.

        Raises:
            LeafNotFoundError: If the account is not tracked
        """
        commitment = self.commitments.account_commitment(account)
        proof = self.accumulator.proof(commitment)
        logger.debug(f"Generated proof for {commitment[:10]}..., tree size {len(self.accumulator)}")
        return proof

    def get_account_by_commitment(self, commitment: str) -> Optional[Account]:
        entry = self._entries.get(commitment)
        return entry["account"] if entry else None

    def accounts_by_owner(self, owner: str) -> List[Account]:
        entries = sorted(self._entries.values(), key=lambda e: e["seq"])
        return [e["account"] for e in entries if e["owner"] == owner]

    def get_stats(self) -> dict:
        return {
            "total_accounts": len(self._entries),
            "leaf_count": len(self.accumulator),
            "tree_root": self.accumulator.root,
            "spent_nullifiers": len(self.spent),
        }

    # Integrity

    def verify_integrity(self) -> bool:
        """True when tracked commitments and accumulator leaves are the same set."""
        tracked = sorted(self._entries)
        leaves = sorted(self.accumulator.leaves)
        if tracked != leaves:
            logger.error(f"Tree integrity error: {len(tracked)} tracked vs {len(leaves)} leaves")
            return False
        return True

    def rebuild_tree(self) -> None:
        """
        Rebuild the accumulator from tracked entries.

        Leaves keep their current relative order; tracked entries without a
        leaf follow in sequence order.
        """
        position = {leaf: i for i, leaf in enumerate(self.accumulator.leaves)}
        ordered = sorted(
            self._entries.items(),
            key=lambda item: (position.get(item[0], len(position)), item[1]["seq"]),
        )
        self.accumulator.clear()
        for commitment, entry in ordered:
            self.accumulator.insert(commitment, payload=_payload(entry))

    # Settlement

    def transfer(self, sender_secret: str, sender: Account, recipient: Account,
                 amount: int) -> AccountTransfer:
        """Validate and package a transfer against the current tree."""
        return self.transfers.transfer(sender_secret, sender, recipient, amount)

    def settle(self, transfer: AccountTransfer, proof: bytes, verifier: ExternalVerifier,
               sender_owner: Optional[str] = None, recipient_owner: Optional[str] = None) -> str:
        """
        Apply a proven transfer to the tree.

        Root and nullifier are read from the packaged public inputs, and the
        states written to the tree must hash to the commitments in those
        inputs. Every check runs before the first mutation.

        Returns:
            str: New accumulator root

        Raises:
            IntegrityError: If the transfer disagrees with its public inputs
                or the sender is no longer tracked
            ConservationViolationError: If the recipient states do not match the sent amount
            StaleRootError: If the tree changed since the transfer was computed
            DoubleSpendError: If the nullifier is already spent
            InvalidProofError: If the verifier rejects the proof
            DuplicateLeafError: If a new state is already committed
            TreeCapacityExceededError: If a new recipient leaf does not fit
        """
        proof_inputs = transfer.proof_inputs or TransferEngine.package(transfer)
        public = proof_inputs.public_inputs
        sender_commitment, recipient_old_commitment = self._check_bundle(transfer, public)

        if public.merkle_root != self.accumulator.root:
            raise StaleRootError("Transfer was computed against a root that is no longer current")
        if self.spent.is_spent(public.sender_nullifier):
            raise DoubleSpendError(f"Nullifier {public.sender_nullifier[:10]}... already spent")
        if not verifier.verify(proof, proof_inputs.public_inputs_list()):
            raise InvalidProofError("External verifier rejected the transfer proof")

        sender_entry = self._entries.get(sender_commitment)
        if sender_entry is None:
            raise IntegrityError("Sender commitment is in the tree but not tracked")
        sender_owner = sender_owner or sender_entry["owner"]
        recipient_entry = self._entries.get(recipient_old_commitment)
        if recipient_owner is None:
            recipient_owner = recipient_entry["owner"] if recipient_entry else transfer.recipient_old.pubkey

        for commitment in (public.sender_new_commitment, public.recipient_new_commitment):
            if commitment in self.accumulator:
                raise DuplicateLeafError(f"New state {commitment[:10]}... is already committed")
        if recipient_entry is None and len(self.accumulator) >= self.accumulator.max_leaves:
            raise TreeCapacityExceededError("No room for the recipient's new leaf")

        self.spent.register(public.sender_nullifier, merkle_root=public.merkle_root)
        self.update_account(transfer.sender, transfer.sender_new, sender_owner)
        if recipient_entry is not None:
            self.update_account(transfer.recipient_old, transfer.recipient_new, recipient_owner)
        else:
            self.add_account(transfer.recipient_new, recipient_owner)

        logger.info(f"Settled transfer, new root {self.accumulator.root[:10]}...")
        return self.accumulator.root

    def _check_bundle(self, transfer: AccountTransfer, public) -> tuple:
        """Tie the transfer's states to its public inputs. Returns the old commitments."""
        commit = self.commitments.account_commitment
        sender_commitment = commit(transfer.sender)
        nullifier = self.transfers.nullifiers.account_nullifier(sender_commitment, transfer.sender_secret)
        if (sender_commitment != transfer.sender_commitment
                or nullifier != public.sender_nullifier
                or commit(transfer.sender_new) != public.sender_new_commitment
                or commit(transfer.recipient_new) != public.recipient_new_commitment):
            raise IntegrityError("Transfer states do not match their packaged public inputs")

        sender, sender_new = transfer.sender, transfer.sender_new
        recipient_old, recipient_new = transfer.recipient_old, transfer.recipient_new
        if (sender_new.pubkey != sender.pubkey
                or recipient_new.pubkey != recipient_old.pubkey
                or recipient_new.asset_id != recipient_old.asset_id
                or recipient_new.nonce != recipient_old.nonce + 1
                or sender.balance - sender_new.balance != recipient_new.balance - recipient_old.balance):
            raise ConservationViolationError("Recipient states do not account for the amount sent")
        return sender_commitment, commit(recipient_old)

    # Persistence

    def export_state(self) -> dict:
        return self.accumulator.export_state()

    def import_state(self, state: Any) -> None:
        """
        Restore entries and tree from an exported accumulator state.

        Raises:
            DeserializationError: If the snapshot or a payload is corrupt
            IntegrityError: If the snapshot fails the accumulator's checks
        """
        self._entries = {}
        self.accumulator.import_state(state)

        entries: Dict[str, Dict[str, Any]] = {}
        try:
            for commitment in self.accumulator.leaves:
                data = self.accumulator.payload(commitment)
                entries[commitment] = self._entry(
                    Account(**data["account"]), data["owner"], added_at=data["added_at"]
                )
        except (KeyError, TypeError, ValueError, LeafNotFoundError) as e:
            self.accumulator.clear()
            self.accumulator.corrupted = True
            raise DeserializationError("Snapshot leaf payload is not an account entry") from e

        self._entries = {
            commitment: entry
            for commitment, entry in entries.items()
            if self.commitments.verify_account(entry["account"], commitment)
        }
        if not self.verify_integrity():
            logger.warning("Snapshot leaves disagree with their accounts, rebuilding tree")
            self.rebuild_tree()

    def save_snapshot(self) -> None:
        if self.snapshots is None:
            raise RuntimeError("No snapshot store configured")
        self.snapshots.save_snapshot(self.export_state(), name=self.snapshot_name)

    def load_snapshot(self) -> bool:
        """Load the latest stored snapshot. False if none exists."""
        if self.snapshots is None:
            raise RuntimeError("No snapshot store configured")
        state = self.snapshots.load_latest_snapshot(name=self.snapshot_name)
        if state is None:
            return False
        self.import_state(state)
        logger.info(f"Loaded {len(self._entries)} accounts, root {self.accumulator.root[:10]}...")
        return True

    def _entry(self, account: Account, owner: str, added_at: Optional[float] = None) -> Dict[str, Any]:
        return {
            "account": account,
            "owner": owner,
            "added_at": time.time() if added_at is None else added_at,
            "seq": next(self._sequence),
        }


def _payload(entry: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "account": entry["account"].to_dict(),
        "owner": entry["owner"],
        "added_at": entry["added_at"],
    }
