"""Nullifier derivation and the spent-nullifier registry.

The two protocol variants order their inputs differently:

    account variant      nf = H(commitment || sk)
    value-note variant   nf = H(sk || commitment_id)

Each ordering is consumed by a different external verifier, so the two
derivations stay as separate functions. Merging them would change the
outputs those verifiers already accept.
"""

import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Dict, Optional, Set

from zkt.crypto.engine import CryptoEngine
from zkt.exceptions import EncodingError, InvalidNullifierError
from zkt.utils.encoding import FieldLike, to_field

logger = logging.getLogger(__name__)


class NullifierScheme:
    """Spend-tag derivation for both protocol variants."""

    def __init__(self, engine: CryptoEngine):
        self.engine = engine

    def account_nullifier(self, commitment: FieldLike, secret: FieldLike) -> str:
        """
        Derive the account-variant nullifier nf = H(commitment, secret).

        A new account state has a new commitment, so the same secret yields a
        fresh nullifier after every transfer.
        """
        return self.engine.hash([commitment, secret])

    def note_nullifier(self, secret: FieldLike, commitment_id: FieldLike) -> str:
        """
        Derive the value-note nullifier nf = H(secret, commitment_id).

        ``commitment_id`` is the note's opaque identifier, not its commitment hash.
        """
        return self.engine.hash([secret, commitment_id])

    def verify_account_nullifier(self, commitment: FieldLike, secret: FieldLike,
                                 expected: FieldLike) -> bool:
        try:
            return self.account_nullifier(commitment, secret) == to_field(expected)
        except EncodingError:
            return False

    def verify_note_nullifier(self, secret: FieldLike, commitment_id: FieldLike,
                              expected: FieldLike) -> bool:
        try:
            return self.note_nullifier(secret, commitment_id) == to_field(expected)
        except EncodingError:
            return False


@dataclass
class NullifierRecord:
    """Record of a spent nullifier."""

    nullifier: str
    spent_at: str
    merkle_root: Optional[str] = None
    note: Optional[str] = None

    def serialize(self) -> str:
        """Serialize to JSON."""
        return json.dumps(asdict(self))


class NullifierSet:
    """
    Set of spent nullifiers.

    The set only grows. A nullifier registered twice is a double spend.
    """

    def __init__(self):
        self.nullifiers: Set[str] = set()
        self.records: Dict[str, NullifierRecord] = {}

    def register(self, nullifier: FieldLike, merkle_root: Optional[str] = None,
                 note: Optional[str] = None) -> bool:
        """
        Mark a nullifier as spent.

        Args:
            nullifier: Spend tag
            merkle_root: Root the spend was proven against
            note: Free-form annotation

        Returns:
            True if registered, False if it was already spent

        Raises:
            InvalidNullifierError: If the nullifier is not a field element
        """
        try:
            nullifier = to_field(nullifier)
        except EncodingError as e:
            raise InvalidNullifierError(str(e)) from e

        if nullifier in self.nullifiers:
            logger.warning(f"Rejected double spend of nullifier {nullifier[:10]}...")
            return False

        self.nullifiers.add(nullifier)
        self.records[nullifier] = NullifierRecord(
            nullifier=nullifier,
            spent_at=datetime.now(timezone.utc).isoformat(),
            merkle_root=merkle_root,
            note=note,
        )
        return True

    def is_spent(self, nullifier: FieldLike) -> bool:
        """Check if a nullifier has been spent."""
        try:
            return to_field(nullifier) in self.nullifiers
        except EncodingError:
            return False

    def get_record(self, nullifier: FieldLike) -> Optional[NullifierRecord]:
        return self.records.get(to_field(nullifier))

    def __len__(self) -> int:
        return len(self.nullifiers)

    def __contains__(self, nullifier: object) -> bool:
        return isinstance(nullifier, (str, int)) and self.is_spent(nullifier)
