"""Pydantic wire models for proofs, prover input bundles, and snapshots."""

from datetime import datetime
from typing import Annotated, Any, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from zkt.utils.encoding import to_field

MERKLE_DEPTH = 20

FieldElement = Annotated[str, BeforeValidator(to_field)]


class AccountModel(BaseModel):
    """Account fields in canonical field form."""

    model_config = ConfigDict(frozen=True)

    pubkey: FieldElement
    balance: FieldElement
    nonce: FieldElement
    asset_id: FieldElement


class ValueNoteModel(BaseModel):
    """Value-note fields in canonical field form."""

    model_config = ConfigDict(frozen=True)

    value: FieldElement
    nonce: FieldElement
    asset_id: FieldElement
    commitment_id: FieldElement


class MerkleProofModel(BaseModel):
    """Merkle proof wire format. ``indices[i] == 1`` means the node is a right child."""

    root: FieldElement
    path: List[FieldElement] = Field(..., min_length=MERKLE_DEPTH, max_length=MERKLE_DEPTH)
    indices: List[int] = Field(..., min_length=MERKLE_DEPTH, max_length=MERKLE_DEPTH)


# Account variant


class AccountPublicInputs(BaseModel):
    merkle_root: FieldElement
    sender_nullifier: FieldElement
    sender_new_commitment: FieldElement
    recipient_new_commitment: FieldElement
    asset_id: FieldElement


class AccountPrivateInputs(BaseModel):
    sender_account: AccountModel
    sender_secret_key: FieldElement
    transfer_amount: FieldElement
    recipient_pubkey: FieldElement
    recipient_old_balance: FieldElement
    recipient_old_nonce: FieldElement
    sender_new_account: AccountModel
    sender_merkle_path: List[FieldElement] = Field(..., min_length=MERKLE_DEPTH, max_length=MERKLE_DEPTH)
    sender_merkle_indices: List[FieldElement] = Field(..., min_length=MERKLE_DEPTH, max_length=MERKLE_DEPTH)


class AccountProofInputs(BaseModel):
    """Input bundle for the account-variant prover."""

    public_inputs: AccountPublicInputs
    private_inputs: AccountPrivateInputs

    def public_inputs_list(self) -> List[str]:
        """Public inputs in circuit declaration order."""
        public = self.public_inputs
        return [
            public.merkle_root,
            public.sender_nullifier,
            public.sender_new_commitment,
            public.recipient_new_commitment,
            public.asset_id,
        ]

    def circuit_inputs(self) -> dict:
        """Flat input map handed to the prover."""
        return {**self.public_inputs.model_dump(), **self.private_inputs.model_dump()}


# Value-note variant


class NotePublicInputs(BaseModel):
    merkle_root: FieldElement
    nullifier_alice: FieldElement
    commitment_alice_new: FieldElement
    commitment_bob_new: FieldElement
    asset_id: FieldElement


class NotePrivateInputs(BaseModel):
    value_alice_old: FieldElement
    value_alice_new: FieldElement
    value_bob_received: FieldElement
    nonce_alice_old: FieldElement
    nonce_alice_new: FieldElement
    alice_secret_key: FieldElement
    alice_old_commitment_id: FieldElement
    merkle_path: List[FieldElement] = Field(..., min_length=MERKLE_DEPTH, max_length=MERKLE_DEPTH)
    merkle_indices: List[bool] = Field(..., min_length=MERKLE_DEPTH, max_length=MERKLE_DEPTH)


class NoteProofInputs(BaseModel):
    """Input bundle for the value-note prover."""

    public_inputs: NotePublicInputs
    private_inputs: NotePrivateInputs

    def public_inputs_list(self) -> List[str]:
        public = self.public_inputs
        return [
            public.merkle_root,
            public.nullifier_alice,
            public.commitment_alice_new,
            public.commitment_bob_new,
            public.asset_id,
        ]

    def circuit_inputs(self) -> dict:
        return {**self.public_inputs.model_dump(), **self.private_inputs.model_dump()}


# Accumulator snapshots


class LeafSnapshot(BaseModel):
    hash: FieldElement
    data: Optional[Any] = None


class AccumulatorSnapshot(BaseModel):
    """
    Serialized accumulator.

    ``root`` is informational: importers rebuild from ``leaves`` and reject the
    snapshot if the rebuilt root disagrees.
    """

    depth: int = Field(default=MERKLE_DEPTH, ge=1, le=64)
    leaves: List[LeafSnapshot] = Field(default_factory=list)
    root: Optional[FieldElement] = None
    timestamp: Optional[datetime] = None


# HTTP request / response models


class HealthResponse(BaseModel):
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(default_factory=datetime.now)


class StateResponse(BaseModel):
    merkle_root: FieldElement = Field(..., description="Current accumulator root")
    tree_depth: int = Field(..., description="Fixed proof depth")
    num_leaves: int = Field(..., description="Number of committed entities")
    num_nullifiers: int = Field(..., description="Number of spent nullifiers")


class CreateAccountRequest(BaseModel):
    owner: str = Field(..., min_length=1, description="Owner key the account is filed under")
    secret_key: Optional[FieldElement] = Field(default=None, description="Generated when omitted")
    balance: int = Field(default=0, ge=0)
    nonce: int = Field(default=0, ge=0)
    asset_id: int = Field(default=1, ge=1)


class AccountResponse(BaseModel):
    account: AccountModel
    commitment: FieldElement
    merkle_root: FieldElement
    secret_key: Optional[FieldElement] = None


class TransferRequest(BaseModel):
    sender_secret_key: FieldElement
    sender: AccountModel
    recipient: AccountModel
    amount: int = Field(..., ge=0)
