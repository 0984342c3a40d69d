"""Custom exceptions for the private transfer core."""


class ZKTransferException(Exception):
    """Base exception for all private transfer errors."""
    pass


# Encoding / Cryptography Errors
class CryptoError(ZKTransferException):
    """Base exception for cryptographic errors."""
    pass


class EncodingError(CryptoError, ValueError):
    """Raised when a value cannot be encoded as a canonical field element."""
    pass


class InvalidCommitmentError(CryptoError):
    """Raised when a commitment is invalid."""
    pass


class InvalidNullifierError(CryptoError):
    """Raised when a nullifier is invalid."""
    pass


class HashBackendError(CryptoError):
    """Raised when a hash backend is unknown or returns a malformed digest."""
    pass


# Merkle Tree Errors
class MerkleTreeError(ZKTransferException):
    """Base exception for Merkle accumulator errors."""
    pass


class LeafNotFoundError(MerkleTreeError):
    """Raised when a leaf is not present in the accumulator."""
    pass


class DuplicateLeafError(MerkleTreeError):
    """Raised when a leaf is already present in the accumulator."""
    pass


class TreeCapacityExceededError(MerkleTreeError):
    """Raised when the accumulator holds 2**depth leaves already."""
    pass


class IntegrityError(MerkleTreeError):
    """Raised when tracked commitments and accumulator leaves disagree."""
    pass


# Transfer Errors
class TransferError(ZKTransferException):
    """Base exception for transfer errors."""
    pass


class AccountNotFoundError(TransferError):
    """Raised when the sender is absent from the accumulator or fails inclusion."""
    pass


class InvalidAccountError(TransferError):
    """Raised when account fields fall outside the circuit range limits."""
    pass


class InsufficientBalanceError(TransferError):
    """Raised when the transfer amount exceeds the sender balance."""
    pass


class InvalidAmountError(TransferError):
    """Raised when the transfer amount is negative or not an integer."""
    pass


class AssetMismatchError(TransferError):
    """Raised when sender and recipient hold different assets."""
    pass


class OwnershipError(TransferError):
    """Raised when the secret does not derive the sender public key."""
    pass


class ConservationViolationError(TransferError):
    """Raised when a computed transition creates or destroys value."""
    pass


# Proof / Settlement Errors
class ProofError(ZKTransferException):
    """Base exception for proof-related errors."""
    pass


class InvalidProofError(ProofError):
    """Raised when the external verifier rejects a proof."""
    pass


class DoubleSpendError(ProofError):
    """Raised when a nullifier has already been spent."""
    pass


class StaleRootError(ProofError):
    """Raised when a proof bundle references a root that is no longer current."""
    pass


# Storage Errors
class StorageError(ZKTransferException):
    """Base exception for storage errors."""
    pass


class SerializationError(StorageError):
    """Raised when serialization fails."""
    pass


class DeserializationError(StorageError):
    """Raised when deserialization fails."""
    pass
