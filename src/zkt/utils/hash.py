"""Hash backends over canonical field elements.

A backend takes an ordered list of field elements and returns a field
element. The reference construction concatenates the canonical strings
(``0x`` prefixes included) and digests the UTF-8 text, which keeps outputs
bit-compatible with the circuit test vectors.
"""

import asyncio
from typing import Awaitable, Callable, Dict, List, Sequence

from cryptography.hazmat.primitives import hashes

from zkt.exceptions import HashBackendError
from zkt.utils.encoding import bytes_to_field

HashBackend = Callable[[Sequence[str]], str]


def _digest(algorithm: hashes.HashAlgorithm, data: bytes) -> bytes:
    digest = hashes.Hash(algorithm)
    digest.update(data)
    return digest.finalize()


def sha256(data: bytes) -> bytes:
    """
    Compute SHA-256 of raw bytes.

    Args:
        data: Bytes to hash

    Returns:
        bytes: 32-byte digest
    """
    return _digest(hashes.SHA256(), data)


def _concatenate(inputs: Sequence[str]) -> bytes:
    return "".join(inputs).encode("utf-8")


def sha256_fields(inputs: Sequence[str]) -> str:
    """SHA-256 over the concatenated canonical strings."""
    return bytes_to_field(sha256(_concatenate(inputs)))


def blake2s_fields(inputs: Sequence[str]) -> str:
    """BLAKE2s-256 over the concatenated canonical strings."""
    return bytes_to_field(_digest(hashes.BLAKE2s(32), _concatenate(inputs)))


def sha3_256_fields(inputs: Sequence[str]) -> str:
    """SHA3-256 over the concatenated canonical strings."""
    return bytes_to_field(_digest(hashes.SHA3_256(), _concatenate(inputs)))


HASH_BACKENDS: Dict[str, HashBackend] = {
    "sha256": sha256_fields,
    "blake2s": blake2s_fields,
    "sha3_256": sha3_256_fields,
}


def get_hash_backend(name: str) -> HashBackend:
    """
    Look up a registered backend by name.

    Raises:
        HashBackendError: If no backend is registered under ``name``
    """
    try:
        return HASH_BACKENDS[name]
    except KeyError:
        known = ", ".join(sorted(HASH_BACKENDS))
        raise HashBackendError(f"Unknown hash backend {name!r} (known: {known})") from None


class AwaitedHashBackend:
    """
    Adapter for hash engines exposed as coroutines.

    Each call runs the coroutine to completion on a private event loop, so the
    digest is always fully resolved before it is returned. It must not be
    called from inside a running event loop.
    """

    def __init__(self, hash_fn: Callable[[List[str]], Awaitable[str]]):
        self._hash_fn = hash_fn
        self._loop = asyncio.new_event_loop()

    def __call__(self, inputs: Sequence[str]) -> str:
        return self._loop.run_until_complete(self._hash_fn(list(inputs)))

    def close(self) -> None:
        """Close the private event loop."""
        if not self._loop.is_closed():
            self._loop.close()
