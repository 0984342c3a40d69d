"""Explicit hashing handle shared by every component."""

import logging
from typing import Optional, Sequence

from zkt.config import Settings
from zkt.exceptions import HashBackendError
from zkt.utils.encoding import FieldLike, is_field, to_field
from zkt.utils.hash import HashBackend, get_hash_backend, sha256_fields

logger = logging.getLogger(__name__)


class CryptoEngine:
    """
    Field hash used by commitments, nullifiers, and the accumulator.

    The engine is constructed by the caller and passed into each component.
    Swapping the backend is the only difference between the proving
    configuration and a lightweight simulation.
    """

    def __init__(self, backend: Optional[HashBackend] = None, strict_fields: bool = False,
                 name: Optional[str] = None):
        self._backend = backend or sha256_fields
        self.strict_fields = strict_fields
        self.name = name or getattr(self._backend, "__name__", type(self._backend).__name__)

    @classmethod
    def from_settings(cls, settings: Settings) -> "CryptoEngine":
        """Build an engine from configuration."""
        backend = get_hash_backend(settings.hash_backend)
        logger.debug(f"Using hash backend {settings.hash_backend}")
        return cls(backend=backend, strict_fields=settings.strict_field_modulus,
                   name=settings.hash_backend)

    def field(self, value: FieldLike) -> str:
        """Canonicalize a value under this engine's modulus policy."""
        return to_field(value, strict=self.strict_fields)

    def hash(self, inputs: Sequence[FieldLike]) -> str:
        """
        Hash an ordered list of field elements.

        Args:
            inputs: Values accepted by ``to_field``

        Returns:
            str: Canonical field element

        Raises:
            EncodingError: If an input is not encodable
            HashBackendError: If the backend returns a non-canonical digest
        """
        fields = [self.field(value) for value in inputs]
        digest = self._backend(fields)
        if not is_field(digest):
            raise HashBackendError(f"Backend returned non-canonical digest: {digest!r}")
        return digest

    def hash_single(self, value: FieldLike) -> str:
        return self.hash([value])

    def hash_pair(self, left: FieldLike, right: FieldLike) -> str:
        return self.hash([left, right])

    def __repr__(self) -> str:
        return f"CryptoEngine(backend={self.name}, strict_fields={self.strict_fields})"
