"""Contract for the external zero-knowledge prover and verifier.

The core never builds or checks proofs itself. It hands a packaged input
bundle to whatever proving system is wired in and consults a verifier
before settling a transfer.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Protocol, runtime_checkable


@dataclass
class ProofResult:
    """Opaque proof bytes plus the public inputs the prover committed to."""

    proof: bytes
    public_inputs: List[str] = field(default_factory=list)


@runtime_checkable
class ExternalProver(Protocol):
    """Anything that turns a circuit input map into a proof."""

    def generate_proof(self, inputs: Dict[str, Any]) -> ProofResult:
        ...


@runtime_checkable
class ExternalVerifier(Protocol):
    """Anything that checks a proof against ordered public inputs."""

    def verify(self, proof: bytes, public_inputs: List[str]) -> bool:
        ...
