"""Cryptographic primitives module"""

from zkt.crypto.engine import CryptoEngine
from zkt.crypto.prover import ExternalProver, ExternalVerifier, ProofResult

__all__ = [
    'CryptoEngine',
    'ExternalProver',
    'ExternalVerifier',
    'ProofResult',
]
