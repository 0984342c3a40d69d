"""Commitment, nullifier, accumulator, and transfer logic."""
