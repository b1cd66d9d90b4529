"""Deterministic content hashing for unit identity."""

from transmark.hashing.hasher import EMPTY_HASH, HashCalculator, compute_hash
from transmark.hashing.normalizer import TextNormalizer, normalize_text

__all__ = [
    "EMPTY_HASH",
    "HashCalculator",
    "TextNormalizer",
    "compute_hash",
    "normalize_text",
]
