"""Content hashing: the identity of unit text."""

from __future__ import annotations

import hashlib

from transmark.hashing.normalizer import normalize_text

DEFAULT_LENGTH = 8

# Fixed digest for text that normalizes to nothing
EMPTY_HASH = "0" * DEFAULT_LENGTH


class HashCalculator:
    """Truncated hex digest over normalized text."""

    def __init__(self, algorithm: str = "sha256", length: int = DEFAULT_LENGTH) -> None:
        if algorithm not in hashlib.algorithms_available:
            raise ValueError(f"Unsupported hash algorithm: {algorithm!r}")
        if length < 6:
            raise ValueError(f"hash length must be at least 6, got {length}")
        self.algorithm = algorithm
        self.length = length

    def calculate(self, text: str, normalize: bool = True) -> str:
        processed = normalize_text(text) if normalize else text
        if processed == "":
            return "0" * self.length
        digest = hashlib.new(self.algorithm, processed.encode("utf-8")).hexdigest()
        return digest[: self.length]

    __call__ = calculate


_default_calculator = HashCalculator()


def compute_hash(text: str, normalize: bool = True) -> str:
    """SHA-256 of the normalized text, truncated to the first 8 hex characters."""
    return _default_calculator.calculate(text, normalize)
