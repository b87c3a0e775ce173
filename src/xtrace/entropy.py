"""
Entropy sources for identifier and chain id generation.

Uniqueness of task ids, op ids and chain ids relies on entropy length, not
on shared coordination, so a single source may be used by any number of
unrelated events at once.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import random
import secrets
from typing import Optional


class EntropySource(ABC):
    """Supplies random bytes to events and identifiers."""

    @abstractmethod
    def random_bytes(self, n: int) -> bytes:
        """Return ``n`` random bytes."""

    def chain_id(self) -> int:
        """Return a random 16-bit chain id."""
        return int.from_bytes(self.random_bytes(2), "big")


class SystemEntropy(EntropySource):
    """OS-backed CSPRNG. Safe to share across threads."""

    def random_bytes(self, n: int) -> bytes:
        return secrets.token_bytes(n)


class SeededEntropy(EntropySource):
    """Deterministic entropy for tests and reproducible report text."""

    def __init__(self, seed: int = 0) -> None:
        self._random = random.Random(seed)

    def random_bytes(self, n: int) -> bytes:
        return bytes(self._random.getrandbits(8) for _ in range(n))


class SequenceEntropy(EntropySource):
    """
    Replays a fixed byte sequence.

    Lets tests pin exact op ids and chain ids. Raises ``ValueError`` once the
    sequence is exhausted.
    """

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._pos = 0

    def random_bytes(self, n: int) -> bytes:
        if self._pos + n > len(self._data):
            raise ValueError("SequenceEntropy exhausted")
        chunk = self._data[self._pos:self._pos + n]
        self._pos += n
        return chunk


_default: Optional[EntropySource] = None


def default_entropy() -> EntropySource:
    """Process-wide entropy source, created on first use."""
    global _default
    if _default is None:
        _default = SystemEntropy()
    return _default
