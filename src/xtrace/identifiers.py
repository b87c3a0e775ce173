"""
Task, op and chain identifiers.

A TaskId names one logical distributed request; an OpId names one traced
point within it. Both are opaque byte strings rendered as uppercase hex.
Chain ids are plain 16-bit integers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Optional

from xtrace.entropy import EntropySource, default_entropy

DEFAULT_CHAIN_ID = 0
MAX_CHAIN_ID = 0xFFFF


class _HexId:
    """Shared behaviour for fixed-length byte identifiers."""

    VALID_LENGTHS: ClassVar[tuple[int, ...]] = ()

    value: bytes

    def _check_length(self) -> None:
        if len(self.value) not in self.VALID_LENGTHS:
            raise ValueError(
                f"{type(self).__name__} must be one of {self.VALID_LENGTHS} bytes, "
                f"got {len(self.value)}"
            )

    def __len__(self) -> int:
        return len(self.value)

    def hex(self) -> str:
        return self.value.hex().upper()

    def __str__(self) -> str:
        return self.hex()


@dataclass(frozen=True)
class TaskId(_HexId):
    """Identifier of a distributed task."""

    VALID_LENGTHS: ClassVar[tuple[int, ...]] = (4, 8, 12, 20)
    DEFAULT_LENGTH: ClassVar[int] = 8

    value: bytes

    def __post_init__(self) -> None:
        self._check_length()

    @classmethod
    def random(
        cls, length: int = 8, entropy: Optional[EntropySource] = None
    ) -> TaskId:
        source = entropy or default_entropy()
        return cls(source.random_bytes(length))

    @classmethod
    def from_hex(cls, s: str) -> TaskId:
        """Parse a TaskId from hex. Raises ValueError on bad input."""
        return cls(bytes.fromhex(s))


@dataclass(frozen=True)
class OpId(_HexId):
    """Identifier of one operation within a task."""

    VALID_LENGTHS: ClassVar[tuple[int, ...]] = (4, 8)
    DEFAULT_LENGTH: ClassVar[int] = 8

    value: bytes

    def __post_init__(self) -> None:
        self._check_length()

    @classmethod
    def random(
        cls, length: int = 4, entropy: Optional[EntropySource] = None
    ) -> OpId:
        source = entropy or default_entropy()
        return cls(source.random_bytes(length))

    @classmethod
    def from_hex(cls, s: str) -> OpId:
        """Parse an OpId from hex. Raises ValueError on bad input."""
        return cls(bytes.fromhex(s))


def is_valid_chain_id(chain_id: int) -> bool:
    return isinstance(chain_id, int) and 0 <= chain_id <= MAX_CHAIN_ID
