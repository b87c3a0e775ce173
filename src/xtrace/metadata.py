"""
Propagated context values.

Metadata is the immutable (task id, op id, options) tuple handed from one
event to the events it causes. It may be invalid, meaning "no context yet".
Its wire encoding is handled elsewhere.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from xtrace.identifiers import OpId, TaskId
from xtrace.severity import Severity


class OptionType(str, Enum):
    """Kinds of options carried in a Metadata option bag."""

    CHAIN_ID = "chain_id"
    SEVERITY = "severity"


@dataclass(frozen=True)
class Metadata:
    """An immutable, propagatable causal context."""

    task_id: Optional[TaskId] = None
    op_id: Optional[OpId] = None
    options: tuple[tuple[OptionType, int], ...] = field(default_factory=tuple)

    @classmethod
    def invalid(cls) -> Metadata:
        """A context carrying no identity."""
        return cls()

    @property
    def is_valid(self) -> bool:
        return self.task_id is not None and self.op_id is not None

    def option(self, option_type: OptionType) -> Optional[int]:
        """Value of the first option of the given type, if any."""
        for kind, value in self.options:
            if kind == option_type:
                return value
        return None

    def with_option(self, option_type: OptionType, value: int) -> Metadata:
        """Return a copy with ``option_type`` set to ``value``."""
        kept = tuple((k, v) for k, v in self.options if k != option_type)
        return Metadata(
            task_id=self.task_id,
            op_id=self.op_id,
            options=kept + ((option_type, value),),
        )

    @property
    def chain_id(self) -> Optional[int]:
        return self.option(OptionType.CHAIN_ID)

    @property
    def severity(self) -> Optional[Severity]:
        value = self.option(OptionType.SEVERITY)
        if value is None:
            return None
        try:
            return Severity(value)
        except ValueError:
            return None

    def __str__(self) -> str:
        if not self.is_valid:
            return "<invalid>"
        text = f"{self.task_id}/{self.op_id}"
        if self.chain_id:
            text += f"#{self.chain_id}"
        return text
