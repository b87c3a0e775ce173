"""
Events — the causality nodes built up by instrumented code.

An Event binds to one task, records its incoming edges, may fork into
several outgoing chains, collects annotations, and finally renders a
single report. Every operation reports failure as a return value; nothing
here raises on bad input from instrumented code.

Usage:
    >>> event = Event.from_template(template)
    >>> event.add_edge(inbound)
    >>> event.add_annotation("Label", "HandleRequest")
    >>> first, second = event.fork(), event.fork()
    >>> call_a(event.get_metadata(first)); call_b(event.get_metadata(second))
    >>> event.send(reporter)
"""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Callable, Optional, TYPE_CHECKING

from xtrace.config import XTraceSettings, get_settings
from xtrace.edge import Edge, EdgeDirection
from xtrace.entropy import EntropySource, default_entropy
from xtrace.identifiers import DEFAULT_CHAIN_ID, OpId, TaskId
from xtrace.metadata import Metadata, OptionType
from xtrace.report import format_report, is_valid_annotation
from xtrace.severity import DEFAULT_SEVERITY, Severity

if TYPE_CHECKING:
    from xtrace.reporting import Reporter

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Event:
    """
    A mutable causality node under construction.

    Not thread-safe: confine an Event to one thread of control or guard it
    externally.
    """

    def __init__(
        self,
        *,
        entropy: Optional[EntropySource] = None,
        clock: Optional[Clock] = None,
        reporter: Optional[Reporter] = None,
        settings: Optional[XTraceSettings] = None,
    ) -> None:
        self._entropy = entropy or default_entropy()
        self._clock = clock or _utcnow
        self._reporter = reporter
        self._settings = settings or get_settings()

        self._task_id: Optional[TaskId] = None
        self._op_id = OpId.random(self._settings.op_id_length, self._entropy)
        self._edges: list[Edge] = []
        self._chain_id: int = DEFAULT_CHAIN_ID
        # Outgoing chains allocated by fork(), addressed by index
        self._forks: list[int] = []
        self._terminated: list[int] = []
        self._annotations: list[tuple[str, str]] = []
        self._errors: list[str] = []
        self._severity: Severity = DEFAULT_SEVERITY
        self._timestamp: Optional[datetime] = None

    # ── Construction ────────────────────────────────────────────

    @classmethod
    def from_metadata(
        cls,
        metadata: Metadata,
        *,
        entropy: Optional[EntropySource] = None,
        clock: Optional[Clock] = None,
        reporter: Optional[Reporter] = None,
        settings: Optional[XTraceSettings] = None,
    ) -> Event:
        """
        Continue the exact operation named by ``metadata``.

        Task id and op id are inherited and no edge is recorded. An invalid
        context gives a fresh event.
        """
        event = cls(entropy=entropy, clock=clock, reporter=reporter, settings=settings)
        if metadata is None or not metadata.is_valid:
            return event
        event._task_id = metadata.task_id
        event._op_id = metadata.op_id  # type: ignore[assignment]
        if metadata.chain_id is not None:
            event._chain_id = metadata.chain_id
        if metadata.severity is not None:
            event._severity = metadata.severity
        return event

    @classmethod
    def from_template(
        cls,
        template: Event,
        *,
        entropy: Optional[EntropySource] = None,
        clock: Optional[Clock] = None,
        reporter: Optional[Reporter] = None,
    ) -> Event:
        """Fresh event carrying a copy of ``template``'s annotations."""
        event = cls(
            entropy=entropy or template._entropy,
            clock=clock or template._clock,
            reporter=reporter or template._reporter,
            settings=template._settings,
        )
        event._annotations = list(template._annotations)
        return event

    # ── Identity & severity ─────────────────────────────────────

    def bind_task_id(self, task_id: TaskId) -> bool:
        """Bind the task id. Fails if a different one is already bound."""
        if self._task_id is None:
            self._task_id = task_id
            return True
        return self._task_id == task_id

    def randomize_op_id(self, length: int = 4) -> bool:
        self._op_id = OpId.random(length, self._entropy)
        return True

    def set_severity(self, level: Severity) -> bool:
        """Set the severity propagated to descendants and used to gate sending."""
        try:
            self._severity = Severity(level)
        except ValueError:
            logger.warning("Unknown severity level %r", level)
            return False
        return True

    # ── Edges ───────────────────────────────────────────────────

    def add_edge(
        self,
        metadata: Metadata,
        direction: EdgeDirection = EdgeDirection.NEXT,
    ) -> bool:
        """
        Record ``metadata`` as a causal predecessor.

        The first edge binds the task, resizes the op id to the incoming op
        id's length and adopts the incoming chain. A later edge from another
        task is rejected and noted as an error in the report. A later edge
        on a different chain makes this event a barrier: the chain this
        event was on ends here and the event continues on the incoming one,
        unless the incoming chain already ended here. Directions outside
        EdgeDirection are rejected.

        Returns:
            True if the edge was recorded.
        """
        if metadata is None or not metadata.is_valid:
            logger.debug("Ignoring edge from invalid context")
            return False
        try:
            direction = EdgeDirection(direction)
        except (TypeError, ValueError):
            logger.warning("Ignoring edge with unknown direction %r", direction)
            return False

        incoming_chain = metadata.chain_id
        if incoming_chain is None:
            incoming_chain = DEFAULT_CHAIN_ID

        if not self._edges:
            if not self.bind_task_id(metadata.task_id):  # type: ignore[arg-type]
                self._reject_edge(metadata)
                return False
            self._op_id = OpId.random(len(metadata.op_id), self._entropy)  # type: ignore[arg-type]
            self._edges.append(Edge(metadata.op_id, direction, incoming_chain))  # type: ignore[arg-type]
            self._chain_id = incoming_chain
            return True

        if metadata.task_id != self._task_id:
            self._reject_edge(metadata)
            return False

        self._edges.append(Edge(metadata.op_id, direction, incoming_chain))  # type: ignore[arg-type]
        if incoming_chain in self._terminated:
            logger.debug(
                "Barrier at %s: chain %d already ended, staying on chain %d",
                self._op_id, incoming_chain, self._chain_id,
            )
        elif incoming_chain != self._chain_id:
            ended = self._chain_id
            if ended not in self._terminated:
                self._terminated.append(ended)
            self._chain_id = incoming_chain
            logger.debug(
                "Barrier at %s: chain %d ends, continuing on chain %d",
                self._op_id, ended, incoming_chain,
            )
        return True

    def _reject_edge(self, metadata: Metadata) -> None:
        message = (
            f"Edge from task {metadata.task_id} (op {metadata.op_id}) "
            f"does not match event task {self._task_id}"
        )
        self._errors.append(message)
        logger.warning(message)

    # ── Forking ─────────────────────────────────────────────────

    def fork(self) -> int:
        """
        Allocate a new outgoing chain and return its index.

        The chain id differs from the current chain, from every chain this
        event has forked before, and from every chain it has terminated.
        """
        taken = {self._chain_id, *self._forks, *self._terminated}
        chain_id = self._entropy.chain_id()
        while chain_id in taken:
            chain_id = self._entropy.chain_id()
        self._forks.append(chain_id)
        logger.debug("Forked chain %d at index %d", chain_id, len(self._forks) - 1)
        return len(self._forks) - 1

    def _chain_at(self, index: Optional[int]) -> Optional[int]:
        if index is None:
            return self._chain_id
        if index < 0:
            return None
        if not self._forks:
            return self._chain_id if index == 0 else None
        if index >= len(self._forks):
            return None
        return self._forks[index]

    def get_metadata(self, index: Optional[int] = None) -> Metadata:
        """
        Context to hand to a downstream call.

        With no index the event's current chain is used; otherwise the chain
        allocated by the fork() call that returned ``index``. Index 0 before
        any fork is the current chain. A bad index, or an event with no task,
        gives ``Metadata.invalid()``.
        """
        chain_id = self._chain_at(index)
        if chain_id is None or self._task_id is None:
            return Metadata.invalid()
        return Metadata(
            task_id=self._task_id,
            op_id=self._op_id,
            options=(
                (OptionType.CHAIN_ID, chain_id),
                (OptionType.SEVERITY, int(self._severity)),
            ),
        )

    # ── Annotations & reporting ─────────────────────────────────

    def add_annotation(self, key: str, value: str) -> bool:
        """
        Append a key/value pair to the report.

        Duplicate keys are kept in order. Pairs that cannot be written as a
        single report line are rejected.
        """
        value = str(value)
        if not is_valid_annotation(key, value):
            logger.warning("Rejected annotation %r", key)
            return False
        self._annotations.append((key, value))
        return True

    def render(self) -> str:
        """Report text for this event. The timestamp is fixed on first call."""
        if self._timestamp is None:
            self._timestamp = self._clock()
        return format_report(
            task_id=self._task_id,
            op_id=self._op_id,
            edges=self._edges,
            terminated_chains=self._terminated,
            severity=self._severity,
            timestamp=self._timestamp,
            errors=self._errors,
            annotations=self._annotations,
        )

    def send(self, reporter: Optional[Reporter] = None) -> bool:
        """
        Render and hand the report to ``reporter`` (or the injected one).

        Returns False when there is no reporter, when this event's severity is
        below the reporter's threshold, or when delivery fails.
        """
        target = reporter if reporter is not None else self._reporter
        if target is None:
            logger.debug("No reporter configured; report for %s dropped", self._op_id)
            return False
        if self._severity < target.min_severity:
            return False
        text = self.render()
        try:
            return bool(target.send(text))
        except Exception:
            logger.warning("Reporter %s failed to send report", type(target).__name__, exc_info=True)
            return False

    # ── Introspection ───────────────────────────────────────────

    @property
    def task_id(self) -> Optional[TaskId]:
        return self._task_id

    @property
    def op_id(self) -> OpId:
        return self._op_id

    @property
    def chain_id(self) -> int:
        return self._chain_id

    @property
    def chain_ids(self) -> list[int]:
        """Chains allocated by fork(), in index order."""
        return list(self._forks)

    @property
    def edges(self) -> list[Edge]:
        return list(self._edges)

    @property
    def terminated_chains(self) -> list[int]:
        return list(self._terminated)

    @property
    def annotations(self) -> list[tuple[str, str]]:
        return list(self._annotations)

    @property
    def errors(self) -> list[str]:
        return list(self._errors)

    @property
    def severity(self) -> Severity:
        return self._severity

    @property
    def timestamp(self) -> Optional[datetime]:
        return self._timestamp

    def __repr__(self) -> str:
        return (
            f"Event(task_id={self._task_id}, op_id={self._op_id}, "
            f"chain_id={self._chain_id}, edges={len(self._edges)})"
        )
