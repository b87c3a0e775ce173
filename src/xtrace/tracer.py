"""
Tracer — convenience layer over Event for application code.

Holds a template event with the fields every report repeats (agent, host,
process) and the per-context "current" Metadata, so callers can log events
without threading context through every function:

    >>> tracer = Tracer(reporter=LoggingReporter(), agent="frontend")
    >>> tracer.finish(tracer.start_task("HandleRequest"))
    >>> tracer.log_event("QueryDatabase", table="users")
    >>> pool.submit(tracer.wrap(worker))

The current context lives in a ``contextvars.ContextVar``, so threads and
asyncio tasks each see their own. It may hold several contexts of one task
after join_context(); the next event gets an edge to each of them.
"""

from __future__ import annotations

import contextvars
import logging
import os
import socket
import sys
import threading
from typing import Any, Callable, Optional, TypeVar

from xtrace.config import XTraceSettings, get_settings
from xtrace.edge import EdgeDirection
from xtrace.entropy import EntropySource, default_entropy
from xtrace.event import Clock, Event
from xtrace.identifiers import TaskId
from xtrace.metadata import Metadata
from xtrace.reporting import Reporter
from xtrace.severity import DEFAULT_SEVERITY, Severity

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Called on every event a Tracer creates, after its fields are added
EventDecorator = Callable[[Event], None]

_current: contextvars.ContextVar[tuple[Metadata, ...]] = contextvars.ContextVar(
    "xtrace_current_context", default=()
)


def get_context() -> Metadata:
    """Most recently adopted context in this execution context."""
    current = _current.get()
    return current[-1] if current else Metadata.invalid()


def get_contexts() -> tuple[Metadata, ...]:
    """Every context the next event should continue from."""
    return _current.get()


def set_context(metadata: Metadata) -> None:
    _current.set((metadata,))


def join_context(metadata: Metadata) -> bool:
    """
    Merge an incoming context into the current one.

    With no valid current context ``metadata`` simply becomes current.
    Otherwise it is added alongside the existing contexts, so the next
    event records an edge to each. Contexts from a different task are
    ignored.

    Returns:
        True if ``metadata`` is now part of the current context.
    """
    if metadata is None or not metadata.is_valid:
        return False
    current = tuple(m for m in _current.get() if m.is_valid)
    if not current:
        _current.set((metadata,))
        return True
    if metadata in current:
        return True
    if metadata.task_id != current[0].task_id:
        logger.warning(
            "Not joining context %s: current task is %s",
            metadata, current[0].task_id,
        )
        return False
    _current.set(current + (metadata,))
    return True


def clear_context() -> None:
    _current.set(())


def _process_name() -> str:
    if sys.argv and sys.argv[0]:
        return os.path.basename(sys.argv[0])
    return ""


class Tracer:
    """
    Creates, labels and sends events on behalf of application code.

    Whether the tracer's agent reports at all is decided once, from
    ``settings.agent_enabled()``. A disabled tracer still builds events,
    but ``finish`` and ``log_event`` send nothing and leave the current
    context alone.
    """

    def __init__(
        self,
        reporter: Optional[Reporter] = None,
        agent: str = "",
        entropy: Optional[EntropySource] = None,
        clock: Optional[Clock] = None,
        settings: Optional[XTraceSettings] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.reporter = reporter
        self.agent = agent or self.settings.agent
        self.enabled = self.settings.agent_enabled(self.agent)
        self.severity: Severity = DEFAULT_SEVERITY
        self._entropy = entropy or default_entropy()
        self._decorator: Optional[EventDecorator] = None
        self.template = Event(
            entropy=self._entropy,
            clock=clock,
            reporter=reporter,
            settings=self.settings,
        )
        self.template.add_annotation("Agent", self.agent)
        self.template.add_annotation("Host", socket.gethostname())
        self.template.add_annotation("ProcessID", str(os.getpid()))
        self.template.add_annotation("ProcessName", _process_name())
        if not self.enabled:
            logger.debug("Reporting disabled for agent %r", self.agent)

    def set_decorator(self, decorator: Optional[EventDecorator]) -> None:
        """Hook run on each new event once its label and fields are set."""
        self._decorator = decorator

    def _new_event(self) -> Event:
        event = Event.from_template(self.template)
        event.set_severity(self.severity)
        return event

    def _label(self, event: Event, label: str, fields: dict[str, Any]) -> None:
        event.add_annotation("Label", label)
        event.add_annotation("ThreadID", str(threading.get_ident()))
        event.add_annotation("ThreadName", threading.current_thread().name)
        for key, value in fields.items():
            event.add_annotation(key, "null" if value is None else str(value))
        if self._decorator is not None:
            self._decorator(event)

    def start_task(self, label: str, **fields: Any) -> Event:
        """
        Begin a new task.

        The returned event has a random task id and is the root of its
        graph; it is not sent until the caller sends it or passes it to
        ``finish``.
        """
        event = self._new_event()
        event.bind_task_id(TaskId.random(self.settings.task_id_length, self._entropy))
        self._label(event, label, fields)
        return event

    def _build(
        self,
        label: str,
        parents: tuple[Metadata, ...],
        direction: EdgeDirection,
        fields: dict[str, Any],
    ) -> Event:
        event = self._new_event()
        for parent in parents:
            event.add_edge(parent, direction)
        self._label(event, label, fields)
        return event

    def create_event(
        self,
        label: str,
        *parents: Metadata,
        direction: EdgeDirection = EdgeDirection.NEXT,
        **fields: Any,
    ) -> Event:
        """
        Event with edges to each valid parent.

        With no parents every current context is used. Invalid parents are
        skipped. ``direction`` applies to all edges and is not available as
        a field name here; use ``log_event`` or ``Event.add_annotation``
        for a field called "direction".
        """
        return self._build(label, parents or get_contexts(), direction, fields)

    def finish(self, event: Event) -> Metadata:
        """Send ``event`` and make it the current context."""
        if not self.enabled:
            return get_context()
        if not event.send(self.reporter):
            logger.debug("Report for %s not delivered", event.op_id)
        metadata = event.get_metadata()
        if metadata.is_valid:
            set_context(metadata)
        return metadata

    def log_event(self, label: str, *parents: Metadata, **fields: Any) -> Metadata:
        """
        Create, send and adopt an event in one call.

        Every keyword becomes an annotation. Does nothing and returns the
        current context when there is no valid parent to continue from or
        when the tracer is disabled.
        """
        if not self.enabled:
            return get_context()
        candidates = parents or get_contexts()
        if not any(p.is_valid for p in candidates):
            return Metadata.invalid()
        return self.finish(self._build(label, candidates, EdgeDirection.NEXT, fields))

    def set_severity(self, level: Severity) -> bool:
        """Severity for events created from now on."""
        try:
            self.severity = Severity(level)
        except ValueError:
            return False
        return True

    def wrap(
        self, fn: Callable[..., T], metadata: Optional[Metadata] = None
    ) -> Callable[..., T]:
        """
        Bind ``fn`` to a context so it continues the same task elsewhere.

        The context defaults to the caller's current one at wrap time.
        """
        captured = (metadata,) if metadata is not None else get_contexts()

        def run(*args: Any, **kwargs: Any) -> T:
            token = _current.set(captured)
            try:
                return fn(*args, **kwargs)
            finally:
                _current.reset(token)

        return run
