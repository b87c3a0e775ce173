"""
Report text — the line-oriented format read by offline graph reconstruction.

Format (version 1.0):

    X-Trace Report ver 1.0
    TaskID: <hex>
    OpID: <hex>
    Edge: <op hex>, <direction>[, <chain id>]
    ChainEnd: <chain id>
    Severity: <level name>
    Timestamp: <ISO-8601>
    X-Trace-Error: <message>
    <key>: <value>

Edge, ChainEnd, X-Trace-Error and annotation lines repeat zero or more
times. Annotation keys may not start with ``X-Trace`` or contain ``:``, so
everything after the Timestamp line parses back unambiguously.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional, TYPE_CHECKING

from xtrace.edge import Edge, direction_from_name, direction_name
from xtrace.identifiers import DEFAULT_CHAIN_ID, OpId, TaskId, is_valid_chain_id
from xtrace.severity import DEFAULT_SEVERITY, Severity

if TYPE_CHECKING:
    from xtrace.models import ReportDocument

REPORT_VERSION = "1.0"
HEADER_PREFIX = "X-Trace Report ver "
HEADER = HEADER_PREFIX + REPORT_VERSION
SEPARATOR = ": "
RESERVED_PREFIX = "X-Trace"

TASK_KEY = "TaskID"
OP_KEY = "OpID"
EDGE_KEY = "Edge"
CHAIN_END_KEY = "ChainEnd"
SEVERITY_KEY = "Severity"
TIMESTAMP_KEY = "Timestamp"
ERROR_KEY = "X-Trace-Error"

_LINE_BREAKS = ("\n", "\r")


class ReportParseError(ValueError):
    """Raised when report text does not follow the report grammar."""


def is_valid_annotation(key: str, value: str) -> bool:
    """Whether (key, value) can be written as one report line and read back."""
    if not isinstance(key, str) or not isinstance(value, str):
        return False
    if not key or ":" in key or key.startswith(RESERVED_PREFIX):
        return False
    return not any(b in key or b in value for b in _LINE_BREAKS)


def format_edge(edge: Edge) -> str:
    parts = [edge.op_id.hex(), direction_name(edge.direction)]
    if edge.chain_id != DEFAULT_CHAIN_ID:
        parts.append(str(edge.chain_id))
    return ", ".join(parts)


def format_report(
    task_id: Optional[TaskId],
    op_id: OpId,
    edges: Iterable[Edge] = (),
    terminated_chains: Iterable[int] = (),
    severity: Severity = DEFAULT_SEVERITY,
    timestamp: Optional[datetime] = None,
    errors: Iterable[str] = (),
    annotations: Iterable[tuple[str, str]] = (),
) -> str:
    """Render report text. Every line, including the last, ends in a newline."""
    lines = [
        HEADER,
        TASK_KEY + SEPARATOR + (task_id.hex() if task_id else ""),
        OP_KEY + SEPARATOR + op_id.hex(),
    ]
    lines.extend(EDGE_KEY + SEPARATOR + format_edge(e) for e in edges)
    lines.extend(CHAIN_END_KEY + SEPARATOR + str(c) for c in terminated_chains)
    lines.append(SEVERITY_KEY + SEPARATOR + severity.name)
    lines.append(TIMESTAMP_KEY + SEPARATOR + (timestamp.isoformat() if timestamp else ""))
    lines.extend(ERROR_KEY + SEPARATOR + " ".join(e.splitlines()) for e in errors)
    lines.extend(k + SEPARATOR + v for k, v in annotations)
    return "\n".join(lines) + "\n"


@dataclass
class ParsedReport:
    """The contents of one report, as recovered from its text."""

    task_id: Optional[TaskId]
    op_id: OpId
    edges: list[Edge] = field(default_factory=list)
    terminated_chains: list[int] = field(default_factory=list)
    severity: Severity = DEFAULT_SEVERITY
    timestamp: Optional[datetime] = None
    errors: list[str] = field(default_factory=list)
    annotations: list[tuple[str, str]] = field(default_factory=list)
    version: str = REPORT_VERSION

    def to_text(self) -> str:
        return format_report(
            task_id=self.task_id,
            op_id=self.op_id,
            edges=self.edges,
            terminated_chains=self.terminated_chains,
            severity=self.severity,
            timestamp=self.timestamp,
            errors=self.errors,
            annotations=self.annotations,
        )

    def values(self, key: str) -> list[str]:
        """All annotation values for ``key``, in order."""
        return [v for k, v in self.annotations if k == key]

    def to_document(self) -> ReportDocument:
        from xtrace.models import ReportDocument

        return ReportDocument.from_report(self)


class _Lines:
    """Cursor over report lines with positional error messages."""

    def __init__(self, text: str) -> None:
        if not text.endswith("\n"):
            raise ReportParseError("Report must end with a newline")
        self._lines = text[:-1].split("\n")
        self._pos = 0

    def done(self) -> bool:
        return self._pos >= len(self._lines)

    def peek_key(self) -> Optional[str]:
        if self.done():
            return None
        key, sep, _ = self._lines[self._pos].partition(SEPARATOR)
        return key if sep else None

    def take_raw(self) -> str:
        if self.done():
            raise ReportParseError("Unexpected end of report")
        line = self._lines[self._pos]
        self._pos += 1
        return line

    def take(self, expected: Optional[str] = None) -> tuple[str, str]:
        lineno = self._pos + 1
        line = self.take_raw()
        key, sep, value = line.partition(SEPARATOR)
        if not sep or ":" in key:
            raise ReportParseError(f"Line {lineno}: not a key/value line: {line!r}")
        if expected is not None and key != expected:
            raise ReportParseError(f"Line {lineno}: expected {expected!r}, got {key!r}")
        return key, value


def _parse_chain_id(text: str) -> int:
    try:
        chain_id = int(text)
    except ValueError:
        raise ReportParseError(f"Invalid chain id: {text!r}") from None
    if not is_valid_chain_id(chain_id):
        raise ReportParseError(f"Chain id out of range: {chain_id}")
    return chain_id


def parse_edge(text: str) -> Edge:
    parts = text.split(", ")
    if len(parts) not in (2, 3):
        raise ReportParseError(f"Invalid edge: {text!r}")
    try:
        op_id = OpId.from_hex(parts[0])
    except ValueError as e:
        raise ReportParseError(f"Invalid edge op id: {parts[0]!r}") from e
    direction = direction_from_name(parts[1])
    if direction is None:
        raise ReportParseError(f"Invalid edge direction: {parts[1]!r}")
    chain_id = _parse_chain_id(parts[2]) if len(parts) == 3 else DEFAULT_CHAIN_ID
    return Edge(op_id=op_id, direction=direction, chain_id=chain_id)


def parse_report(text: str) -> ParsedReport:
    """
    Recover a ParsedReport from report text.

    Raises:
        ReportParseError: If ``text`` does not follow the report grammar.
    """
    lines = _Lines(text)

    header = lines.take_raw()
    if not header.startswith(HEADER_PREFIX):
        raise ReportParseError(f"Missing report header: {header!r}")
    version = header[len(HEADER_PREFIX):]

    _, task_hex = lines.take(TASK_KEY)
    _, op_hex = lines.take(OP_KEY)
    try:
        task_id = TaskId.from_hex(task_hex) if task_hex else None
        op_id = OpId.from_hex(op_hex)
    except ValueError as e:
        raise ReportParseError(f"Invalid identifier: {e}") from e

    edges = []
    while lines.peek_key() == EDGE_KEY:
        edges.append(parse_edge(lines.take()[1]))

    terminated = []
    while lines.peek_key() == CHAIN_END_KEY:
        terminated.append(_parse_chain_id(lines.take()[1]))

    _, severity_name = lines.take(SEVERITY_KEY)
    severity = Severity.from_name(severity_name)
    if severity is None:
        raise ReportParseError(f"Unknown severity: {severity_name!r}")

    _, ts_text = lines.take(TIMESTAMP_KEY)
    try:
        timestamp = datetime.fromisoformat(ts_text) if ts_text else None
    except ValueError as e:
        raise ReportParseError(f"Invalid timestamp: {ts_text!r}") from e

    errors = []
    while lines.peek_key() == ERROR_KEY:
        errors.append(lines.take()[1])

    annotations = []
    while not lines.done():
        annotations.append(lines.take())

    return ParsedReport(
        task_id=task_id,
        op_id=op_id,
        edges=edges,
        terminated_chains=terminated,
        severity=severity,
        timestamp=timestamp,
        errors=errors,
        annotations=annotations,
        version=version,
    )
