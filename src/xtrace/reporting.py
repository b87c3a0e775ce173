"""
Reporters — sinks that accept finished report text.

Each reporter carries a minimum severity; Event.send() checks it before
rendering. Delivering reports to a remote daemon is left to subclasses.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
from typing import Callable, Optional

from xtrace.identifiers import TaskId
from xtrace.models import TaskReportsDocument
from xtrace.report import ParsedReport, ReportParseError, parse_report
from xtrace.severity import DEFAULT_SEVERITY, Severity

logger = logging.getLogger(__name__)


class Reporter(ABC):
    """Base class for report sinks."""

    def __init__(self, min_severity: Severity = DEFAULT_SEVERITY) -> None:
        self.min_severity = Severity(min_severity)

    @abstractmethod
    def send(self, report_text: str) -> bool:
        """Deliver one report. Returns True on success."""

    def close(self) -> None:
        """Release any resources held by the reporter."""


class LoggingReporter(Reporter):
    """Writes reports to a stdlib logger at the report's own severity."""

    def __init__(
        self,
        min_severity: Severity = DEFAULT_SEVERITY,
        logger_name: str = "xtrace.reports",
    ) -> None:
        super().__init__(min_severity)
        self._logger = logging.getLogger(logger_name)

    def send(self, report_text: str) -> bool:
        level = logging.INFO
        try:
            level = parse_report(report_text).severity.logging_level
        except ReportParseError:
            logger.debug("Logging unparseable report at INFO")
        self._logger.log(level, "%s", report_text.rstrip("\n"))
        return True


@dataclass(frozen=True)
class CollectedReport:
    """A report accepted by a ReportCollector."""

    text: str
    report: ParsedReport
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


ReportHandler = Callable[[CollectedReport], None]


class ReportCollector(Reporter):
    """
    Append-only in-memory store of parsed reports.

    Stands in for a collection daemon in tests and single-process tools:
    - Rejects text that does not parse
    - Indexes reports by task id
    - Passes each accepted report to handlers registered with on_report()
    """

    def __init__(self, min_severity: Severity = DEFAULT_SEVERITY) -> None:
        super().__init__(min_severity)
        self._reports: list[CollectedReport] = []
        self._by_task: dict[str, list[CollectedReport]] = {}
        self._handlers: dict[Optional[str], list[ReportHandler]] = {}
        self._rejected: int = 0

    def send(self, report_text: str) -> bool:
        """Parse and store a report, then pass it to handlers."""
        try:
            report = parse_report(report_text)
        except ReportParseError as e:
            self._rejected += 1
            logger.warning("Rejected malformed report: %s", e)
            return False

        collected = CollectedReport(text=report_text, report=report)
        self._reports.append(collected)

        task_key = report.task_id.hex() if report.task_id else None
        if task_key:
            self._by_task.setdefault(task_key, []).append(collected)
            for handler in self._handlers.get(task_key, []):
                handler(collected)

        # Handlers registered for every task
        for handler in self._handlers.get(None, []):
            handler(collected)
        return True

    def on_report(
        self, handler: ReportHandler, task_id: Optional[TaskId] = None
    ) -> None:
        """
        Call ``handler`` with each report accepted from now on.

        With a ``task_id`` only that task's reports are delivered. Reports
        that fail to parse never reach a handler.
        """
        key = task_id.hex() if task_id else None
        self._handlers.setdefault(key, []).append(handler)

    def query_by_task(self, task_id: TaskId) -> list[CollectedReport]:
        """Get all reports for a task, in arrival order."""
        return list(self._by_task.get(task_id.hex(), []))

    def export_task(self, task_id: TaskId) -> TaskReportsDocument:
        """JSON document of every report collected for a task."""
        reports = self.query_by_task(task_id)
        return TaskReportsDocument(
            task_id=task_id.hex(),
            report_count=len(reports),
            reports=[c.report.to_document() for c in reports],
        )

    @property
    def report_count(self) -> int:
        return len(self._reports)

    @property
    def rejected_count(self) -> int:
        return self._rejected

    @property
    def all_reports(self) -> list[CollectedReport]:
        return list(self._reports)

    def task_counts(self) -> dict[str, int]:
        """Return count of reports per task id (hex)."""
        return {t: len(reports) for t, reports in self._by_task.items()}

    def clear(self) -> None:
        """Clear all reports (for testing)."""
        self._reports.clear()
        self._by_task.clear()
        self._rejected = 0

    def close(self) -> None:
        self._handlers.clear()
