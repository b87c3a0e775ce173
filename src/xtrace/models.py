"""Pydantic JSON documents for parsed reports."""

from __future__ import annotations

from typing import Optional, TYPE_CHECKING

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from xtrace.report import ParsedReport


class EdgeDocument(BaseModel):
    """Serialized incoming edge."""

    op_id: str
    direction: str
    chain_id: int = 0


class AnnotationDocument(BaseModel):
    key: str
    value: str


class ReportDocument(BaseModel):
    """JSON form of one event report."""

    version: str
    task_id: Optional[str] = None
    op_id: str
    edges: list[EdgeDocument] = Field(default_factory=list)
    terminated_chains: list[int] = Field(default_factory=list)
    severity: str
    timestamp: Optional[str] = None
    errors: list[str] = Field(default_factory=list)
    annotations: list[AnnotationDocument] = Field(
        default_factory=list, description="Key/value pairs in insertion order"
    )

    @classmethod
    def from_report(cls, report: ParsedReport) -> ReportDocument:
        return cls(
            version=report.version,
            task_id=report.task_id.hex() if report.task_id else None,
            op_id=report.op_id.hex(),
            edges=[
                EdgeDocument(
                    op_id=e.op_id.hex(),
                    direction=e.direction.value,
                    chain_id=e.chain_id,
                )
                for e in report.edges
            ],
            terminated_chains=list(report.terminated_chains),
            severity=report.severity.name,
            timestamp=report.timestamp.isoformat() if report.timestamp else None,
            errors=list(report.errors),
            annotations=[AnnotationDocument(key=k, value=v) for k, v in report.annotations],
        )


class TaskReportsDocument(BaseModel):
    """All reports collected for one task."""

    task_id: str
    report_count: int
    reports: list[ReportDocument]
