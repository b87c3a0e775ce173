"""Tests for report text rendering and parsing."""

import pytest
from datetime import datetime, timezone

from xtrace.edge import Edge, EdgeDirection, direction_from_name, direction_name
from xtrace.identifiers import OpId, TaskId
from xtrace.models import ReportDocument
from xtrace.report import (
    HEADER,
    ParsedReport,
    ReportParseError,
    format_report,
    is_valid_annotation,
    parse_report,
)
from xtrace.severity import Severity


TASK = TaskId(bytes.fromhex("DEADBEEF00000001"))
OP = OpId(bytes.fromhex("CAFEF00D"))
TS = datetime(2026, 3, 4, 5, 6, 7, 890000, tzinfo=timezone.utc)

SAMPLE = (
    "X-Trace Report ver 1.0\n"
    "TaskID: DEADBEEF00000001\n"
    "OpID: CAFEF00D\n"
    "Edge: 01020304, next\n"
    "Edge: 05060708, up, 17\n"
    "ChainEnd: 0\n"
    "Severity: NOTICE\n"
    "Timestamp: 2026-03-04T05:06:07.890000+00:00\n"
    "X-Trace-Error: Edge from task 00000000 (op 00000000) does not match\n"
    "Agent: db\n"
    "Agent: cache\n"
    "Empty: \n"
)


# ── Edge directions ────────────────────────────────────────────


class TestDirectionNames:
    def test_known(self):
        assert direction_name(EdgeDirection.NEXT) == "next"
        assert direction_name(EdgeDirection.UP) == "up"
        assert direction_name(EdgeDirection.DOWN) == "down"

    def test_unknown_renders_empty(self):
        assert direction_name("sideways") == ""
        assert direction_name(None) == ""
        assert direction_name([]) == ""

    def test_every_direction_has_a_name(self):
        for direction in EdgeDirection:
            assert direction_from_name(direction_name(direction)) is direction

    def test_from_unknown_name(self):
        assert direction_from_name("") is None


# ── Rendering ──────────────────────────────────────────────────


class TestFormatReport:
    def test_sample(self):
        text = format_report(
            task_id=TASK,
            op_id=OP,
            edges=[
                Edge(OpId(bytes.fromhex("01020304"))),
                Edge(OpId(bytes.fromhex("05060708")), EdgeDirection.UP, 17),
            ],
            terminated_chains=[0],
            severity=Severity.NOTICE,
            timestamp=TS,
            errors=["Edge from task 00000000 (op 00000000) does not match"],
            annotations=[("Agent", "db"), ("Agent", "cache"), ("Empty", "")],
        )
        assert text == SAMPLE

    def test_minimal(self):
        text = format_report(task_id=None, op_id=OP)
        assert text == (
            f"{HEADER}\nTaskID: \nOpID: CAFEF00D\nSeverity: INFO\nTimestamp: \n"
        )

    def test_multiline_error_flattened(self):
        text = format_report(task_id=TASK, op_id=OP, errors=["a\nb"])
        assert "X-Trace-Error: a b\n" in text


# ── Parsing ────────────────────────────────────────────────────


class TestParseReport:
    def test_sample(self):
        report = parse_report(SAMPLE)
        assert report.version == "1.0"
        assert report.task_id == TASK
        assert report.op_id == OP
        assert report.edges == [
            Edge(OpId(bytes.fromhex("01020304")), EdgeDirection.NEXT, 0),
            Edge(OpId(bytes.fromhex("05060708")), EdgeDirection.UP, 17),
        ]
        assert report.terminated_chains == [0]
        assert report.severity == Severity.NOTICE
        assert report.timestamp == TS
        assert len(report.errors) == 1
        assert report.annotations == [("Agent", "db"), ("Agent", "cache"), ("Empty", "")]
        assert report.values("Agent") == ["db", "cache"]

    def test_text_is_reproduced(self):
        assert parse_report(SAMPLE).to_text() == SAMPLE

    def test_reserved_words_as_annotation_keys(self):
        report = ParsedReport(
            task_id=TASK,
            op_id=OP,
            timestamp=TS,
            annotations=[("Edge", "x"), ("ChainEnd", "y"), ("Severity", "z")],
        )
        parsed = parse_report(report.to_text())
        assert parsed.edges == []
        assert parsed.terminated_chains == []
        assert parsed.annotations == report.annotations

    def test_missing_task(self):
        report = parse_report(format_report(task_id=None, op_id=OP))
        assert report.task_id is None
        assert report.timestamp is None

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "X-Trace Report ver 1.0",
            "Not a report\n",
            "X-Trace Report ver 1.0\nOpID: CAFEF00D\n",
            "X-Trace Report ver 1.0\nTaskID: XYZ\nOpID: CAFEF00D\nSeverity: INFO\nTimestamp: \n",
            "X-Trace Report ver 1.0\nTaskID: \nOpID: CAFE\nSeverity: INFO\nTimestamp: \n",
            "X-Trace Report ver 1.0\nTaskID: \nOpID: CAFEF00D\nEdge: 01020304, left\nSeverity: INFO\nTimestamp: \n",
            "X-Trace Report ver 1.0\nTaskID: \nOpID: CAFEF00D\nChainEnd: 70000\nSeverity: INFO\nTimestamp: \n",
            "X-Trace Report ver 1.0\nTaskID: \nOpID: CAFEF00D\nSeverity: LOUD\nTimestamp: \n",
            "X-Trace Report ver 1.0\nTaskID: \nOpID: CAFEF00D\nSeverity: INFO\nTimestamp: yesterday\n",
            "X-Trace Report ver 1.0\nTaskID: \nOpID: CAFEF00D\nSeverity: INFO\nTimestamp: \nno separator\n",
        ],
    )
    def test_malformed(self, text):
        with pytest.raises(ReportParseError):
            parse_report(text)

    def test_parse_error_is_value_error(self):
        with pytest.raises(ValueError):
            parse_report("garbage\n")


class TestAnnotationValidity:
    def test_valid(self):
        assert is_valid_annotation("Agent", "frontend")
        assert is_valid_annotation("k", "")
        assert is_valid_annotation("k", "a: b")

    def test_invalid(self):
        assert not is_valid_annotation("", "v")
        assert not is_valid_annotation("a:b", "v")
        assert not is_valid_annotation("X-Trace-Anything", "v")
        assert not is_valid_annotation("k", "line\r")
        assert not is_valid_annotation(3, "v")


class TestReportDocument:
    def test_to_document(self):
        doc = parse_report(SAMPLE).to_document()
        assert doc.task_id == "DEADBEEF00000001"
        assert doc.edges[1].direction == "up"
        assert doc.edges[1].chain_id == 17
        assert doc.severity == "NOTICE"
        assert [a.value for a in doc.annotations] == ["db", "cache", ""]
        dumped = doc.model_dump()
        assert dumped["terminated_chains"] == [0]

    def test_list_fields_default_empty(self):
        first = ReportDocument(version="1.0", op_id="CAFEF00D", severity="INFO")
        second = ReportDocument(version="1.0", op_id="CAFEF00D", severity="INFO")
        first.errors.append("boom")
        assert first.edges == first.terminated_chains == first.annotations == []
        assert second.errors == []
