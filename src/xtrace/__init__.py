"""
xtrace v1.0

Causality-tracking core for distributed tracing. Instrumented code builds
Events, links them to the contexts it received, forks into concurrent
chains, and emits one report per event for offline reconstruction of the
task graph.

Core Components:
    - Metadata: immutable (task id, op id, options) context value
    - Edge: one recorded causal predecessor
    - Event: identity binding, edges, forks, annotations, report text
    - Reporter: severity-gated sinks for report text
    - Tracer: template events and per-context current Metadata

Usage:
    >>> from xtrace import Event, ReportCollector
    >>> collector = ReportCollector()
    >>> event = Event()
    >>> event.add_edge(inbound)
    >>> downstream = event.get_metadata(event.fork())
    >>> event.send(collector)

Version: 1.0.0
"""

__version__ = "1.0.0"

# Identifiers & context values
from xtrace.identifiers import DEFAULT_CHAIN_ID, OpId, TaskId
from xtrace.metadata import Metadata, OptionType
from xtrace.severity import Severity
from xtrace.entropy import EntropySource, SeededEntropy, SequenceEntropy, SystemEntropy

# Events & reports
from xtrace.edge import Edge, EdgeDirection, direction_name
from xtrace.event import Event
from xtrace.report import ParsedReport, ReportParseError, format_report, parse_report

# Reporting
from xtrace.reporting import CollectedReport, LoggingReporter, ReportCollector, Reporter

# Configuration
from xtrace.config import XTraceSettings, build_reporter, configure, get_settings

# Convenience layer
from xtrace.tracer import (
    EventDecorator,
    Tracer,
    clear_context,
    get_context,
    get_contexts,
    join_context,
    set_context,
)

__all__ = [
    # Version
    "__version__",
    # Identifiers
    "DEFAULT_CHAIN_ID",
    "OpId",
    "TaskId",
    "Metadata",
    "OptionType",
    "Severity",
    "EntropySource",
    "SeededEntropy",
    "SequenceEntropy",
    "SystemEntropy",
    # Events
    "Edge",
    "EdgeDirection",
    "direction_name",
    "Event",
    "ParsedReport",
    "ReportParseError",
    "format_report",
    "parse_report",
    # Reporting
    "CollectedReport",
    "LoggingReporter",
    "ReportCollector",
    "Reporter",
    # Config
    "XTraceSettings",
    "build_reporter",
    "configure",
    "get_settings",
    # Tracer
    "EventDecorator",
    "Tracer",
    "clear_context",
    "get_context",
    "get_contexts",
    "join_context",
    "set_context",
]
