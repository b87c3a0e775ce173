"""
Settings for event construction and report delivery.

Loaded from ``XTRACE_*`` environment variables or built directly:

    >>> settings = XTraceSettings.from_env()
    >>> reporter = build_reporter(settings)
"""

from __future__ import annotations

import os
from typing import Literal, Mapping, Optional, TYPE_CHECKING

from pydantic import BaseModel, Field, field_validator

from xtrace.identifiers import OpId, TaskId
from xtrace.severity import Severity

if TYPE_CHECKING:
    from xtrace.reporting import Reporter

ENV_PREFIX = "XTRACE_"


class XTraceSettings(BaseModel):
    """Library-wide defaults."""

    op_id_length: int = Field(OpId.DEFAULT_LENGTH, description="Op id bytes for fresh events")
    task_id_length: int = Field(TaskId.DEFAULT_LENGTH, description="Task id bytes for new tasks")
    min_severity: Severity = Severity.INFO
    reporter: Literal["logging", "collector", "none"] = "logging"
    logger_name: str = "xtrace.reports"
    agent: str = ""
    reporting_enabled_default: bool = Field(
        True, description="Whether agents not listed below report events"
    )
    enabled_agents: list[str] = Field(default_factory=list)
    disabled_agents: list[str] = Field(default_factory=list)

    @field_validator("op_id_length")
    @classmethod
    def _check_op_id_length(cls, v: int) -> int:
        if v not in OpId.VALID_LENGTHS:
            raise ValueError(f"op_id_length must be one of {OpId.VALID_LENGTHS}")
        return v

    @field_validator("task_id_length")
    @classmethod
    def _check_task_id_length(cls, v: int) -> int:
        if v not in TaskId.VALID_LENGTHS:
            raise ValueError(f"task_id_length must be one of {TaskId.VALID_LENGTHS}")
        return v

    @field_validator("min_severity", mode="before")
    @classmethod
    def _parse_severity(cls, v: object) -> object:
        if isinstance(v, str) and not v.strip().lstrip("-").isdigit():
            level = Severity.from_name(v)
            if level is None:
                raise ValueError(f"Unknown severity: {v}")
            return level
        if isinstance(v, str):
            return int(v)
        return v

    @field_validator("enabled_agents", "disabled_agents", mode="before")
    @classmethod
    def _split_agents(cls, v: object) -> object:
        if isinstance(v, str):
            return [a.strip() for a in v.split(",") if a.strip()]
        return v

    def agent_enabled(self, agent: Optional[str]) -> bool:
        """
        Whether a tracer for ``agent`` should create and send events.

        An explicitly enabled agent always reports. Otherwise an agent
        reports when reporting is on by default and it is not disabled.
        Agents with no name never report.
        """
        if agent is None:
            return False
        if agent in self.enabled_agents:
            return True
        return self.reporting_enabled_default and agent not in self.disabled_agents

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> XTraceSettings:
        """Build settings from ``XTRACE_<FIELD>`` variables."""
        env = os.environ if environ is None else environ
        values = {}
        for name in cls.model_fields:
            key = ENV_PREFIX + name.upper()
            if key in env:
                values[name] = env[key]
        return cls(**values)


_settings: Optional[XTraceSettings] = None


def get_settings() -> XTraceSettings:
    """Process-wide settings, loaded from the environment on first use."""
    global _settings
    if _settings is None:
        _settings = XTraceSettings.from_env()
    return _settings


def configure(settings: Optional[XTraceSettings] = None) -> XTraceSettings:
    """Replace the process-wide settings. ``None`` reloads from the environment."""
    global _settings
    _settings = settings or XTraceSettings.from_env()
    return _settings


def build_reporter(settings: Optional[XTraceSettings] = None) -> Optional[Reporter]:
    """Construct the reporter named by ``settings.reporter``."""
    from xtrace.reporting import LoggingReporter, ReportCollector

    settings = settings or get_settings()
    if settings.reporter == "logging":
        return LoggingReporter(
            min_severity=settings.min_severity,
            logger_name=settings.logger_name,
        )
    if settings.reporter == "collector":
        return ReportCollector(min_severity=settings.min_severity)
    return None
