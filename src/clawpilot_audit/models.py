"""Pydantic models for the OpenClaw installation audit."""

import os
from enum import Enum
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Severity(str, Enum):
    """Outcome of a single check, ordered PASS < INFO < WARNING < CRITICAL."""

    PASS = "PASS"
    INFO = "INFO"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.PASS: 0,
    Severity.INFO: 1,
    Severity.WARNING: 2,
    Severity.CRITICAL: 3,
}


def worst(severities) -> Severity:
    """Return the highest severity in an iterable, PASS when empty."""
    result = Severity.PASS
    for severity in severities:
        if severity.rank > result.rank:
            result = severity
    return result


class Finding(BaseModel):
    """One classified observation. Immutable once emitted."""

    model_config = ConfigDict(frozen=True)

    severity: Severity = Field(description="PASS, INFO, WARNING or CRITICAL")
    category: str = Field(description="Area of the installation (e.g., 'network', 'permissions')")
    check: str = Field(description="Stable identifier of the check (e.g., 'network_bind')")
    message: str = Field(description="Human-readable description of the observation")
    subject_path: Optional[str] = Field(default=None, description="File or directory the finding is about")
    remediation: Optional[str] = Field(default=None, description="Concrete next action")
    rule: int = Field(default=0, description="Number of the rule that emitted this finding")


class SeverityCounts(BaseModel):
    """Histogram of findings by severity."""

    critical: int = Field(default=0, description="Number of CRITICAL findings")
    warning: int = Field(default=0, description="Number of WARNING findings")
    info: int = Field(default=0, description="Number of INFO findings")
    passed: int = Field(default=0, description="Number of PASS findings")

    @classmethod
    def from_findings(cls, findings: list[Finding]) -> "SeverityCounts":
        counts = cls()
        for finding in findings:
            if finding.severity == Severity.CRITICAL:
                counts.critical += 1
            elif finding.severity == Severity.WARNING:
                counts.warning += 1
            elif finding.severity == Severity.INFO:
                counts.info += 1
            else:
                counts.passed += 1
        return counts


class SampleSet(BaseModel):
    """Bounded, deterministic selection of transcript files."""

    paths: list[Path] = Field(default_factory=list, description="Selected files, most recent first")
    total_candidates: int = Field(default=0, description="Number of files matching the naming convention")
    cap: int = Field(description="Maximum number of files that could be selected")


class PolicyOverride(BaseModel):
    """User-supplied entry of the permission policy table."""

    path_pattern: str = Field(description="Path or glob; may use {state_dir} and {config_path}")
    expected_bits: int = Field(description="Expected permission bits, e.g. 0o600 or the string '600'")
    label: str = Field(description="Human-readable name of the path")
    kind: Literal["file", "dir", "any"] = Field(default="any", description="Restrict glob matches to files or dirs")

    @field_validator("expected_bits", mode="before")
    @classmethod
    def _parse_octal(cls, value):
        if isinstance(value, str):
            return int(value, 8)
        return value


def _default_state_dir() -> Path:
    return Path(os.environ.get("OPENCLAW_STATE_DIR", Path.home() / ".openclaw")).expanduser()


def _default_log_dir() -> Path:
    return Path(os.environ.get("OPENCLAW_LOG_DIR", "/tmp/openclaw"))


class AuditInput(BaseModel):
    """Input parameters for an installation audit."""

    state_dir: Path = Field(default_factory=_default_state_dir, description="Installation root (~/.openclaw)")
    config_path: Optional[Path] = Field(default=None, description="Config file; defaults to <state_dir>/openclaw.json")
    log_dir: Path = Field(default_factory=_default_log_dir, description="Gateway log directory")
    workspaces: list[Path] = Field(default_factory=list, description="Extra workspace directories for prompt files")
    max_transcripts: int = Field(default=10, ge=1, description="Maximum number of transcript files to scan")
    deep: bool = Field(default=False, description="Enable supplementary transcript heuristics")
    scope_window: int = Field(default=10, ge=1, description="Lines after a parent key searched for a child key")
    policy: Optional[list[PolicyOverride]] = Field(default=None, description="Replaces the default permission policy")
    version: Optional[str] = Field(default=None, description="Installed gateway version; probed when omitted")
    inspect_processes: bool = Field(default=True, description="Inspect the process and socket table")
    check_latest: bool = Field(default=False, description="Look up the latest release over the network")
    latest_timeout: float = Field(default=10.0, gt=0, description="Timeout in seconds for the release lookup")
    output_format: Literal["text", "json"] = Field(default="text", description="Report format on stdout")
    section: Literal["gateway", "channels", "agents", "tools", "sessions", "logging", "all"] = Field(
        default="all", description="Configuration overview section to include"
    )

    @property
    def resolved_config_path(self) -> Path:
        return self.config_path or self.state_dir / "openclaw.json"


class ChannelOverview(BaseModel):
    """Effective settings of one messaging channel."""

    name: str
    dm_policy: str = Field(description="Configured DM policy or the documented default")
    hardcoded_token: bool = Field(default=False, description="Whether a literal token appears near the channel")


class AgentOverview(BaseModel):
    """One agent declared in the config."""

    id: str
    has_auth_profiles: bool = False
    session_count: int = 0


class ConfigOverview(BaseModel):
    """Effective configuration values with documented defaults filled in."""

    gateway: dict[str, str] = Field(default_factory=dict, description="Gateway mode, bind, port and auth mode")
    channels: list[ChannelOverview] = Field(default_factory=list)
    agents: dict[str, str] = Field(default_factory=dict, description="Sandbox and concurrency settings")
    agent_ids: list[AgentOverview] = Field(default_factory=list)
    tools: dict[str, str] = Field(default_factory=dict, description="Tool profile and elevated mode")
    sessions: dict[str, str] = Field(default_factory=dict, description="Session scope and reset settings")
    logging: dict[str, str] = Field(default_factory=dict, description="Log levels and redaction")


class AuditReport(BaseModel):
    """Result of an installation audit."""

    state_dir: str = Field(description="Audited installation root")
    config_path: str = Field(description="Audited config file")
    findings: list[Finding] = Field(default_factory=list, description="Findings in rule-registration order")
    rule_names: dict[int, str] = Field(default_factory=dict, description="Name of each evaluated rule by number")
    counts: SeverityCounts = Field(default_factory=SeverityCounts, description="Findings per severity")
    transcripts_scanned: int = Field(default=0, description="Transcript files scanned")
    transcripts_total: int = Field(default=0, description="Transcript files available")
    overview: Optional[ConfigOverview] = Field(default=None, description="Effective configuration summary")
    recommendations: list[str] = Field(default_factory=list, description="Next actions, most urgent first")
    exit_code: int = Field(default=0, description="Process exit code for this report")
