"""Facts about the installation gathered once per run, before any rule runs.

Everything that talks to the outside world (the ``openclaw`` and ``npm``
binaries, ``pgrep``/``lsof``, the release API) happens here, with explicit
timeouts. Failures are recorded as error strings; rules turn them into
findings. Rules themselves only read files.
"""

import logging
import os
import subprocess
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .models import AuditInput, SampleSet
from .permissions import DEFAULT_POLICY, PolicyEntry, policy_from_overrides
from .releases import fetch_latest_release, format_version, parse_version
from .sampler import DeepThresholds, sample_set
from .signatures import DEFAULT_REGISTRY, SignatureRegistry

logger = logging.getLogger(__name__)

COMMAND_TIMEOUT = 10


class GatewayProcess(BaseModel):
    """What the process and socket tables say about a running gateway."""

    checked: bool = Field(default=False, description="Whether inspection ran at all")
    pids: list[int] = Field(default_factory=list, description="PIDs of gateway processes")
    listening: list[str] = Field(default_factory=list, description="lsof lines in LISTEN state")
    outbound: list[str] = Field(default_factory=list, description="Established non-loopback connections")
    error: Optional[str] = Field(default=None, description="Why inspection was incomplete")


class AuditFacts(BaseModel):
    """Inputs shared by every rule: paths, probed state and static registries."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    state_dir: Path
    config_path: Path
    log_dir: Path
    home: Path
    workspaces: list[Path] = Field(default_factory=list, description="Extra workspace directories")
    version: Optional[str] = Field(default=None, description="Installed version as reported")
    version_error: Optional[str] = Field(default=None, description="Why the version is unknown")
    latest_version: Optional[str] = Field(default=None, description="Latest published release")
    latest_error: Optional[str] = Field(default=None, description="Why the latest release is unknown")
    latest_checked: bool = False
    process: GatewayProcess = Field(default_factory=GatewayProcess)
    max_transcripts: int = 10
    transcripts: SampleSet = Field(default_factory=lambda: SampleSet(cap=10), description="Transcripts selected for scanning")
    deep: bool = False
    deep_thresholds: DeepThresholds = Field(default_factory=DeepThresholds)
    scope_window: int = 10
    signatures: SignatureRegistry = DEFAULT_REGISTRY
    policy: tuple[PolicyEntry, ...] = DEFAULT_POLICY
    now: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def agents_dir(self) -> Path:
        return self.state_dir / "agents"

    @property
    def skills_dir(self) -> Path:
        return self.state_dir / "skills"

    @property
    def extensions_dir(self) -> Path:
        return self.state_dir / "extensions"

    @property
    def credentials_dir(self) -> Path:
        return self.state_dir / "credentials"


def _run(command: list[str]) -> tuple[Optional[str], Optional[str]]:
    """Run a command with a timeout. Returns (stdout, error)."""
    try:
        result = subprocess.run(
            command,
            capture_output=True,
            text=True,
            timeout=COMMAND_TIMEOUT,
        )
    except FileNotFoundError:
        return None, f"{command[0]} not found"
    except subprocess.TimeoutExpired:
        return None, f"{command[0]} timed out after {COMMAND_TIMEOUT}s"
    except OSError as e:
        return None, f"{command[0]} failed: {e}"
    return result.stdout, None


def probe_version() -> tuple[Optional[str], Optional[str]]:
    """Ask the openclaw binary, then npm, for the installed version."""
    errors = []
    for command in (["openclaw", "--version"], ["npm", "list", "-g", "openclaw"]):
        output, error = _run(command)
        if error:
            errors.append(error)
            continue
        parsed = parse_version(output)
        if parsed:
            return format_version(parsed), None
        errors.append(f"no version in `{' '.join(command)}` output")
    return None, "; ".join(errors)


def inspect_gateway_process() -> GatewayProcess:
    """Find gateway processes and their sockets with pgrep and lsof."""
    output, error = _run(["pgrep", "-f", "openclaw.*gateway"])
    if error:
        return GatewayProcess(checked=True, error=error)

    own_pid = os.getpid()
    pids = sorted(int(p) for p in (output or "").split() if p.isdigit() and int(p) != own_pid)
    process = GatewayProcess(checked=True, pids=pids)
    if not pids:
        return process

    for pid in pids:
        lsof_out, lsof_error = _run(["lsof", "-i", "-P", "-n", "-a", "-p", str(pid)])
        if lsof_error:
            process.error = lsof_error
            break
        for line in (lsof_out or "").splitlines():
            if "LISTEN" in line:
                process.listening.append(line.strip())
            elif "ESTABLISHED" in line and "127.0.0.1" not in line and "[::1]" not in line:
                process.outbound.append(line.strip())
    return process


def gather_facts(audit_input: AuditInput, now: Optional[datetime] = None) -> AuditFacts:
    """Collect everything rules need that is not in the config file."""
    state_dir = audit_input.state_dir.expanduser()
    facts = AuditFacts(
        state_dir=state_dir,
        config_path=audit_input.resolved_config_path.expanduser(),
        log_dir=audit_input.log_dir.expanduser(),
        home=Path.home(),
        workspaces=[w.expanduser() for w in audit_input.workspaces],
        max_transcripts=audit_input.max_transcripts,
        deep=audit_input.deep,
        scope_window=audit_input.scope_window,
        now=now or datetime.now(timezone.utc),
    )
    if audit_input.policy is not None:
        facts.policy = policy_from_overrides(audit_input.policy)

    facts.transcripts = sample_set(facts.agents_dir, audit_input.max_transcripts)
    logger.info(
        f"Sampled {len(facts.transcripts.paths)} of {facts.transcripts.total_candidates} transcript file(s)"
    )

    if audit_input.version:
        facts.version = audit_input.version
    else:
        facts.version, facts.version_error = probe_version()

    if audit_input.inspect_processes:
        facts.process = inspect_gateway_process()

    if audit_input.check_latest:
        facts.latest_checked = True
        facts.latest_version, facts.latest_error = fetch_latest_release(timeout=audit_input.latest_timeout)

    return facts
