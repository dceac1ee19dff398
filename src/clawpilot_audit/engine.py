"""Rule registry and audit runner.

Rules are independent: each reads the immutable config snapshot and the
facts gathered up front, and returns its findings. The runner evaluates them
in registration order and stamps each finding with its rule number, so the
report does not depend on evaluation order.
"""

import logging
from datetime import datetime
from typing import Callable, NamedTuple, Optional

from .checks import (
    check_access_policy,
    check_control_ui,
    check_credentials,
    check_logging,
    check_network,
    check_permissions,
    check_plugins,
    check_process,
    check_prompts,
    check_reverse_proxy,
    check_sandbox,
    check_skills,
    check_synced_folders,
    check_transcripts,
    check_version,
)
from .checks.common import insufficient
from .extractor import ConfigSnapshot
from .facts import AuditFacts, gather_facts
from .inspector import inspect_config
from .models import AuditInput, AuditReport, ConfigOverview, Finding
from .report import build_report

logger = logging.getLogger(__name__)

RuleFunc = Callable[[ConfigSnapshot, AuditFacts], list[Finding]]


class AuditError(Exception):
    """Raised when an audit cannot run at all."""


class InstallationNotFoundError(AuditError):
    """Raised when the installation root does not exist."""


class Rule(NamedTuple):
    """A numbered audit rule."""

    number: int
    name: str
    check: RuleFunc


RULES: tuple[Rule, ...] = (
    Rule(1, "Version & known vulnerabilities", check_version),
    Rule(2, "File permissions", check_permissions),
    Rule(3, "Credential exposure", check_credentials),
    Rule(4, "Network binding & authentication", check_network),
    Rule(5, "DM & access policy", check_access_policy),
    Rule(6, "Sandbox & tool policy", check_sandbox),
    Rule(7, "Logging & redaction", check_logging),
    Rule(8, "Plugin trust", check_plugins),
    Rule(9, "Skill supply chain", check_skills),
    Rule(10, "Control UI security", check_control_ui),
    Rule(11, "Reverse proxy trust", check_reverse_proxy),
    Rule(12, "Gateway process exposure", check_process),
    Rule(13, "Synced folder exposure", check_synced_folders),
    Rule(14, "Session transcript secrets", check_transcripts),
    Rule(15, "Prompt & instruction files", check_prompts),
)


def run_rule_safely(rule: Rule, snapshot: ConfigSnapshot, facts: AuditFacts) -> list[Finding]:
    """Run one rule; an unexpected error becomes an INFO finding, never an abort."""
    try:
        findings = rule.check(snapshot, facts)
    except Exception as e:
        logger.error(f"Rule {rule.number} ({rule.name}) failed: {e}", exc_info=True)
        findings = [insufficient("engine", f"rule_{rule.number}_error", f"rule '{rule.name}' failed: {e}")]
    return [f.model_copy(update={"rule": rule.number}) for f in findings]


def inspect_safely(snapshot: ConfigSnapshot, facts: AuditFacts, section: str = "all") -> Optional[ConfigOverview]:
    """Build the config overview; an unexpected error drops the overview, never the run."""
    try:
        return inspect_config(snapshot, facts, section)
    except Exception as e:
        logger.error(f"Configuration overview failed: {e}", exc_info=True)
        return None


def evaluate(rules: tuple[Rule, ...], snapshot: ConfigSnapshot, facts: AuditFacts) -> list[Finding]:
    """All findings, ordered by rule number then emission order."""
    findings: list[Finding] = []
    for rule in sorted(rules, key=lambda r: r.number):
        findings.extend(run_rule_safely(rule, snapshot, facts))
    return findings


def run_audit(
    audit_input: AuditInput,
    rules: tuple[Rule, ...] = RULES,
    now: Optional[datetime] = None,
) -> AuditReport:
    """Audit one installation and build the report.

    Args:
        audit_input: Paths and settings for the run.
        rules: Rules to evaluate, defaults to the full registry.
        now: Reference time for age-based checks.

    Returns:
        The aggregated AuditReport.

    Raises:
        InstallationNotFoundError: If the installation root does not exist.
    """
    state_dir = audit_input.state_dir.expanduser()
    if not state_dir.is_dir():
        raise InstallationNotFoundError(f"OpenClaw state directory not found: {state_dir}")

    snapshot = ConfigSnapshot.load(audit_input.resolved_config_path.expanduser())
    if not snapshot.available:
        logger.warning(f"Config not available: {snapshot.read_error}")

    facts = gather_facts(audit_input, now=now)
    logger.info(f"Auditing {state_dir} with {len(rules)} rule(s)")

    findings = evaluate(rules, snapshot, facts)
    overview = inspect_safely(snapshot, facts, audit_input.section) if snapshot.available else None
    return build_report(findings, facts, overview=overview, rules=rules)
