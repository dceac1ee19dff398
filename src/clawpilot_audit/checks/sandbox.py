"""Sandbox and tool policy checks."""

from ..extractor import UNRESOLVED, ConfigSnapshot
from ..facts import AuditFacts
from ..models import Finding, Severity
from .common import first_resolved, require_config

CATEGORY = "sandbox"

SANDBOX_MODES = ("off", "non-main", "all")
TOOL_PROFILES = ("minimal", "coding", "messaging", "full")
DOCKER_NETWORKS = ("bridge", "host", "none")


def sandbox_mode(snapshot: ConfigSnapshot, window: int):
    return first_resolved(
        snapshot.get_scoped("sandbox", "mode", window, SANDBOX_MODES),
        snapshot.get("mode", SANDBOX_MODES),
    )


def check_sandbox(snapshot: ConfigSnapshot, facts: AuditFacts) -> list[Finding]:
    missing = require_config(snapshot, CATEGORY)
    if missing:
        return [missing]

    findings = []
    path = str(snapshot.path)

    mode = sandbox_mode(snapshot, facts.scope_window)
    if mode == "off":
        findings.append(Finding(
            severity=Severity.WARNING,
            category=CATEGORY,
            check="sandbox_mode",
            message="Sandbox mode: off. All sessions run unsandboxed on host",
            subject_path=path,
            remediation="Set agents.defaults.sandbox.mode to \"non-main\" or \"all\"",
        ))
    elif mode == "non-main":
        findings.append(Finding(
            severity=Severity.PASS,
            category=CATEGORY,
            check="sandbox_mode",
            message="Sandbox mode: non-main (non-owner sessions sandboxed)",
        ))
    elif mode == "all":
        findings.append(Finding(
            severity=Severity.PASS,
            category=CATEGORY,
            check="sandbox_mode",
            message="Sandbox mode: all (maximum isolation)",
        ))
    else:
        findings.append(Finding(
            severity=Severity.INFO,
            category=CATEGORY,
            check="sandbox_mode",
            message="Sandbox mode not explicitly set (defaults to non-main)",
        ))

    if snapshot.get("workspaceAccess") == "rw":
        findings.append(Finding(
            severity=Severity.WARNING,
            category=CATEGORY,
            check="workspace_access",
            message="Workspace access: rw. Sandboxed agents can modify host files",
            subject_path=path,
        ))

    if snapshot.get_bool_scoped("elevated", "enabled", 5):
        scope = snapshot.scope("elevated", 5) or ""
        restricted = "allowFrom" in scope
        findings.append(Finding(
            severity=Severity.WARNING,
            category=CATEGORY,
            check="elevated_mode",
            message=(
                "Elevated mode enabled. Agents can execute on host; "
                + ("allowFrom restriction configured" if restricted else "no allowFrom restriction!")
            ),
            subject_path=path,
            remediation=None if restricted else "Add tools.elevated.allowFrom with trusted sender ids",
        ))

    profile = snapshot.get("profile", TOOL_PROFILES)
    if profile == "full":
        findings.append(Finding(
            severity=Severity.WARNING,
            category=CATEGORY,
            check="tool_profile",
            message="Tool profile: full. All tools enabled; consider restricting for untrusted channels",
            subject_path=path,
        ))
    elif profile is not UNRESOLVED:
        findings.append(Finding(
            severity=Severity.PASS,
            category=CATEGORY,
            check="tool_profile",
            message=f"Tool profile: {profile}",
        ))

    network = snapshot.get("network", DOCKER_NETWORKS)
    if network in ("bridge", "host"):
        findings.append(Finding(
            severity=Severity.WARNING,
            category=CATEGORY,
            check="sandbox_network",
            message=f"Sandbox docker network is '{network}', not 'none'. Containers have network access",
            subject_path=path,
        ))

    if snapshot.get_bool_scoped("agentToAgent", "enabled", 3):
        findings.append(Finding(
            severity=Severity.WARNING,
            category=CATEGORY,
            check="agent_to_agent",
            message="Agent-to-agent messaging enabled",
            subject_path=path,
        ))
    return findings
