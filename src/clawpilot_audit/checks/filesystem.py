"""Filesystem checks: permission policy and synced-folder placement."""

from pathlib import Path

from ..extractor import ConfigSnapshot
from ..facts import AuditFacts
from ..models import Finding, Severity
from ..permissions import audit_policy

# Folders kept in sync with a cloud provider, relative to the home directory
SYNCED_DIRS = (
    "Dropbox",
    "Google Drive",
    "OneDrive",
    "iCloud",
    "Library/Mobile Documents",
    "Library/CloudStorage",
)


def check_permissions(snapshot: ConfigSnapshot, facts: AuditFacts) -> list[Finding]:
    """Audit the permission policy table against the state directory."""
    return audit_policy(facts.policy, facts.state_dir, facts.config_path)


def _resolve(path: Path) -> Path:
    try:
        return path.resolve()
    except OSError:
        return path.absolute()


def check_synced_folders(snapshot: ConfigSnapshot, facts: AuditFacts) -> list[Finding]:
    """Flag a state directory that lives inside a cloud-synced folder."""
    state_dir = _resolve(facts.state_dir)
    findings = []
    for name in SYNCED_DIRS:
        sync_dir = _resolve(facts.home / name)
        if state_dir == sync_dir or sync_dir in state_dir.parents:
            findings.append(Finding(
                severity=Severity.CRITICAL,
                category="data_location",
                check="synced_folder",
                message=f"OpenClaw state directory is inside a synced folder: {sync_dir}",
                subject_path=str(facts.state_dir),
                remediation="Move the state directory to a non-synced location to prevent credential exposure",
            ))

    if not findings:
        findings.append(Finding(
            severity=Severity.PASS,
            category="data_location",
            check="synced_folder",
            message="State directory not in common synced folders",
        ))
    return findings
