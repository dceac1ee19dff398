"""Version and known-vulnerability checks."""

from ..extractor import ConfigSnapshot
from ..facts import AuditFacts
from ..models import Finding, Severity
from ..releases import VERSION_THRESHOLDS, compare_versions, format_version, is_affected, parse_version

CATEGORY = "version"


def check_version(snapshot: ConfigSnapshot, facts: AuditFacts) -> list[Finding]:
    """Compare the installed version against the fixed-in thresholds."""
    version = parse_version(facts.version)
    if version is None:
        detail = facts.version_error or f"unrecognised version string {facts.version!r}"
        return [Finding(
            severity=Severity.WARNING,
            category=CATEGORY,
            check="version_unknown",
            message=f"Could not determine OpenClaw version ({detail}). Manual check required.",
            remediation="Run `openclaw --version` and compare against the latest release",
        )]

    version_str = format_version(version)
    findings = [Finding(
        severity=Severity.INFO,
        category=CATEGORY,
        check="version",
        message=f"OpenClaw version: {version_str}",
    )]

    for threshold in VERSION_THRESHOLDS:
        if is_affected(version, threshold):
            findings.append(Finding(
                severity=threshold.severity,
                category=CATEGORY,
                check=threshold.check,
                message=f"Version {version_str} {threshold.affected} (fixed in {threshold.fixed_in})",
                remediation=threshold.remediation,
            ))
        else:
            findings.append(Finding(
                severity=Severity.PASS,
                category=CATEGORY,
                check=threshold.check,
                message=f"Version {version_str} {threshold.fixed}",
            ))

    if facts.latest_checked:
        findings.append(_latest_release_finding(version, facts))

    return findings


def _latest_release_finding(version, facts: AuditFacts) -> Finding:
    latest = parse_version(facts.latest_version)
    if latest is None:
        return Finding(
            severity=Severity.INFO,
            category=CATEGORY,
            check="version_latest",
            message=f"Could not look up the latest release: {facts.latest_error or 'unknown error'}",
        )
    if compare_versions(version, latest) < 0:
        return Finding(
            severity=Severity.INFO,
            category=CATEGORY,
            check="version_latest",
            message=f"Newer release available: {format_version(latest)} (installed {format_version(version)})",
            remediation="npm install -g openclaw@latest",
        )
    return Finding(
        severity=Severity.PASS,
        category=CATEGORY,
        check="version_latest",
        message=f"Installed version is the latest release ({format_version(latest)})",
    )
