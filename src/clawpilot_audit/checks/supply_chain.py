"""Plugin trust and skill supply-chain checks.

Every scannable file under the skills and extensions directories goes
through the signature scanner; each offending file is reported with its path
and the names of the signatures that fired.
"""

import logging
from pathlib import Path

from ..extractor import ConfigSnapshot
from ..facts import AuditFacts
from ..files import display_path, walk_files
from ..models import Finding, Severity
from ..signatures import CODE_FAMILIES, FAMILY_LABELS, SignatureRegistry, describe, matched_families, scan_file

logger = logging.getLogger(__name__)

SCANNABLE_EXTENSIONS: frozenset[str] = frozenset({
    ".sh", ".bash", ".zsh", ".py", ".js", ".mjs", ".cjs", ".ts", ".md",
})


def _installed(directory: Path) -> list[str]:
    return sorted(p.name for p in directory.iterdir() if p.is_dir() and not p.name.startswith("."))


def scan_tree(
    root: Path,
    base: Path,
    registry: SignatureRegistry,
    kind: str,
    category: str,
) -> tuple[list[Finding], int]:
    """Scan every scannable file below root.

    Returns:
        Tuple of (findings for suspicious or skipped files, files scanned).
    """
    findings = []
    scanned = 0
    for path in walk_files(root, SCANNABLE_EXTENSIONS):
        result = scan_file(path, registry)
        rel = display_path(path, base)
        if result.skipped:
            findings.append(Finding(
                severity=Severity.INFO,
                category=category,
                check=f"{kind}_skipped",
                message=f"Skipped {kind} file {rel}: {result.skipped}",
                subject_path=str(path),
            ))
            continue
        scanned += 1
        if result.severity in (Severity.CRITICAL, Severity.WARNING):
            labels = ", ".join(FAMILY_LABELS[f] for f in matched_families(result.matched, registry))
            logger.info(f"Suspicious {kind} file {rel}: {result.matched}")
            findings.append(Finding(
                severity=result.severity,
                category=category,
                check=f"{kind}_signature",
                message=f"{labels} pattern in {kind}: {rel} ({'; '.join(describe(result.matched, registry))})",
                subject_path=str(path),
                remediation=f"Review {rel} and remove the {kind} if untrusted; run: openclaw skills scan",
            ))
    return findings, scanned


def check_plugins(snapshot: ConfigSnapshot, facts: AuditFacts) -> list[Finding]:
    """List installed plugins and scan their files."""
    extensions = facts.extensions_dir
    if not extensions.is_dir():
        return [Finding(
            severity=Severity.PASS,
            category="plugins",
            check="plugins_installed",
            message="No extensions directory found",
        )]

    plugins = _installed(extensions)
    if not plugins:
        return [Finding(
            severity=Severity.PASS,
            category="plugins",
            check="plugins_installed",
            message="No plugins installed",
        )]

    findings = [Finding(
        severity=Severity.WARNING,
        category="plugins",
        check="plugins_installed",
        message=f"{len(plugins)} plugin(s) installed. Review each for trust: {', '.join(plugins)}",
        subject_path=str(extensions),
        remediation="Remove plugins you do not recognise: openclaw plugins list",
    )]
    registry = facts.signatures.subset(*CODE_FAMILIES)
    suspicious, scanned = scan_tree(extensions, facts.state_dir, registry, "plugin", "plugins")
    findings.extend(suspicious)
    if not any(f.check == "plugin_signature" for f in suspicious):
        findings.append(Finding(
            severity=Severity.PASS,
            category="plugins",
            check="plugin_signature",
            message=f"No suspicious patterns found in {scanned} plugin file(s)",
        ))
    return findings


def check_skills(snapshot: ConfigSnapshot, facts: AuditFacts) -> list[Finding]:
    """Scan installed skills for exfiltration, reverse shells and obfuscation."""
    skills_dir = facts.skills_dir
    if not skills_dir.is_dir():
        return [Finding(
            severity=Severity.INFO,
            category="skills",
            check="skills_installed",
            message=f"No skills directory found ({skills_dir}): path does not exist",
        )]

    skills = _installed(skills_dir)
    if not skills:
        return [Finding(
            severity=Severity.PASS,
            category="skills",
            check="skills_installed",
            message="No skills installed",
        )]

    findings = [Finding(
        severity=Severity.INFO,
        category="skills",
        check="skills_installed",
        message=f"{len(skills)} skill(s) installed in {skills_dir}",
        subject_path=str(skills_dir),
    )]
    registry = facts.signatures.subset(*CODE_FAMILIES)
    suspicious, scanned = scan_tree(skills_dir, facts.state_dir, registry, "skill", "skills")
    findings.extend(suspicious)

    flagged = sum(1 for f in suspicious if f.check == "skill_signature")
    if flagged:
        findings.append(Finding(
            severity=Severity.INFO,
            category="skills",
            check="skills_summary",
            message=f"{flagged} of {scanned} skill file(s) matched suspicious patterns",
        ))
    else:
        findings.append(Finding(
            severity=Severity.PASS,
            category="skills",
            check="skill_signature",
            message=f"No suspicious patterns found in {scanned} skill file(s)",
        ))
    return findings
