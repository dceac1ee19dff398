"""Session transcript secret sampling.

Only the sampled transcripts are scanned; the report always states how many
of the available files that was.
"""

import logging

from ..extractor import ConfigSnapshot
from ..facts import AuditFacts
from ..files import display_path
from ..models import Finding, Severity
from ..sampler import deep_stats
from ..signatures import SECRET_EXPOSURE, scan_file

logger = logging.getLogger(__name__)

CATEGORY = "transcripts"

# Transcripts can be large; read at most this much of each sampled file
TRANSCRIPT_MAX_BYTES = 16 * 1_048_576


def check_transcripts(snapshot: ConfigSnapshot, facts: AuditFacts) -> list[Finding]:
    """Scan the sampled transcripts for leaked secrets."""
    if not facts.agents_dir.is_dir():
        return [Finding(
            severity=Severity.INFO,
            category=CATEGORY,
            check="transcripts_scanned",
            message=f"No agents directory found ({facts.agents_dir}): no transcripts to scan",
        )]

    sampled = facts.transcripts
    registry = facts.signatures.subset(SECRET_EXPOSURE)
    findings = []
    scanned = 0
    flagged = 0

    for path in sampled.paths:
        rel = display_path(path, facts.state_dir)
        result = scan_file(path, registry, TRANSCRIPT_MAX_BYTES)
        if result.skipped:
            findings.append(Finding(
                severity=Severity.INFO,
                category=CATEGORY,
                check="transcript_skipped",
                message=f"Skipped transcript {rel}: {result.skipped}",
                subject_path=str(path),
            ))
            continue
        scanned += 1
        if result.matched:
            flagged += 1
            findings.append(Finding(
                severity=Severity.WARNING,
                category=CATEGORY,
                check="transcript_secret",
                message=f"Possible secret(s) in session transcript {rel}: {', '.join(result.matched)}",
                subject_path=str(path),
                remediation="Rotate the exposed credentials and delete or redact the transcript",
            ))
        if facts.deep:
            findings.extend(_deep_findings(path, rel, facts))

    summary_severity = Severity.INFO if flagged else Severity.PASS
    detail = f"{flagged} with possible secrets" if flagged else "no secrets found"
    findings.append(Finding(
        severity=summary_severity,
        category=CATEGORY,
        check="transcripts_scanned",
        message=(
            f"{scanned} of {sampled.total_candidates} transcript file(s) scanned "
            f"(most recent {sampled.cap}); {detail}"
        ),
    ))
    return findings


def _deep_findings(path, rel: str, facts: AuditFacts) -> list[Finding]:
    try:
        stats = deep_stats(path, facts.now)
    except OSError as e:
        logger.debug(f"Deep analysis of {path} failed: {e}")
        return []

    limits = facts.deep_thresholds
    findings = []
    if stats.ip_lines > limits.ip_lines:
        findings.append(Finding(
            severity=Severity.INFO,
            category=CATEGORY,
            check="transcript_ip_addresses",
            message=f"{rel}: {stats.ip_lines} line(s) with IP addresses",
            subject_path=str(path),
        ))
    if stats.base64_lines > limits.base64_lines:
        findings.append(Finding(
            severity=Severity.WARNING,
            category=CATEGORY,
            check="transcript_base64",
            message=f"{rel}: {stats.base64_lines} line(s) with large base64 blobs. Possible encoded credentials",
            subject_path=str(path),
        ))
    if stats.path_lines > limits.path_lines:
        findings.append(Finding(
            severity=Severity.INFO,
            category=CATEGORY,
            check="transcript_paths",
            message=f"{rel}: {stats.path_lines} line(s) with infrastructure file paths",
            subject_path=str(path),
        ))
    if stats.age_days > limits.max_age_days:
        findings.append(Finding(
            severity=Severity.INFO,
            category=CATEGORY,
            check="transcript_age",
            message=f"{rel}: {stats.age_days} days old. Consider a retention policy",
            subject_path=str(path),
        ))
    return findings
