"""Log redaction and log directory checks."""

import os
from datetime import timedelta

from ..extractor import UNRESOLVED, ConfigSnapshot
from ..facts import AuditFacts
from ..models import Finding, Severity
from ..permissions import audit_permission
from .common import require_config

CATEGORY = "logging"

LOG_DIR_BITS = 0o700
LOG_RETENTION_DAYS = 30


def check_logging(snapshot: ConfigSnapshot, facts: AuditFacts) -> list[Finding]:
    findings = []

    missing = require_config(snapshot, CATEGORY)
    if missing:
        findings.append(missing)
    else:
        redact = snapshot.get("redactSensitive")
        if redact == "off":
            findings.append(Finding(
                severity=Severity.WARNING,
                category=CATEGORY,
                check="log_redaction",
                message="Log redaction is OFF. Sensitive data may appear in logs",
                subject_path=str(snapshot.path),
                remediation="Set logging.redactSensitive: \"tools\"",
            ))
        elif redact == "tools":
            findings.append(Finding(
                severity=Severity.PASS,
                category=CATEGORY,
                check="log_redaction",
                message="Log redaction: tools (tool output redacted)",
            ))
        elif redact is UNRESOLVED:
            findings.append(Finding(
                severity=Severity.INFO,
                category=CATEGORY,
                check="log_redaction",
                message="Log redaction not explicitly set",
            ))
        else:
            findings.append(Finding(
                severity=Severity.INFO,
                category=CATEGORY,
                check="log_redaction",
                message=f"Log redaction: {redact}",
            ))

    dir_finding = audit_permission(facts.log_dir, LOG_DIR_BITS, f"Log directory ({facts.log_dir})")
    # Log files are less sensitive than credentials: never more than a warning
    if dir_finding.severity == Severity.CRITICAL:
        dir_finding = dir_finding.model_copy(update={"severity": Severity.WARNING})
    findings.append(dir_finding.model_copy(update={"category": CATEGORY, "check": "log_dir_permissions"}))

    if facts.log_dir.is_dir():
        old_logs = _count_old_logs(facts)
        if old_logs:
            findings.append(Finding(
                severity=Severity.INFO,
                category=CATEGORY,
                check="log_retention",
                message=f"{old_logs} log file(s) older than {LOG_RETENTION_DAYS} days. Consider cleanup",
                subject_path=str(facts.log_dir),
            ))
    return findings


def _count_old_logs(facts: AuditFacts) -> int:
    cutoff = (facts.now - timedelta(days=LOG_RETENTION_DAYS)).timestamp()
    count = 0
    for root, _dirs, files in os.walk(facts.log_dir):
        for name in files:
            if not name.endswith(".log"):
                continue
            try:
                if os.stat(os.path.join(root, name)).st_mtime < cutoff:
                    count += 1
            except OSError:
                continue
    return count
