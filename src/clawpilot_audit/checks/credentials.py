"""Credential exposure in the config file.

READ-ONLY DETECTION: literal secrets are reported with a redacted preview;
full values never reach the report.
"""

import re

from ..extractor import ConfigSnapshot
from ..facts import AuditFacts
from ..files import redact_secret
from ..models import Finding, Severity
from .common import require_config

CATEGORY = "credentials"

# "apiKey": "abc...", "botToken": '...' -- literal values, not ${ENV} references
_HARDCODED_SECRET_RE = re.compile(
    r"""["']?(\w*?(?:api[_-]?key|token|secret|password))["']?\s*:\s*["']([^$"'][^"']{8,})["']""",
    re.IGNORECASE,
)
_SHORT_TOKEN_RE = re.compile(r"""["']?token["']?\s*:\s*["']([^$"'][^"']{0,14})["']""")

MAX_LISTED = 5


def check_credentials(snapshot: ConfigSnapshot, facts: AuditFacts) -> list[Finding]:
    """Look for hardcoded secrets and weak tokens in the config file."""
    missing = require_config(snapshot, CATEGORY)
    if missing:
        return [missing]

    # Raw text on purpose: a commented-out secret is still on disk
    hits = []
    short_tokens = 0
    for line_num, line in enumerate(snapshot.raw_text.splitlines(), start=1):
        for match in _HARDCODED_SECRET_RE.finditer(line):
            hits.append(f"line {line_num}: {match.group(1)} = {redact_secret(match.group(2))}")
        short_tokens += len(_SHORT_TOKEN_RE.findall(line))

    findings = []
    if hits:
        listed = "; ".join(hits[:MAX_LISTED])
        more = f" (+{len(hits) - MAX_LISTED} more)" if len(hits) > MAX_LISTED else ""
        findings.append(Finding(
            severity=Severity.CRITICAL,
            category=CATEGORY,
            check="hardcoded_secrets",
            message=f"Hardcoded secrets found in config file: {listed}{more}",
            subject_path=str(snapshot.path),
            remediation="Replace literal values with ${ENV_VAR} references and rotate the exposed credentials",
        ))
    else:
        findings.append(Finding(
            severity=Severity.PASS,
            category=CATEGORY,
            check="hardcoded_secrets",
            message="No obvious hardcoded secrets in config (or using env var references)",
        ))

    if short_tokens:
        findings.append(Finding(
            severity=Severity.WARNING,
            category=CATEGORY,
            check="short_token",
            message=f"{short_tokens} short token(s) detected (< 16 chars)",
            subject_path=str(snapshot.path),
            remediation="Generate a strong token: openssl rand -hex 32",
        ))
    return findings
