"""DM policy and group access checks."""

import re

from ..extractor import ConfigSnapshot
from ..facts import AuditFacts
from ..models import Finding, Severity
from .common import require_config

CATEGORY = "access"

SAFE_DM_POLICIES = {
    "pairing": "unknown senders need approval",
    "allowlist": "only approved senders",
    "disabled": "DMs disabled",
}
DEFAULT_DM_POLICY = "pairing"

# allowFrom: ["+1555...", "*"] -- any wildcard entry, across lines
_WILDCARD_ALLOW_RE = re.compile(r"""(?:allowFrom|groupAllowFrom)["']?\s*:\s*\[[^\]]*["']\*["']""")


def check_access_policy(snapshot: ConfigSnapshot, facts: AuditFacts) -> list[Finding]:
    """Classify every dmPolicy in the config; wildcard allow-lists are always critical."""
    missing = require_config(snapshot, CATEGORY)
    if missing:
        return [missing]

    findings = []
    policies = snapshot.get_all("dmPolicy")
    open_count = sum(1 for p in policies if p == "open")
    unknown = sorted({p for p in policies if p != "open" and p not in SAFE_DM_POLICIES})

    if open_count:
        findings.append(Finding(
            severity=Severity.CRITICAL,
            category=CATEGORY,
            check="dm_policy",
            message=f"DM policy set to 'open' ({open_count} occurrence(s)). Anyone can message the bot!",
            subject_path=str(snapshot.path),
            remediation="Set dmPolicy to \"pairing\" or \"allowlist\"",
        ))
    elif unknown:
        findings.append(Finding(
            severity=Severity.WARNING,
            category=CATEGORY,
            check="dm_policy",
            message=f"Unrecognised DM policy value(s): {', '.join(unknown)}",
            subject_path=str(snapshot.path),
        ))
    elif policies:
        described = ", ".join(f"{p} ({SAFE_DM_POLICIES[p]})" for p in dict.fromkeys(policies))
        findings.append(Finding(
            severity=Severity.PASS,
            category=CATEGORY,
            check="dm_policy",
            message=f"DM policy: {described}",
        ))
    else:
        findings.append(Finding(
            severity=Severity.INFO,
            category=CATEGORY,
            check="dm_policy",
            message=f"DM policy not explicitly set (defaults to '{DEFAULT_DM_POLICY}')",
        ))

    if _WILDCARD_ALLOW_RE.search(snapshot.text):
        findings.append(Finding(
            severity=Severity.CRITICAL,
            category=CATEGORY,
            check="allow_from_wildcard",
            message="allowFrom contains wildcard '*'. Allows all senders regardless of DM policy!",
            subject_path=str(snapshot.path),
            remediation="Replace '*' with explicit sender ids",
        ))

    if "false" in (v.lower() for v in snapshot.get_all("requireMention")):
        findings.append(Finding(
            severity=Severity.WARNING,
            category=CATEGORY,
            check="require_mention",
            message="Some groups have requireMention: false. Bot responds to all messages in those groups",
            subject_path=str(snapshot.path),
        ))

    if "open" in snapshot.get_all("groupPolicy"):
        findings.append(Finding(
            severity=Severity.WARNING,
            category=CATEGORY,
            check="group_policy",
            message="groupPolicy set to 'open'. Any group the bot is added to can use it",
            subject_path=str(snapshot.path),
            remediation="Set groupPolicy to \"allowlist\"",
        ))
    return findings
