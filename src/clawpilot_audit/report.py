"""Report aggregation and rendering."""

from typing import Iterable, Optional

from .facts import AuditFacts
from .models import AuditReport, ConfigOverview, Finding, Severity, SeverityCounts

EXIT_OK = 0
EXIT_CRITICAL = 2

FRAMEWORKS = "OWASP Agentic Top 10 (ASI01-ASI10) + NIST CSF"
CVE_COVERAGE = "CVE-2026-25253, CVE-2026-24763, CVE-2026-25157"


def exit_code_for(counts: SeverityCounts) -> int:
    """2 when any CRITICAL finding exists, else 0."""
    return EXIT_CRITICAL if counts.critical else EXIT_OK


def generate_recommendations(findings: list[Finding], state_dir: str, config_path: str) -> list[str]:
    """Generate prioritized recommendations based on audit findings.

    Args:
        findings: All findings of the run.
        state_dir: Installation root, used in chmod commands.
        config_path: Config file, used in chmod commands.

    Returns:
        List of recommendation strings, ordered by priority.
    """
    recommendations: list[str] = []

    critical = {f.check for f in findings if f.severity == Severity.CRITICAL}
    warnings = {f.check for f in findings if f.severity == Severity.WARNING}
    flagged = critical | warnings

    if "version_cve" in critical:
        recommendations.append(
            "URGENT: Installed version has known CVEs. Update immediately: npm install -g openclaw@latest"
        )

    if "permission" in critical:
        recommendations.append(
            f"Restrict permissions: chmod 700 {state_dir} && chmod 600 {config_path}"
        )

    if "hardcoded_secrets" in critical or "short_token" in warnings:
        recommendations.append(
            "Move secrets to environment variables and rotate tokens: openssl rand -hex 32"
        )

    if "network_auth" in critical or "network_bind" in critical:
        recommendations.append(
            "Bind the gateway to loopback, or set gateway.auth.mode to \"token\" before exposing it."
        )

    if "dm_policy" in critical or "allow_from_wildcard" in critical:
        recommendations.append(
            "Set dmPolicy to \"pairing\" or \"allowlist\" and remove '*' from allowFrom lists."
        )

    if "control_ui_device_auth" in critical:
        recommendations.append(
            "Re-enable Control UI device auth: gateway.controlUi.dangerouslyDisableDeviceAuth: false"
        )

    if "gateway_listen_all" in critical:
        recommendations.append(
            "The running gateway listens on all interfaces. Set gateway.bind to \"loopback\" and restart it."
        )

    if "synced_folder" in critical:
        recommendations.append(
            "Move the OpenClaw state directory out of the synced folder; credentials are being replicated."
        )

    if "skill_signature" in flagged or "plugin_signature" in flagged:
        recommendations.append(
            "Review flagged skills and plugins and remove untrusted ones. Scan skills: openclaw skills scan"
        )

    # Warning-level recommendations
    if "version_safety_scanner" in warnings:
        recommendations.append(
            "Update to get the built-in skill/plugin safety scanner: npm install -g openclaw@latest"
        )

    if "log_redaction" in warnings:
        recommendations.append(
            "Enable log redaction: logging.redactSensitive: \"tools\""
        )

    if "sandbox_mode" in warnings or "workspace_access" in warnings:
        recommendations.append(
            "Sandbox non-owner sessions: agents.defaults.sandbox.mode \"non-main\" with workspaceAccess \"none\" or \"ro\""
        )

    if "trusted_proxies" in warnings:
        recommendations.append(
            "Configure gateway.trustedProxies when running behind a reverse proxy."
        )

    if "transcript_secret" in warnings:
        recommendations.append(
            "Rotate credentials found in session transcripts and prune old sessions."
        )

    if any(check.startswith("prompt_") for check in warnings):
        recommendations.append(
            "Harden prompt files: add guardrails such as 'Never share API keys, credentials, or internal URLs'."
        )

    # Deduplicate while preserving order
    seen = set()
    unique_recommendations = []
    for rec in recommendations:
        if rec not in seen:
            seen.add(rec)
            unique_recommendations.append(rec)

    return unique_recommendations[:10]


def build_report(
    findings: list[Finding],
    facts: AuditFacts,
    overview: Optional[ConfigOverview] = None,
    rules: Iterable = (),
) -> AuditReport:
    """Aggregate findings into the final report."""
    counts = SeverityCounts.from_findings(findings)
    state_dir = str(facts.state_dir)
    config_path = str(facts.config_path)
    scanned = sum(
        1 for path in facts.transcripts.paths
        if not any(f.check == "transcript_skipped" and f.subject_path == str(path) for f in findings)
    )
    return AuditReport(
        state_dir=state_dir,
        config_path=config_path,
        findings=findings,
        rule_names={rule.number: rule.name for rule in rules},
        counts=counts,
        transcripts_scanned=scanned,
        transcripts_total=facts.transcripts.total_candidates,
        overview=overview,
        recommendations=generate_recommendations(findings, state_dir, config_path),
        exit_code=exit_code_for(counts),
    )


_MARKERS = {
    Severity.CRITICAL: "[CRITICAL]",
    Severity.WARNING: "[WARNING] ",
    Severity.INFO: "[INFO]    ",
    Severity.PASS: "[PASS]    ",
}


def _format_finding(finding: Finding) -> list[str]:
    lines = [f"{_MARKERS[finding.severity]} {finding.message}"]
    if finding.remediation and finding.severity in (Severity.CRITICAL, Severity.WARNING):
        lines.append(f"           Fix: {finding.remediation}")
    return lines


def _format_overview(overview: ConfigOverview) -> list[str]:
    lines = ["", "=== Configuration Overview ==="]
    for title, values in (
        ("Gateway", overview.gateway),
        ("Agents", overview.agents),
        ("Tools", overview.tools),
        ("Sessions", overview.sessions),
        ("Logging", overview.logging),
    ):
        if not values:
            continue
        lines.append(f"  {title}:")
        lines.extend(f"    {key.replace('_', ' ')}: {value}" for key, value in values.items())
    if overview.channels:
        lines.append("  Channels:")
        for channel in overview.channels:
            token = ", token hardcoded" if channel.hardcoded_token else ""
            lines.append(f"    {channel.name}: dmPolicy {channel.dm_policy}{token}")
    if overview.agent_ids:
        lines.append("  Defined agents:")
        for agent in overview.agent_ids:
            profiles = ", auth profiles" if agent.has_auth_profiles else ""
            lines.append(f"    {agent.id}: {agent.session_count} session(s){profiles}")
    return lines


def render_text(report: AuditReport) -> str:
    """Render the report as plain text for a terminal."""
    lines = [
        "OpenClaw Security Audit",
        f"State dir: {report.state_dir}",
        f"Config:    {report.config_path}",
    ]

    by_rule: dict[int, list[Finding]] = {}
    for finding in report.findings:
        by_rule.setdefault(finding.rule, []).append(finding)

    for number in sorted(by_rule):
        name = report.rule_names.get(number, "Findings")
        lines.append("")
        lines.append(f"=== {number}. {name} ===")
        for finding in by_rule[number]:
            lines.extend(_format_finding(finding))

    if report.overview is not None:
        lines.extend(_format_overview(report.overview))

    digest = sorted(
        (f for f in report.findings if f.severity in (Severity.CRITICAL, Severity.WARNING)),
        key=lambda f: (-f.severity.rank, f.rule),
    )
    if digest:
        lines.append("")
        lines.append("=== Findings by Severity ===")
        for finding in digest:
            lines.append(f"{_MARKERS[finding.severity]} #{finding.rule} {finding.message}")

    counts = report.counts
    lines.extend([
        "",
        "=== Audit Summary ===",
        f"  {counts.critical} CRITICAL",
        f"  {counts.warning} Warnings",
        f"  {counts.info} Informational",
        f"  {counts.passed} Passed",
        "",
        f"  {report.transcripts_scanned} of {report.transcripts_total} transcript file(s) scanned",
        f"  Framework: {FRAMEWORKS}",
        f"  CVE Coverage: {CVE_COVERAGE}",
    ])

    lines.append("")
    if counts.critical:
        lines.append("ACTION REQUIRED: Fix critical issues before continuing.")
    elif counts.warning:
        lines.append("Review warnings and harden where possible.")
    else:
        lines.append("All checks passed. Installation looks secure.")

    if report.recommendations:
        lines.append("")
        lines.append("  Recommendations:")
        for index, rec in enumerate(report.recommendations, start=1):
            lines.append(f"    {index}. {rec}")

    return "\n".join(lines) + "\n"


def render_json(report: AuditReport) -> str:
    return report.model_dump_json(indent=2)
