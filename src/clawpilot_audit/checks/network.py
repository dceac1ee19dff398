"""Network exposure checks: bind and auth, control UI, reverse proxy, process sockets.

#4 Network binding & authentication
#10 Control UI security (CVE-2026-25253)
#11 Reverse proxy trust (CVE-2026-24763)
#12 Gateway process exposure
"""

import ipaddress
import re

from ..extractor import UNRESOLVED, ConfigSnapshot, Extracted
from ..facts import AuditFacts
from ..models import Finding, Severity
from .common import first_resolved, require_config

CATEGORY = "network"

LOOPBACK_BINDS = {"loopback", "localhost", "127.0.0.1", "::1"}
LOCAL_NETWORK_BINDS = {"lan", "tailnet", "auto"}
PUBLIC_BINDS = {"custom", "0.0.0.0", "::", "*", "all", "public"}

AUTH_MODES = ("token", "password")

_ALL_INTERFACES_RE = re.compile(r"(?:^|\s)(?:\*|0\.0\.0\.0|\[::\]):\d+")


def gateway_bind(snapshot: ConfigSnapshot, window: int) -> Extracted:
    return first_resolved(snapshot.get_scoped("gateway", "bind", window), snapshot.get("bind"))


def classify_bind(value: Extracted) -> Severity:
    """PASS for loopback (or unset), WARNING for local network, CRITICAL for public."""
    if value is UNRESOLVED:
        return Severity.PASS
    lowered = value.strip().lower()
    if lowered in LOOPBACK_BINDS:
        return Severity.PASS
    if lowered in LOCAL_NETWORK_BINDS:
        return Severity.WARNING
    if lowered in PUBLIC_BINDS:
        return Severity.CRITICAL
    try:
        address = ipaddress.ip_address(lowered)
    except ValueError:
        # Unrecognised mode: not provably public, not provably local
        return Severity.WARNING
    if address.is_loopback:
        return Severity.PASS
    if address.is_private or address.is_link_local:
        return Severity.WARNING
    return Severity.CRITICAL


def check_network(snapshot: ConfigSnapshot, facts: AuditFacts) -> list[Finding]:
    """Classify the gateway bind and require auth for anything beyond loopback."""
    missing = require_config(snapshot, CATEGORY)
    if missing:
        return [missing]

    bind = gateway_bind(snapshot, facts.scope_window)
    bind_severity = classify_bind(bind)
    findings = []

    if bind is UNRESOLVED:
        message = "Gateway bind: loopback (default, local only)"
    elif bind_severity == Severity.PASS:
        message = f"Gateway bind: {bind} (local only)"
    elif bind_severity == Severity.WARNING:
        message = f"Gateway bind: {bind}. Exposed beyond this host; ensure auth is set and a firewall is configured"
    else:
        message = f"Gateway bind: {bind}. Publicly exposed! Verify auth and firewall"
    findings.append(Finding(
        severity=bind_severity,
        category=CATEGORY,
        check="network_bind",
        message=message,
        subject_path=str(snapshot.path),
        remediation=None if bind_severity == Severity.PASS else "Set gateway.bind to \"loopback\" unless remote access is required",
    ))

    auth_mode = first_resolved(
        snapshot.get_scoped("auth", "mode", 5, AUTH_MODES),
        snapshot.get("mode", AUTH_MODES),
    )
    if auth_mode is not UNRESOLVED:
        findings.append(Finding(
            severity=Severity.PASS,
            category=CATEGORY,
            check="network_auth",
            message=f"Gateway auth mode: {auth_mode}",
        ))
    elif bind_severity != Severity.PASS:
        findings.append(Finding(
            severity=Severity.CRITICAL,
            category=CATEGORY,
            check="network_auth",
            message=f"No auth mode configured with non-loopback bind ({bind})!",
            subject_path=str(snapshot.path),
            remediation="Set gateway.auth.mode to \"token\" with a strong token (openssl rand -hex 32)",
        ))
    else:
        findings.append(Finding(
            severity=Severity.PASS,
            category=CATEGORY,
            check="network_auth",
            message="No auth mode configured (acceptable for loopback bind)",
        ))

    if snapshot.get_bool("allowTailscale"):
        findings.append(Finding(
            severity=Severity.WARNING,
            category=CATEGORY,
            check="tailscale_auth",
            message="Tailscale identity auth enabled. Only use with trusted tailnets",
            subject_path=str(snapshot.path),
        ))
    return findings


def check_control_ui(snapshot: ConfigSnapshot, facts: AuditFacts) -> list[Finding]:
    missing = require_config(snapshot, "control_ui")
    if missing:
        return [missing]

    findings = []
    if snapshot.get_bool("allowInsecureAuth"):
        findings.append(Finding(
            severity=Severity.WARNING,
            category="control_ui",
            check="control_ui_insecure_auth",
            message="Control UI allowInsecureAuth is true. Device pairing bypassed, token-only auth",
            subject_path=str(snapshot.path),
            remediation="Set gateway.controlUi.allowInsecureAuth: false",
        ))
    if snapshot.get_bool("dangerouslyDisableDeviceAuth"):
        findings.append(Finding(
            severity=Severity.CRITICAL,
            category="control_ui",
            check="control_ui_device_auth",
            message="Control UI device auth DISABLED. Severe security downgrade!",
            subject_path=str(snapshot.path),
            remediation="Set gateway.controlUi.dangerouslyDisableDeviceAuth: false",
        ))
    if not findings:
        findings.append(Finding(
            severity=Severity.PASS,
            category="control_ui",
            check="control_ui_device_auth",
            message="Control UI device auth not weakened",
        ))
    return findings


def check_reverse_proxy(snapshot: ConfigSnapshot, facts: AuditFacts) -> list[Finding]:
    missing = require_config(snapshot, "reverse_proxy")
    if missing:
        return [missing]

    has_proxies = snapshot.has("trustedProxies")
    exposed = classify_bind(gateway_bind(snapshot, facts.scope_window)) != Severity.PASS
    findings = []
    if has_proxies:
        findings.append(Finding(
            severity=Severity.INFO,
            category="reverse_proxy",
            check="trusted_proxies",
            message=(
                "Trusted proxies configured. Verify the proxy overwrites (not appends) X-Forwarded-For; "
                "test: curl -H 'X-Forwarded-For: 127.0.0.1' http://proxy:port/health"
            ),
        ))
    elif exposed:
        findings.append(Finding(
            severity=Severity.WARNING,
            category="reverse_proxy",
            check="trusted_proxies",
            message="Non-loopback bind without trustedProxies. Behind a reverse proxy this allows auth bypass",
            subject_path=str(snapshot.path),
            remediation="Configure gateway.trustedProxies with the proxy addresses",
        ))
    else:
        findings.append(Finding(
            severity=Severity.PASS,
            category="reverse_proxy",
            check="trusted_proxies",
            message="Loopback bind; no reverse proxy trust required",
        ))
    return findings


def check_process(snapshot: ConfigSnapshot, facts: AuditFacts) -> list[Finding]:
    """Inspect the running gateway's sockets, when it is running."""
    process = facts.process
    if not process.checked:
        return [Finding(
            severity=Severity.INFO,
            category="process",
            check="gateway_process",
            message="Process inspection disabled",
        )]
    if not process.pids:
        detail = f" ({process.error})" if process.error else ""
        return [Finding(
            severity=Severity.INFO,
            category="process",
            check="gateway_process",
            message=f"Gateway process not currently running{detail}",
        )]

    pids = ", ".join(str(p) for p in process.pids)
    findings = [Finding(
        severity=Severity.INFO,
        category="process",
        check="gateway_process",
        message=f"Gateway process running (PID: {pids})",
    )]
    if process.error:
        findings.append(Finding(
            severity=Severity.INFO,
            category="process",
            check="gateway_sockets",
            message=f"Could not inspect gateway sockets: {process.error}",
        ))

    public = [line for line in process.listening if _ALL_INTERFACES_RE.search(line)]
    if public:
        findings.append(Finding(
            severity=Severity.CRITICAL,
            category="process",
            check="gateway_listen_all",
            message=f"Gateway listening on all interfaces: {public[0]}",
            remediation="Set gateway.bind to \"loopback\" and restart the gateway",
        ))
    elif process.listening:
        findings.append(Finding(
            severity=Severity.PASS,
            category="process",
            check="gateway_listen_all",
            message=f"Gateway listening on {len(process.listening)} socket(s), none on all interfaces",
        ))

    if process.outbound:
        findings.append(Finding(
            severity=Severity.INFO,
            category="process",
            check="gateway_outbound",
            message=f"{len(process.outbound)} outbound connection(s) from gateway. Review for legitimacy",
        ))
    return findings
