"""Effective configuration overview.

Summarises what the gateway will actually run with: configured values where
present, documented defaults otherwise. The overview carries no severity;
security judgements are the rules' job.
"""

import logging
import os
import re
from pathlib import Path

from .extractor import UNRESOLVED, ConfigSnapshot, Extracted, extract
from .facts import AuditFacts
from .models import AgentOverview, ChannelOverview, ConfigOverview
from .sampler import TRANSCRIPT_SUFFIX

logger = logging.getLogger(__name__)

SECTIONS = ("gateway", "channels", "agents", "tools", "sessions", "logging", "all")

KNOWN_CHANNELS = (
    "whatsapp", "telegram", "discord", "slack", "imessage", "signal", "googlechat",
    "msteams", "mattermost", "line", "matrix", "feishu", "zalo", "zalouser",
)

LARGE_SESSION_BYTES = 10 * 1_048_576

_CHANNEL_RE = re.compile(r"""(?<![\w$.-])["']?(%s)["']?\s*:\s*\{""" % "|".join(KNOWN_CHANNELS))
_CHANNEL_TOKEN_RE = re.compile(r"""["']?(?:botToken|token)["']?\s*:\s*["'][^$"'][^"']{5,}["']""")


def _or(value: Extracted, default: str) -> str:
    return default if value is UNRESOLVED else value


def inspect_gateway(snapshot: ConfigSnapshot, facts: AuditFacts) -> dict[str, str]:
    window = facts.scope_window
    port = snapshot.get_scoped("gateway", "port", window)
    return {
        "mode": _or(snapshot.get_scoped("gateway", "mode", window), "local (default)"),
        "bind": _or(snapshot.get_scoped("gateway", "bind", window), "loopback (default)"),
        "port": _or(port, "18789 (default)"),
        "auth_mode": _or(snapshot.get_scoped("auth", "mode", 5), "not set"),
        "trusted_proxies": "configured" if snapshot.has("trustedProxies") else "not set",
        "tailscale_auth": "enabled" if snapshot.get_bool("allowTailscale") else "disabled",
    }


def inspect_channels(snapshot: ConfigSnapshot, facts: AuditFacts) -> list[ChannelOverview]:
    """Every known channel block, with its DM policy and token hygiene."""
    names = list(dict.fromkeys(m.group(1) for m in _CHANNEL_RE.finditer(snapshot.text)))
    channels = []
    for name in names:
        block = snapshot.scope(name, 20) or ""
        channels.append(ChannelOverview(
            name=name,
            dm_policy=_or(extract(block, "dmPolicy"), "pairing (default)"),
            hardcoded_token=bool(_CHANNEL_TOKEN_RE.search("\n".join(block.splitlines()[:11]))),
        ))
    return channels


def inspect_agents(snapshot: ConfigSnapshot, facts: AuditFacts) -> dict[str, str]:
    max_concurrent = snapshot.get_int("maxConcurrent")
    timeout = snapshot.get_int("timeoutSeconds")
    return {
        "sandbox_mode": _or(snapshot.get("mode", ("off", "non-main", "all")), "non-main (default)"),
        "workspace_access": _or(snapshot.get("workspaceAccess"), "none (default)"),
        "max_concurrent": "1 (default)" if max_concurrent is None else str(max_concurrent),
        "timeout_seconds": "600 (default)" if timeout is None else str(timeout),
    }


def _session_files(directory: Path) -> list[Path]:
    found = []
    for root, dirs, files in os.walk(directory):
        dirs.sort()
        found.extend(Path(root) / name for name in sorted(files) if name.endswith(TRANSCRIPT_SUFFIX))
    return found


def inspect_agent_ids(snapshot: ConfigSnapshot, facts: AuditFacts) -> list[AgentOverview]:
    agents = []
    for agent_id in dict.fromkeys(snapshot.get_all("id")):
        agent_dir = facts.agents_dir / agent_id
        try:
            has_profiles = (agent_dir / "agent" / "auth-profiles.json").is_file()
            sessions = len(_session_files(agent_dir / "sessions"))
        except (OSError, ValueError) as e:
            # Overlong or NUL-containing ids are not valid directory names
            logger.debug(f"Could not inspect agent directory for {agent_id[:40]!r}: {e}")
            has_profiles, sessions = False, 0
        agents.append(AgentOverview(id=agent_id, has_auth_profiles=has_profiles, session_count=sessions))
    return agents


def inspect_tools(snapshot: ConfigSnapshot, facts: AuditFacts) -> dict[str, str]:
    elevated = snapshot.get_bool_scoped("elevated", "enabled", 5)
    restricted = "allowFrom" in (snapshot.scope("elevated", 5) or "")
    return {
        "profile": _or(snapshot.get("profile", ("minimal", "coding", "messaging", "full")), "not set"),
        "deny_list": "configured" if snapshot.has("deny") else "not set",
        "elevated": "enabled" if elevated else "disabled",
        "elevated_allow_from": "configured" if elevated and restricted else "not set",
        "web_tools": "configured" if snapshot.has("web_fetch") or snapshot.has("web") else "not set",
        "agent_to_agent": "enabled" if snapshot.get_bool_scoped("agentToAgent", "enabled", 3) else "disabled",
    }


def inspect_sessions(snapshot: ConfigSnapshot, facts: AuditFacts) -> dict[str, str]:
    window = facts.scope_window
    files = _session_files(facts.agents_dir)
    large = 0
    for path in files:
        try:
            if path.stat().st_size > LARGE_SESSION_BYTES:
                large += 1
        except OSError as e:
            logger.debug(f"Could not stat {path}: {e}")
    return {
        "scope": _or(snapshot.get_scoped("session", "scope", window), "per-sender (default)"),
        "dm_scope": _or(snapshot.get_scoped("session", "dmScope", window), "not set"),
        "reset_mode": _or(snapshot.get_scoped("reset", "mode", 5), "daily (default)"),
        "reset_triggers": "configured" if snapshot.has("resetTriggers") else "not set",
        "total_files": str(len(files)),
        "large_files": str(large),
    }


def inspect_logging(snapshot: ConfigSnapshot, facts: AuditFacts) -> dict[str, str]:
    return {
        "level": _or(snapshot.get("level"), "info (default)"),
        "console_level": _or(snapshot.get("consoleLevel"), "info (default)"),
        "redact_sensitive": _or(snapshot.get("redactSensitive"), "not set"),
        "log_dir": str(facts.log_dir),
    }


def inspect_config(snapshot: ConfigSnapshot, facts: AuditFacts, section: str = "all") -> ConfigOverview:
    """Build the overview for one section, or for all of them.

    Raises:
        ValueError: If section is not one of SECTIONS.
    """
    if section not in SECTIONS:
        raise ValueError(f"Unknown section: {section}")

    overview = ConfigOverview()
    if section in ("gateway", "all"):
        overview.gateway = inspect_gateway(snapshot, facts)
    if section in ("channels", "all"):
        overview.channels = inspect_channels(snapshot, facts)
    if section in ("agents", "all"):
        overview.agents = inspect_agents(snapshot, facts)
        overview.agent_ids = inspect_agent_ids(snapshot, facts)
    if section in ("tools", "all"):
        overview.tools = inspect_tools(snapshot, facts)
    if section in ("sessions", "all"):
        overview.sessions = inspect_sessions(snapshot, facts)
    if section in ("logging", "all"):
        overview.logging = inspect_logging(snapshot, facts)
    return overview
