"""Shared fixtures: a throwaway OpenClaw installation under tmp_path."""

import os
from datetime import datetime, timezone
from pathlib import Path

import pytest

from clawpilot_audit.extractor import ConfigSnapshot
from clawpilot_audit.facts import gather_facts
from clawpilot_audit.models import AuditInput

NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)

SAFE_CONFIG = """{
  // gateway stays on this host
  gateway: {
    mode: "local",
    bind: "loopback",
    port: 18789,
    auth: { mode: "token", token: "${OPENCLAW_GATEWAY_TOKEN}" },
  },
  channels: {
    telegram: {
      dmPolicy: "pairing",
      botToken: "${TELEGRAM_BOT_TOKEN}",
    },
  },
  agents: {
    defaults: {
      sandbox: { mode: "non-main", workspaceAccess: "none" },
    },
  },
  logging: { redactSensitive: "tools" },
}
"""


class Installation:
    """Builder for a fake state directory."""

    def __init__(self, root: Path, log_dir: Path):
        self.root = root
        self.log_dir = log_dir

    @property
    def config_path(self) -> Path:
        return self.root / "openclaw.json"

    def write_config(self, text: str = SAFE_CONFIG, mode: int = 0o600) -> Path:
        self.config_path.write_text(text)
        self.config_path.chmod(mode)
        return self.config_path

    def write(self, relative: str, content: str | bytes, mode: int = 0o600, mtime: float | None = None) -> Path:
        path = self.root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content)
        path.chmod(mode)
        if mtime is not None:
            os.utime(path, (mtime, mtime))
        return path

    def audit_input(self, **overrides) -> AuditInput:
        params = dict(
            state_dir=self.root,
            log_dir=self.log_dir,
            version="2026.2.9",
            inspect_processes=False,
        )
        params.update(overrides)
        return AuditInput(**params)

    def facts(self, **overrides):
        return gather_facts(self.audit_input(**overrides), now=NOW)

    def snapshot(self) -> ConfigSnapshot:
        return ConfigSnapshot.load(self.config_path)


@pytest.fixture
def install(tmp_path):
    """An empty installation root with mode 700."""
    root = tmp_path / ".openclaw"
    root.mkdir()
    root.chmod(0o700)
    return Installation(root, tmp_path / "logs")


@pytest.fixture
def safe_install(install):
    """Installation with a hardened config file."""
    install.write_config()
    return install
