"""Check modules covering the 15 numbered audit rules."""

from .access import check_access_policy
from .credentials import check_credentials
from .filesystem import check_permissions, check_synced_folders
from .logs import check_logging
from .network import check_control_ui, check_network, check_process, check_reverse_proxy
from .prompts import check_prompts
from .sandbox import check_sandbox
from .supply_chain import check_plugins, check_skills
from .transcripts import check_transcripts
from .version import check_version

__all__ = [
    "check_version",
    "check_permissions",
    "check_credentials",
    "check_network",
    "check_access_policy",
    "check_sandbox",
    "check_logging",
    "check_plugins",
    "check_skills",
    "check_control_ui",
    "check_reverse_proxy",
    "check_process",
    "check_synced_folders",
    "check_transcripts",
    "check_prompts",
]
