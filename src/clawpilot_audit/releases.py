"""OpenClaw version parsing, fixed-in thresholds and the latest-release lookup."""

import logging
import re
from typing import NamedTuple, Optional

import httpx

from .models import Severity

logger = logging.getLogger(__name__)

RELEASES_URL = "https://api.github.com/repos/openclaw/openclaw/releases"

VERSION_RE = re.compile(r"(?<!\d)(\d{4})\.(\d+)\.(\d+)(?!\d)")

Version = tuple[int, int, int]


class VersionThreshold(NamedTuple):
    """Versions below fixed_in are affected."""

    fixed_in: str
    check: str
    severity: Severity
    affected: str
    fixed: str
    remediation: str


VERSION_THRESHOLDS: tuple[VersionThreshold, ...] = (
    VersionThreshold(
        fixed_in="2026.1.29",
        check="version_cve",
        severity=Severity.CRITICAL,
        affected="is VULNERABLE to CVE-2026-25253 (CVSS 8.8), CVE-2026-24763, CVE-2026-25157",
        fixed="includes CVE-2026-25253/24763/25157 patches",
        remediation="Update immediately: npm install -g openclaw@latest",
    ),
    VersionThreshold(
        fixed_in="2026.2.6",
        check="version_safety_scanner",
        severity=Severity.WARNING,
        affected="lacks the skill/plugin safety scanner",
        fixed="includes the skill/plugin safety scanner (v2026.2.6+)",
        remediation="Upgrade to >= 2026.2.6: npm install -g openclaw@latest",
    ),
)


def parse_version(value: Optional[str]) -> Optional[Version]:
    """Extract a YYYY.MINOR.PATCH version from free text, None when absent."""
    if not value:
        return None
    match = VERSION_RE.search(value)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2)), int(match.group(3))


def format_version(version: Version) -> str:
    return ".".join(str(part) for part in version)


def compare_versions(a: Version, b: Version) -> int:
    """-1, 0 or 1 as a is older than, equal to or newer than b.

    Components are compared in order (year, minor, patch), each numerically.
    """
    for left, right in zip(a, b):
        if left != right:
            return -1 if left < right else 1
    return 0


def is_affected(version: Version, threshold: VersionThreshold) -> bool:
    fixed = parse_version(threshold.fixed_in)
    return fixed is not None and compare_versions(version, fixed) < 0


def fetch_latest_release(timeout: float = 10.0, url: str = RELEASES_URL) -> tuple[Optional[str], Optional[str]]:
    """Look up the newest published release tag.

    Returns:
        Tuple of (version, error). Exactly one of them is set.
    """
    try:
        response = httpx.get(
            url,
            params={"per_page": 3},
            headers={"Accept": "application/vnd.github+json"},
            timeout=timeout,
        )
        response.raise_for_status()
        releases = response.json()
    except httpx.TimeoutException:
        return None, f"timed out after {timeout:g}s"
    except httpx.HTTPError as e:
        return None, f"request failed: {e}"
    except ValueError as e:
        return None, f"invalid response: {e}"

    versions = []
    for release in releases if isinstance(releases, list) else []:
        if not isinstance(release, dict) or release.get("draft") or release.get("prerelease"):
            continue
        parsed = parse_version(str(release.get("tag_name", "")))
        if parsed:
            versions.append(parsed)

    if not versions:
        return None, "no release tags found"
    newest = versions[0]
    for candidate in versions[1:]:
        if compare_versions(candidate, newest) > 0:
            newest = candidate
    logger.info(f"Latest OpenClaw release: {format_version(newest)}")
    return format_version(newest), None
