"""Permission audit of sensitive paths against an expected policy table."""

import glob
import os
import stat
from pathlib import Path
from typing import Iterable, NamedTuple, Optional

from .models import Finding, PolicyOverride, Severity

CATEGORY = "permissions"


class PolicyEntry(NamedTuple):
    """Expected permission bits for a path or glob.

    ``path_pattern`` may contain ``{state_dir}`` and ``{config_path}``
    placeholders. Globs (``*``, ``**``) expand to every match of ``kind``.
    """

    path_pattern: str
    expected_bits: int
    label: str
    kind: str = "any"


DEFAULT_POLICY: tuple[PolicyEntry, ...] = (
    PolicyEntry("{state_dir}", 0o700, "State directory (~/.openclaw)", "dir"),
    PolicyEntry("{config_path}", 0o600, "Config file (openclaw.json)", "file"),
    PolicyEntry("{state_dir}/credentials", 0o700, "Credentials directory", "dir"),
    PolicyEntry("{state_dir}/credentials/**/*", 0o600, "Credential", "file"),
    PolicyEntry("{state_dir}/agents/**/auth-profiles.json", 0o600, "Auth profile", "file"),
    PolicyEntry("{state_dir}/.env", 0o600, "Environment file (.env)", "file"),
)

_WORLD_RW = stat.S_IROTH | stat.S_IWOTH
_GROUP_OTHER = 0o077


def policy_from_overrides(overrides: Iterable[PolicyOverride]) -> tuple[PolicyEntry, ...]:
    return tuple(
        PolicyEntry(o.path_pattern, o.expected_bits, o.label, o.kind) for o in overrides
    )


def _get_mode(path: Path) -> tuple[Optional[int], Optional[str]]:
    """Get the permission bits of a path.

    Returns:
        Tuple of (bits, error). error is "missing" when the path does not
        exist, another message when it could not be checked.
    """
    try:
        return stat.S_IMODE(os.stat(path).st_mode), None
    except FileNotFoundError:
        return None, "missing"
    except PermissionError:
        return None, f"Permission denied: {path}"
    except OSError as e:
        return None, f"Error checking {path}: {e}"


def classify_excess(actual: int, expected: int) -> Severity:
    """Severity of the access `actual` grants beyond `expected`.

    World read/write beyond policy is CRITICAL, any other group/other access
    is WARNING, extra owner bits only are INFO, and no excess at all (equal or
    stricter) is PASS. Adding bits never lowers the result.
    """
    excess = actual & ~expected & 0o777
    if excess & _WORLD_RW:
        return Severity.CRITICAL
    if excess & _GROUP_OTHER:
        return Severity.WARNING
    if excess:
        return Severity.INFO
    return Severity.PASS


def audit_permission(path: str | Path, expected_bits: int, label: Optional[str] = None) -> Finding:
    """Compare a path's permission bits with the expected value."""
    path = Path(path)
    label = label or str(path)
    expected_str = format(expected_bits, "o")
    mode, error = _get_mode(path)

    if error == "missing":
        return Finding(
            severity=Severity.INFO,
            category=CATEGORY,
            check="permission",
            message=f"{label}: path does not exist ({path})",
        )
    if error:
        return Finding(
            severity=Severity.INFO,
            category=CATEGORY,
            check="permission_unreadable",
            message=f"{label}: could not check permissions. {error}",
        )

    actual_str = format(mode, "o")
    severity = classify_excess(mode, expected_bits)
    chmod = f"chmod {expected_str} {path}"

    if mode == expected_bits:
        message = f"{label}: permissions {actual_str} (expected {expected_str})"
    elif severity == Severity.PASS:
        message = f"{label}: permissions {actual_str} are stricter than expected {expected_str}"
    elif severity == Severity.CRITICAL:
        message = f"{label}: permissions {actual_str} (expected {expected_str}). Others can access"
    elif severity == Severity.WARNING:
        message = f"{label}: permissions {actual_str} (expected {expected_str}). Group/others have extra access"
    else:
        message = f"{label}: permissions {actual_str} differ from expected {expected_str} (owner bits only)"

    return Finding(
        severity=severity,
        category=CATEGORY,
        check="permission",
        message=message,
        subject_path=str(path),
        remediation=None if severity == Severity.PASS else chmod,
    )


def _matches_kind(path: Path, kind: str) -> bool:
    if kind == "file":
        return path.is_file()
    if kind == "dir":
        return path.is_dir()
    return True


def expand_entry(entry: PolicyEntry, state_dir: Path, config_path: Path) -> tuple[list[Path], bool]:
    """Resolve an entry's pattern.

    Returns:
        Tuple of (paths, is_glob). A literal pattern always yields its single
        path, existing or not; a glob yields only existing matches, sorted.
    """
    pattern = entry.path_pattern.format(state_dir=state_dir, config_path=config_path)
    pattern = os.path.expanduser(pattern)
    if not glob.has_magic(pattern):
        return [Path(pattern)], False
    matches = sorted(Path(p) for p in glob.glob(pattern, recursive=True))
    return [p for p in matches if _matches_kind(p, entry.kind)], True


def audit_policy(
    policy: Iterable[PolicyEntry],
    state_dir: Path,
    config_path: Path,
) -> list[Finding]:
    """Audit every path named by the policy table, in table order."""
    findings: list[Finding] = []
    for entry in policy:
        paths, is_glob = expand_entry(entry, state_dir, config_path)
        if is_glob and not paths:
            findings.append(Finding(
                severity=Severity.INFO,
                category=CATEGORY,
                check="permission",
                message=f"{entry.label}: no paths match {entry.path_pattern}",
            ))
            continue
        for path in paths:
            label = entry.label
            if is_glob:
                label = f"{entry.label}: {_short(path, state_dir)}"
            findings.append(audit_permission(path, entry.expected_bits, label))
    return findings


def _short(path: Path, base: Path) -> str:
    try:
        return str(path.relative_to(base))
    except ValueError:
        return path.name
