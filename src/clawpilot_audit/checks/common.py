"""Helpers shared by the check modules."""

from typing import Optional

from ..extractor import UNRESOLVED, ConfigSnapshot, Extracted
from ..models import Finding, Severity


def insufficient(category: str, check: str, detail: str) -> Finding:
    """INFO finding for a check that could not be evaluated."""
    return Finding(
        severity=Severity.INFO,
        category=category,
        check=check,
        message=f"Insufficient information: {detail}",
    )


def require_config(snapshot: ConfigSnapshot, category: str) -> Optional[Finding]:
    """An insufficient-information finding when the config could not be read."""
    if snapshot.available:
        return None
    reason = snapshot.read_error or "config file not available"
    return insufficient(category, f"{category}_config", f"{reason}. Config-based checks skipped")


def first_resolved(*values: Extracted) -> Extracted:
    for value in values:
        if value is not UNRESOLVED:
            return value
    return UNRESOLVED
