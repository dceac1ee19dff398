"""Read-only security audit of a local OpenClaw gateway installation."""

from .engine import run_audit
from .models import AuditInput, AuditReport, Finding, Severity

__version__ = "0.1.0"

__all__ = [
    "AuditInput",
    "AuditReport",
    "Finding",
    "Severity",
    "run_audit",
]
