#!/usr/bin/env python3
"""Main entrypoint for the OpenClaw installation audit.

This script reads JSON input from stdin (AuditInput model), runs all audit rules,
and prints the report to stdout as text or JSON.

Exit codes: 0 no critical findings, 2 critical findings, 3 installation root
missing, 1 invalid input, 130 interrupted.
"""

import json
import logging
import sys
from pathlib import Path

# Add src directory to path for imports
sys.path.insert(0, str(Path(__file__).parent / "src"))

from clawpilot_audit.engine import InstallationNotFoundError, run_audit
from clawpilot_audit.models import AuditInput
from clawpilot_audit.report import render_json, render_text

logger = logging.getLogger("clawpilot_audit")

EXIT_INVALID_INPUT = 1
EXIT_NOT_FOUND = 3
EXIT_INTERRUPTED = 130


def read_input(stream=None) -> AuditInput:
    """Parse AuditInput from a stream; empty input or a terminal means defaults.

    Raises:
        pydantic.ValidationError: If the input is not a valid AuditInput.
    """
    stream = stream or sys.stdin
    if stream.isatty():
        return AuditInput()
    input_data = stream.read()
    if input_data.strip():
        return AuditInput.model_validate_json(input_data)
    return AuditInput()


def main() -> int:
    """Main entry point for the audit.

    Returns:
        Process exit code.
    """
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        audit_input = read_input()
    except Exception as e:
        error_result = {
            "error": f"Failed to parse input: {str(e)}",
            "expected_format": {
                "state_dir": "~/.openclaw",
                "max_transcripts": 10,
                "deep": False,
                "output_format": "text",
                "section": "all",
            },
        }
        print(json.dumps(error_result), file=sys.stdout)
        return EXIT_INVALID_INPUT

    try:
        report = run_audit(audit_input)
    except InstallationNotFoundError as e:
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_NOT_FOUND
    except KeyboardInterrupt:
        # Nothing was printed yet; an interrupted run emits no report
        return EXIT_INTERRUPTED

    if audit_input.output_format == "json":
        print(render_json(report))
    else:
        print(render_text(report), end="")
    return report.exit_code


if __name__ == "__main__":
    sys.exit(main())
