"""Bounded, deterministic sampling of session transcripts.

Transcript corpora grow without limit, so the audit scans only the most
recently modified files, up to a cap, and reports "N of M files scanned"
rather than attempting an exhaustive pass.
"""

import logging
import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from .files import read_file_bytes
from .models import SampleSet

logger = logging.getLogger(__name__)

TRANSCRIPT_SUFFIX = ".jsonl"

# --- Deep-mode heuristics ---

IP_ADDRESS_RE = re.compile(r"\b(?:[0-9]{1,3}\.){3}[0-9]{1,3}\b")
BASE64_BLOB_RE = re.compile(r"[A-Za-z0-9+/]{40,}={0,2}")
INFRA_PATH_RE = re.compile(r"(?:/home/[a-z]|/Users/[A-Z]|/etc/|/var/|C:\\Users\\)")


class DeepThresholds(BaseModel):
    """Limits above which a deep-mode heuristic is reported."""

    ip_lines: int = Field(default=10, description="Lines with an IP address")
    base64_lines: int = Field(default=5, description="Lines with a base64-like blob")
    path_lines: int = Field(default=0, description="Lines with an infrastructure file path")
    max_age_days: int = Field(default=90, description="Age after which a transcript is stale")


class DeepStats(BaseModel):
    """Deep-mode measurements for one transcript."""

    path: Path
    ip_lines: int = 0
    base64_lines: int = 0
    path_lines: int = 0
    age_days: int = 0


def _is_transcript(name: str) -> bool:
    return name.endswith(TRANSCRIPT_SUFFIX)


def find_transcripts(directory: str | Path) -> list[tuple[int, str]]:
    """All transcript files below directory as (mtime_ns, path) pairs."""
    candidates: list[tuple[int, str]] = []
    directory = Path(directory)
    if not directory.is_dir():
        return candidates

    for root, dirs, files in os.walk(directory):
        dirs.sort()
        for name in files:
            if not _is_transcript(name):
                continue
            path = os.path.join(root, name)
            try:
                st = os.stat(path)
            except OSError as e:
                logger.debug(f"Skipping transcript {path}: {e}")
                continue
            if os.path.isfile(path):
                candidates.append((st.st_mtime_ns, path))
    return candidates


def sample(directory: str | Path, max_count: int) -> list[Path]:
    """Choose the max_count most recently modified transcripts below directory.

    Ties in modification time are broken by path so the result is stable.
    """
    return sample_set(directory, max_count).paths


def sample_set(directory: str | Path, max_count: int) -> SampleSet:
    """Like sample, also recording how many candidates there were."""
    cap = max(int(max_count), 0)
    candidates = find_transcripts(directory)
    candidates.sort(key=lambda item: (-item[0], item[1]))
    return SampleSet(
        paths=[Path(path) for _, path in candidates[:cap]],
        total_candidates=len(candidates),
        cap=cap,
    )


def _count_lines(text: str, pattern: re.Pattern) -> int:
    return sum(1 for line in text.splitlines() if pattern.search(line))


def deep_stats(path: str | Path, now: Optional[datetime] = None) -> DeepStats:
    """Measure the deep-mode heuristics for one file.

    Raises:
        OSError: If the file cannot be read.
    """
    path = Path(path)
    now = now or datetime.now(timezone.utc)
    text = read_file_bytes(path, max_bytes=64 * 1_048_576).decode("utf-8", errors="ignore")
    mtime = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
    return DeepStats(
        path=path,
        ip_lines=_count_lines(text, IP_ADDRESS_RE),
        base64_lines=_count_lines(text, BASE64_BLOB_RE),
        path_lines=_count_lines(text, INFRA_PATH_RE),
        age_days=max((now - mtime).days, 0),
    )
