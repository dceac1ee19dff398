"""Tests for transcript sampling."""

import os
from datetime import datetime, timezone

from clawpilot_audit.sampler import deep_stats, sample, sample_set


def _transcript(root, relative, mtime, content="{}\n"):
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    os.utime(path, (mtime, mtime))
    return path


class TestSample:
    """Test bounded transcript selection."""

    def test_most_recent_first_and_capped(self, tmp_path):
        """Test that the newest files are chosen up to the cap."""
        old = _transcript(tmp_path, "a/sessions/old.jsonl", 1_000)
        mid = _transcript(tmp_path, "a/sessions/mid.jsonl", 2_000)
        new = _transcript(tmp_path, "b/sessions/new.jsonl", 3_000)

        assert sample(tmp_path, 2) == [new, mid]
        assert old not in sample(tmp_path, 2)

    def test_ties_broken_by_path(self, tmp_path):
        """Test lexical order among equal modification times."""
        b = _transcript(tmp_path, "b.jsonl", 5_000)
        a = _transcript(tmp_path, "a.jsonl", 5_000)
        c = _transcript(tmp_path, "sub/c.jsonl", 5_000)
        assert sample(tmp_path, 10) == [a, b, c]

    def test_deterministic(self, tmp_path):
        """Test that repeated calls agree."""
        for i in range(5):
            _transcript(tmp_path, f"s{i}.jsonl", 1_000 + (i % 2))
        assert sample(tmp_path, 3) == sample(tmp_path, 3)

    def test_other_files_ignored(self, tmp_path):
        """Test the naming convention."""
        _transcript(tmp_path, "notes.txt", 9_000)
        keep = _transcript(tmp_path, "s.jsonl", 1_000)
        assert sample(tmp_path, 5) == [keep]

    def test_missing_directory(self, tmp_path):
        """Test a missing directory."""
        assert sample(tmp_path / "absent", 5) == []

    def test_counts_candidates(self, tmp_path):
        """Test that the sample set reports the total available."""
        for i in range(4):
            _transcript(tmp_path, f"s{i}.jsonl", 1_000 + i)
        result = sample_set(tmp_path, 3)
        assert len(result.paths) == 3
        assert result.total_candidates == 4
        assert result.cap == 3


class TestDeepStats:
    """Test deep-mode heuristics."""

    def test_counts_and_age(self, tmp_path):
        """Test line counts and age in days."""
        now = datetime(2026, 3, 1, tzinfo=timezone.utc)
        ten_days_ago = (now.timestamp() - 10 * 86_400)
        content = (
            '{"text": "connect to 192.168.1.20"}\n'
            '{"text": "blob ' + "A" * 60 + '"}\n'
            '{"text": "see /etc/hosts"}\n'
            '{"text": "hello"}\n'
        )
        path = _transcript(tmp_path, "s.jsonl", ten_days_ago, content)

        stats = deep_stats(path, now)

        assert stats.ip_lines == 1
        assert stats.base64_lines == 1
        assert stats.path_lines == 1
        assert stats.age_days == 10
