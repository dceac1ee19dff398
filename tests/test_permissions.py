"""Tests for the permission auditor."""

import os
from itertools import product

import pytest

from clawpilot_audit.models import PolicyOverride, Severity
from clawpilot_audit.permissions import (
    DEFAULT_POLICY,
    audit_permission,
    audit_policy,
    classify_excess,
    policy_from_overrides,
)

pytestmark = pytest.mark.skipif(os.name != "posix", reason="POSIX permission bits")


class TestClassifyExcess:
    """Test severity of excess permission bits."""

    def test_exact_match_passes(self):
        """Test equal bits."""
        assert classify_excess(0o700, 0o700) == Severity.PASS

    def test_stricter_passes(self):
        """Test fewer bits than expected."""
        assert classify_excess(0o400, 0o600) == Severity.PASS

    def test_world_readable_critical(self):
        """Test 755 against 700."""
        assert classify_excess(0o755, 0o700) == Severity.CRITICAL

    def test_world_readable_file_critical(self):
        """Test 644 against 600."""
        assert classify_excess(0o644, 0o600) == Severity.CRITICAL

    def test_group_access_warning(self):
        """Test 750 against 700."""
        assert classify_excess(0o750, 0o700) == Severity.WARNING

    def test_other_execute_only_warning(self):
        """Test 701 against 700."""
        assert classify_excess(0o701, 0o700) == Severity.WARNING

    def test_owner_bits_only_info(self):
        """Test 700 against 600."""
        assert classify_excess(0o700, 0o600) == Severity.INFO

    def test_monotonic_in_added_bits(self):
        """Test that adding bits to the actual mode never lowers severity."""
        expected = 0o600
        bits = [1 << i for i in range(9)]
        for base, extra in product(range(0, 0o1000, 0o11), bits):
            before = classify_excess(base, expected)
            after = classify_excess(base | extra, expected)
            assert after.rank >= before.rank


class TestAuditPermission:
    """Test single path audits."""

    def test_matching_directory_passes(self, tmp_path):
        """Test a 700 directory against 700."""
        tmp_path.chmod(0o700)
        finding = audit_permission(tmp_path, 0o700, "State directory")
        assert finding.severity == Severity.PASS
        assert finding.subject_path == str(tmp_path)
        assert finding.remediation is None

    def test_loose_file_critical_with_chmod(self, tmp_path):
        """Test a 644 config file."""
        path = tmp_path / "openclaw.json"
        path.write_text("{}")
        path.chmod(0o644)
        finding = audit_permission(path, 0o600, "Config file")
        assert finding.severity == Severity.CRITICAL
        assert "644" in finding.message
        assert finding.remediation == f"chmod 600 {path}"

    def test_missing_path_info(self, tmp_path):
        """Test that a missing path is INFO and carries no subject path."""
        finding = audit_permission(tmp_path / "absent", 0o600)
        assert finding.severity == Severity.INFO
        assert "does not exist" in finding.message
        assert finding.subject_path is None


class TestAuditPolicy:
    """Test policy table expansion."""

    def test_glob_expands_to_each_credential(self, tmp_path):
        """Test that every credential file is audited separately."""
        creds = tmp_path / "credentials"
        creds.mkdir()
        creds.chmod(0o700)
        (creds / "a.json").write_text("{}")
        (creds / "a.json").chmod(0o600)
        (creds / "b.json").write_text("{}")
        (creds / "b.json").chmod(0o640)

        findings = audit_policy(DEFAULT_POLICY, tmp_path, tmp_path / "openclaw.json")

        per_file = [f for f in findings if f.subject_path and f.subject_path.startswith(str(creds) + os.sep)]
        assert [f.severity for f in per_file] == [Severity.PASS, Severity.WARNING]

    def test_glob_without_matches_info(self, tmp_path):
        """Test an empty glob."""
        findings = audit_policy(DEFAULT_POLICY, tmp_path, tmp_path / "openclaw.json")
        auth = [f for f in findings if f.message.startswith("Auth profile")]
        assert len(auth) == 1
        assert auth[0].severity == Severity.INFO
        assert "no paths match" in auth[0].message

    def test_overrides_replace_defaults(self, tmp_path):
        """Test a custom policy with an octal string."""
        secret = tmp_path / "secret.txt"
        secret.write_text("x")
        secret.chmod(0o644)
        policy = policy_from_overrides([
            PolicyOverride(path_pattern="{state_dir}/secret.txt", expected_bits="600", label="Secret"),
        ])
        findings = audit_policy(policy, tmp_path, tmp_path / "openclaw.json")
        assert len(findings) == 1
        assert findings[0].severity == Severity.CRITICAL
