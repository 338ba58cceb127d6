"""
Tests for risk score aggregation and account risk rebuild
"""

import pytest

from aml_monitor.compliance.models import Severity, Violation
from aml_monitor.compliance.risk import (
    build_account_risks,
    calculate_risk_score,
    risk_level_for_score,
)
from tests.conftest import make_txn


def violation(vid, severity, account="ACC-001"):
    return Violation(
        id=vid, record_id=f"R-{vid}", rule_id="AML_001",
        severity=severity, confidence=90, account_id=account
    )


class TestCalculateRiskScore:

    def test_composite_score(self):
        score = calculate_risk_score([{"severity": "Critical"}, {"severity": "High"}], True, False)
        assert score == 70

    def test_caps_at_100(self):
        score = calculate_risk_score([{"severity": "Critical"}] * 4, True, True)
        assert score == 100

    def test_weights(self):
        assert calculate_risk_score(["Medium"]) == 15
        assert calculate_risk_score(["Low"]) == 5
        assert calculate_risk_score([], structuring=True) == 25
        assert calculate_risk_score([], risky_geography=True) == 20

    def test_unknown_severity_counts_as_low(self):
        assert calculate_risk_score([{"severity": "Unknown"}, {}]) == 10

    def test_accepts_violation_objects(self):
        violations = [violation("1", Severity.HIGH), violation("2", Severity.MEDIUM)]
        assert calculate_risk_score(violations) == 35

    def test_empty(self):
        assert calculate_risk_score([]) == 0


class TestRiskLevel:

    @pytest.mark.parametrize("score,level", [
        (0, Severity.LOW),
        (30, Severity.LOW),
        (31, Severity.MEDIUM),
        (60, Severity.MEDIUM),
        (61, Severity.HIGH),
        (80, Severity.HIGH),
        (81, Severity.CRITICAL),
        (100, Severity.CRITICAL),
    ])
    def test_bands(self, score, level):
        assert risk_level_for_score(score) == level


class TestBuildAccountRisks:

    def test_recomputes_from_violations(self, reference_time):
        txns = [
            make_txn("T1", 60000, from_account="ACC-A", to_country="IR"),
            make_txn("T2", 100, from_account="ACC-B"),
        ]
        violations = [
            violation("1", Severity.CRITICAL, account="ACC-A"),
            violation("2", Severity.HIGH, account="ACC-A"),
        ]
        risks = build_account_risks(txns, violations, structuring_accounts={"ACC-A"}, scan_time=reference_time)

        assert [r.account_id for r in risks] == ["ACC-A", "ACC-B"]
        acc_a = risks[0]
        assert acc_a.risk_score == 95
        assert acc_a.risk_level == Severity.CRITICAL
        assert acc_a.violation_count == 2
        assert acc_a.high_severity_count == 2
        assert acc_a.risky_geography is True
        assert acc_a.structuring_detected is True
        assert acc_a.last_scan == reference_time.isoformat()

        acc_b = risks[1]
        assert acc_b.risk_score == 0
        assert acc_b.risk_level == Severity.LOW
        assert acc_b.violation_count == 0


class TestInvalidRiskInput:

    def test_missing_violation_list(self):
        assert calculate_risk_score(None) == 0
        assert calculate_risk_score(None, risky_geography=True) == 20

    def test_non_violation_items_count_as_low(self):
        assert calculate_risk_score([None, 42]) == 10

    def test_build_ignores_malformed_violations(self, reference_time):
        risks = build_account_risks([make_txn("T1", 100)], [None, "VIO-1"], scan_time=reference_time)
        assert [(r.account_id, r.risk_score) for r in risks] == [("ACC-001", 0)]
        assert build_account_risks(None, None, scan_time=reference_time) == []
