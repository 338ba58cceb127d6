"""
Tests for dashboard analytics over scan results
"""

from dataclasses import replace

import pytest

from aml_monitor.compliance.analytics import (
    RULE_PERFORMANCE_COLUMNS,
    dashboard_summary,
    filter_violations,
    risk_distribution,
    rule_performance,
)
from aml_monitor.compliance.engine import ComplianceEngine
from aml_monitor.compliance.models import Severity, Violation, ViolationStatus
from aml_monitor.compliance.rules import DEFAULT_RULES
from tests.conftest import make_txn


def violation(vid, rule_id, severity=Severity.HIGH, status=ViolationStatus.OPEN, reason=""):
    return Violation(
        id=vid, record_id=f"TXN-{vid}", rule_id=rule_id, severity=severity,
        confidence=80, status=status, rule_name=rule_id, reason=reason
    )


@pytest.fixture
def violations():
    return [
        violation("1", "AML_001", reason="Transaction amount exceeds threshold"),
        violation("2", "AML_001", status=ViolationStatus.FALSE_POSITIVE),
        violation("3", "AML_001", status=ViolationStatus.RESOLVED),
        violation("4", "AML_001", status=ViolationStatus.FALSE_POSITIVE),
        violation("5", "AML_007", severity=Severity.CRITICAL, status=ViolationStatus.ESCALATED),
    ]


class TestRulePerformance:

    def test_counts_and_false_positive_rate(self, violations):
        df = rule_performance(violations, DEFAULT_RULES).set_index("rule_id")

        assert list(df.reset_index().columns) == RULE_PERFORMANCE_COLUMNS
        assert df.loc["AML_001", "total"] == 4
        assert df.loc["AML_001", "open"] == 1
        assert df.loc["AML_001", "false_positives"] == 2
        assert df.loc["AML_001", "false_positive_rate"] == 50.0
        assert df.loc["AML_007", "false_positive_rate"] == 0.0

    def test_rules_without_hits(self, violations):
        df = rule_performance(violations, DEFAULT_RULES).set_index("rule_id")
        assert df.loc["AML_005", "total"] == 0
        assert df.loc["AML_005", "false_positive_rate"] == 0.0
        assert bool(df.loc["AML_008", "enabled"]) is False

    def test_no_violations(self):
        df = rule_performance([], DEFAULT_RULES)
        assert len(df) == len(DEFAULT_RULES)
        assert df["total"].sum() == 0


class TestFilterViolations:

    def test_by_status(self, violations):
        result = filter_violations(violations, status="False Positive")
        assert [v.id for v in result] == ["2", "4"]

    def test_by_severity(self, violations):
        result = filter_violations(violations, severity="Critical")
        assert [v.id for v in result] == ["5"]

    def test_all_disables_filter(self, violations):
        assert len(filter_violations(violations, status="All", severity="All")) == 5

    def test_search(self, violations):
        assert [v.id for v in filter_violations(violations, search="EXCEEDS")] == ["1"]
        assert [v.id for v in filter_violations(violations, search="aml_007")] == ["5"]

    def test_combined(self, violations):
        result = filter_violations(violations, status="Open", search="TXN-2")
        assert result == []


class TestSummaries:

    def test_risk_distribution_covers_every_level(self, config, metrics, reference_time):
        engine = ComplianceEngine(config=config, metrics=metrics)
        scan = engine.scan([make_txn("T1", 60000, to_country="IR")], reference_time)
        distribution = risk_distribution(scan.account_risks)
        assert set(distribution) == {"Low", "Medium", "High", "Critical"}
        assert sum(distribution.values()) == 1

    def test_dashboard_summary(self, config, metrics, reference_time):
        engine = ComplianceEngine(config=config, metrics=metrics)
        scan = engine.scan([
            make_txn("T1", 60000, from_account="ACC-A", to_country="IR"),
            make_txn("T2", 100, from_account="ACC-B"),
        ], reference_time)
        scan.violations[0] = replace(scan.violations[0], status=ViolationStatus.RESOLVED)

        summary = dashboard_summary(scan)
        assert summary["records_scanned"] == 2
        assert summary["violations_found"] == 3
        assert summary["open_violations"] == 2
        assert summary["compliance_score"] == 50
        assert summary["average_risk_score"] == 42
        assert summary["structuring_accounts"] == 0
        assert summary["risk_distribution"]["Critical"] == 1
        assert summary["risk_distribution"]["Low"] == 1
