"""
Tests for the single-transaction predicates
"""

import math

import pytest

from aml_monitor.compliance.evaluators import (
    involves_high_risk_jurisdiction,
    is_cross_border_high_value,
    is_large_transaction,
)


class TestLargeTransaction:
    """Large transaction threshold (AML_001)"""

    def test_flags_amounts_over_threshold(self):
        assert is_large_transaction(15000) is True
        assert is_large_transaction(50000) is True
        assert is_large_transaction(10000.01) is True

    @pytest.mark.parametrize("amount", [0, 3000, 9999, 10000])
    def test_passes_amounts_up_to_threshold(self, amount):
        assert is_large_transaction(amount) is False

    @pytest.mark.parametrize("amount", [None, math.nan, "15000", True, math.inf, [15000]])
    def test_non_numeric_input_is_not_a_violation(self, amount):
        assert is_large_transaction(amount) is False

    def test_custom_threshold(self):
        assert is_large_transaction(600, threshold=500) is True
        assert is_large_transaction(500, threshold=500) is False


class TestCrossBorder:
    """Cross-border high value (AML_003)"""

    def test_flags_cross_border_over_threshold(self):
        assert is_cross_border_high_value(8000, "US", "CH") is True

    def test_passes_domestic_transfers(self):
        assert is_cross_border_high_value(8000, "US", "US") is False
        assert is_cross_border_high_value(1_000_000, "DE", "DE") is False

    def test_passes_amount_at_threshold(self):
        assert is_cross_border_high_value(5000, "US", "CH") is False

    @pytest.mark.parametrize("origin,destination", [(None, "CH"), ("US", None), ("", "CH"), ("US", "")])
    def test_missing_country_is_not_a_violation(self, origin, destination):
        assert is_cross_border_high_value(8000, origin, destination) is False

    def test_missing_amount_is_not_a_violation(self):
        assert is_cross_border_high_value(None, "US", "CH") is False
        assert is_cross_border_high_value(math.nan, "US", "CH") is False


class TestHighRiskJurisdiction:
    """High-risk jurisdiction (AML_007)"""

    def test_flags_high_risk_countries(self):
        assert involves_high_risk_jurisdiction("US", "IR") is True
        assert involves_high_risk_jurisdiction("RU", "DE") is True
        assert involves_high_risk_jurisdiction("NG", "PK") is True

    def test_passes_safe_jurisdictions(self):
        assert involves_high_risk_jurisdiction("US", "UK") is False

    def test_missing_codes_are_not_members(self):
        assert involves_high_risk_jurisdiction(None, None) is False
        assert involves_high_risk_jurisdiction(None, "PK") is True

    def test_custom_list(self):
        assert involves_high_risk_jurisdiction("KP", "US", high_risk={"KP"}) is True
        assert involves_high_risk_jurisdiction("IR", "US", high_risk={"KP"}) is False
