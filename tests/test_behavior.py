"""
Tests for behavioural account detectors
"""

from aml_monitor.compliance.behavior import (
    build_transfer_graph,
    cash_ratio,
    detect_circular_transfer,
    detect_dormant_activity,
    detect_velocity,
)
from tests.conftest import make_txn


class TestVelocity:

    def test_more_than_limit_in_window(self, reference_time):
        txns = [make_txn(f"T{i}", 100, hours_ago=i / 60) for i in range(11)]
        assert detect_velocity(txns, "ACC-001", reference_time) is True

    def test_exactly_limit_is_fine(self, reference_time):
        txns = [make_txn(f"T{i}", 100, hours_ago=i / 60) for i in range(10)]
        assert detect_velocity(txns, "ACC-001", reference_time) is False

    def test_old_transactions_do_not_count(self, reference_time):
        txns = [make_txn(f"T{i}", 100, hours_ago=2 + i) for i in range(20)]
        assert detect_velocity(txns, "ACC-001", reference_time) is False


class TestDormantActivity:

    def test_activity_after_long_gap(self, reference_time):
        txns = [
            make_txn("OLD", 100, hours_ago=24 * 400),
            make_txn("NEW", 80000, hours_ago=2),
        ]
        assert detect_dormant_activity(txns, "ACC-001", reference_time) is True

    def test_regular_activity(self, reference_time):
        txns = [
            make_txn("OLD", 100, hours_ago=24 * 30),
            make_txn("NEW", 100, hours_ago=2),
        ]
        assert detect_dormant_activity(txns, "ACC-001", reference_time) is False

    def test_no_recent_activity(self, reference_time):
        txns = [
            make_txn("OLD", 100, hours_ago=24 * 400),
            make_txn("LATER", 100, hours_ago=24 * 10),
        ]
        assert detect_dormant_activity(txns, "ACC-001", reference_time) is False

    def test_single_transaction_is_not_dormant(self, reference_time):
        assert detect_dormant_activity([make_txn("ONLY", 100)], "ACC-001", reference_time) is False


class TestCircularTransfer:

    def test_three_hop_cycle(self):
        txns = [
            make_txn("T1", from_account="ACC-A", to_account="ACC-B"),
            make_txn("T2", from_account="ACC-B", to_account="ACC-C"),
            make_txn("T3", from_account="ACC-C", to_account="ACC-A"),
        ]
        assert detect_circular_transfer(txns, "ACC-A") is True
        assert detect_circular_transfer(txns, "ACC-B") is True

    def test_cycle_longer_than_depth(self):
        txns = [
            make_txn("T1", from_account="ACC-A", to_account="ACC-B"),
            make_txn("T2", from_account="ACC-B", to_account="ACC-C"),
            make_txn("T3", from_account="ACC-C", to_account="ACC-D"),
            make_txn("T4", from_account="ACC-D", to_account="ACC-A"),
        ]
        assert detect_circular_transfer(txns, "ACC-A", max_depth=3) is False
        assert detect_circular_transfer(txns, "ACC-A", max_depth=4) is True

    def test_chain_without_return(self):
        txns = [
            make_txn("T1", from_account="ACC-A", to_account="ACC-B"),
            make_txn("T2", from_account="ACC-B", to_account="ACC-C"),
        ]
        assert detect_circular_transfer(txns, "ACC-A") is False

    def test_prebuilt_graph(self):
        txns = [
            make_txn("T1", from_account="ACC-A", to_account="ACC-B"),
            make_txn("T2", from_account="ACC-B", to_account="ACC-A"),
        ]
        graph = build_transfer_graph(txns)
        assert graph["ACC-A"] == {"ACC-B"}
        assert detect_circular_transfer([], "ACC-A", graph=graph) is True


class TestCashRatio:

    def test_share_of_cash_payments(self):
        txns = [
            make_txn("T1", payment_format="Cash"),
            make_txn("T2", payment_format="Cash"),
            make_txn("T3", payment_format="Wire"),
            make_txn("T4", payment_format="Cash"),
        ]
        assert cash_ratio(txns, "ACC-001") == 0.75

    def test_unknown_account(self):
        assert cash_ratio([make_txn("T1")], "ACC-404") == 0.0
