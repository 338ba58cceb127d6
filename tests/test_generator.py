"""
Tests for the synthetic transaction generator and the scan entry point
"""

import json

from aml_monitor.compliance.engine import ComplianceEngine
from aml_monitor.compliance.structuring import detect_structuring
from aml_monitor.detector.main import load_transactions, run_scan
from aml_monitor.generator.main import COUNTRIES, TransactionGenerator, main


class TestTransactionGenerator:

    def test_seeded_runs_are_identical(self, reference_time):
        first = TransactionGenerator(seed=42, now=reference_time).generate(50)
        second = TransactionGenerator(seed=42, now=reference_time).generate(50)
        assert first == second

    def test_newest_first(self, reference_time):
        txns = TransactionGenerator(seed=7, now=reference_time).generate(30)
        timestamps = [t.timestamp for t in txns]
        assert timestamps == sorted(timestamps, reverse=True)

    def test_field_ranges(self, reference_time):
        txns = TransactionGenerator(seed=3, history_days=30, now=reference_time).generate(200)
        for txn in txns:
            assert txn.id.startswith("TXN-")
            assert txn.from_account.startswith("ACC-")
            assert txn.from_country in COUNTRIES
            assert 0 <= (reference_time - txn.occurred_at).days <= 30
            if txn.is_laundering:
                assert 8000 <= txn.amount <= 9999 or 15000 <= txn.amount <= 500000
            else:
                assert 50 <= txn.amount <= 25000

    def test_laundering_ratio_extremes(self, reference_time):
        clean = TransactionGenerator(seed=1, laundering_ratio=0.0, now=reference_time).generate(50)
        dirty = TransactionGenerator(seed=1, laundering_ratio=1.0, now=reference_time).generate(50)
        assert not any(t.is_laundering for t in clean)
        assert all(t.is_laundering for t in dirty)

    def test_structuring_burst_is_detected(self, reference_time):
        generator = TransactionGenerator(seed=5, now=reference_time)
        burst = generator.structuring_burst("ACC-SMURF", count=4)

        assert len(burst) == 4
        assert all(9500 <= t.amount <= 9900 for t in burst)
        assert detect_structuring(burst, "ACC-SMURF", reference_time) is True

    def test_cli_writes_json_lines(self, capsys):
        main(["--count", "3", "--seed", "11"])
        lines = capsys.readouterr().out.strip().splitlines()
        assert len(lines) == 3
        assert all("from_account" in json.loads(line) for line in lines)


class TestScanEntryPoint:

    def test_load_and_scan(self, tmp_path, config, metrics, reference_time):
        generator = TransactionGenerator(seed=9, now=reference_time)
        txns = generator.generate(40, structuring_bursts=1)
        path = tmp_path / "txns.jsonl"
        path.write_text("\n".join(json.dumps(t.to_dict()) for t in txns) + "\n")

        loaded = load_transactions(str(path))
        assert loaded == txns

        engine = ComplianceEngine(config=config, metrics=metrics)
        summary = run_scan(loaded, engine, reference_time)
        assert summary["records_scanned"] == 45
        assert summary["structuring_accounts"] >= 1
        assert 0 <= summary["compliance_score"] <= 100
