import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from typing import List, Optional

from prometheus_client import start_http_server

from aml_monitor.compliance.analytics import dashboard_summary, rule_performance
from aml_monitor.compliance.engine import ComplianceEngine
from aml_monitor.compliance.models import Transaction
from aml_monitor.config.settings import get_config
from aml_monitor.generator.main import TransactionGenerator
from aml_monitor.monitoring.logging_config import setup_logging
from aml_monitor.monitoring.metrics import MetricsCollector

logger = logging.getLogger(__name__)

def load_transactions(path: str) -> List[Transaction]:
    """Read JSON lines as written by ``aml-generate``."""
    with open(path, "r") as f:
        return [Transaction.from_dict(json.loads(line)) for line in f if line.strip()]

def run_scan(
    transactions: List[Transaction],
    engine: Optional[ComplianceEngine] = None,
    reference_time: Optional[datetime] = None
) -> dict:
    engine = engine or ComplianceEngine()
    result = engine.scan(transactions, reference_time)

    catalog = [rule.metadata for rule in engine.rules]
    performance = rule_performance(result.violations, catalog)
    for row in performance.itertuples(index=False):
        logger.info(f"Rule {row.rule_id}: {row.total} violations ({'enabled' if row.enabled else 'disabled'})")

    summary = dashboard_summary(result)
    logger.info(
        f"Scan {result.scan_id}: {result.records_scanned} records, "
        f"{result.violations_found} violations, compliance score {result.compliance_score}"
    )
    return summary

def main(argv: Optional[List[str]] = None):
    config = get_config()
    setup_logging(
        level=config.monitoring.log_level,
        format_type=config.monitoring.log_format,
        log_file=config.monitoring.log_file
    )

    parser = argparse.ArgumentParser(description="Run a compliance scan over synthetic or recorded transactions")
    parser.add_argument("--input", help="JSON lines file of transactions; generated when omitted")
    parser.add_argument("--count", type=int, default=config.generator.transaction_count)
    parser.add_argument("--seed", type=int, default=config.generator.seed)
    parser.add_argument("--structuring-bursts", type=int, default=1)
    args = parser.parse_args(argv)

    metrics = MetricsCollector()
    if config.monitoring.enable_prometheus:
        start_http_server(config.monitoring.prometheus_port, registry=metrics.registry)
        logger.info(f"Serving metrics on port {config.monitoring.prometheus_port}")

    reference_time = datetime.now(timezone.utc)
    if args.input:
        transactions = load_transactions(args.input)
    else:
        generator = TransactionGenerator(
            seed=args.seed,
            laundering_ratio=config.generator.laundering_ratio,
            history_days=config.generator.history_days,
            now=reference_time
        )
        transactions = generator.generate(args.count, args.structuring_bursts)

    engine = ComplianceEngine(config=config, metrics=metrics)
    summary = run_scan(transactions, engine, reference_time)
    sys.stdout.write(json.dumps(summary, indent=2) + "\n")

if __name__ == "__main__":
    main()
