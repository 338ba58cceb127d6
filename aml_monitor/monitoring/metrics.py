import time
import logging
from typing import Dict, Any, Optional
from dataclasses import dataclass, field
from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    CollectorRegistry,
    generate_latest,
    CONTENT_TYPE_LATEST
)

logger = logging.getLogger(__name__)

@dataclass
class MetricSnapshot:
    timestamp: float = field(default_factory=time.time)
    transactions_scanned: int = 0
    violations_found: int = 0
    scans_completed: int = 0
    avg_scan_latency_ms: float = 0.0
    last_compliance_score: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "transactions_scanned": self.transactions_scanned,
            "violations_found": self.violations_found,
            "scans_completed": self.scans_completed,
            "avg_scan_latency_ms": self.avg_scan_latency_ms,
            "last_compliance_score": self.last_compliance_score,
            "violation_rate": (
                self.violations_found / self.transactions_scanned
                if self.transactions_scanned > 0 else 0.0
            )
        }

class MetricsCollector:
    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()
        self.logger = logging.getLogger(__name__)

        # Scan metrics
        self.transaction_counter = Counter(
            'aml_monitor_transactions_scanned_total',
            'Total number of transactions scanned',
            registry=self.registry
        )

        self.violation_counter = Counter(
            'aml_monitor_violations_total',
            'Total rule violations raised',
            ['rule_id', 'severity'],
            registry=self.registry
        )

        self.suppressed_counter = Counter(
            'aml_monitor_suppressed_records_total',
            'Records whose winning rule action was suppress',
            registry=self.registry
        )

        self.rule_error_counter = Counter(
            'aml_monitor_rule_errors_total',
            'Rule evaluations that raised and were skipped',
            ['rule_id'],
            registry=self.registry
        )

        self.status_change_counter = Counter(
            'aml_monitor_status_changes_total',
            'Manual violation status changes',
            ['status'],
            registry=self.registry
        )

        # Performance metrics
        self.scan_latency = Histogram(
            'aml_monitor_scan_latency_seconds',
            'Full compliance scan latency',
            buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
            registry=self.registry
        )

        # Risk metrics
        self.account_risk_score = Histogram(
            'aml_monitor_account_risk_score',
            'Distribution of account risk scores',
            buckets=[10, 20, 30, 40, 50, 60, 70, 80, 90, 100],
            registry=self.registry
        )

        self.compliance_score = Gauge(
            'aml_monitor_compliance_score',
            'Compliance score of the last scan (0-100)',
            registry=self.registry
        )

        self.high_risk_accounts = Gauge(
            'aml_monitor_high_risk_accounts',
            'High or Critical accounts in the last scan',
            registry=self.registry
        )

        # Internal state
        self._start_time = time.time()
        self._transaction_count = 0
        self._violation_count = 0
        self._scan_count = 0
        self._latencies = []
        self._last_compliance_score: Optional[int] = None

    # Scan tracking
    def increment_transactions_scanned(self, count: int = 1):
        self.transaction_counter.inc(count)
        self._transaction_count += count

    def increment_violation(self, rule_id: str, severity: str):
        self.violation_counter.labels(rule_id=rule_id, severity=severity).inc()
        self._violation_count += 1

    def increment_suppressed(self):
        self.suppressed_counter.inc()

    def record_rule_error(self, rule_id: str):
        self.rule_error_counter.labels(rule_id=rule_id).inc()

    def record_status_change(self, status: str):
        self.status_change_counter.labels(status=status).inc()

    # Performance tracking
    def record_scan_latency(self, latency_seconds: float):
        self.scan_latency.observe(latency_seconds)
        self._latencies.append(latency_seconds)
        self._scan_count += 1

        # Keep only last 1000 measurements
        if len(self._latencies) > 1000:
            self._latencies = self._latencies[-1000:]

    # Risk tracking
    def record_account_risk(self, score: int):
        self.account_risk_score.observe(score)

    def update_scan_summary(self, compliance_score: int, high_risk_accounts: int):
        self.compliance_score.set(compliance_score)
        self.high_risk_accounts.set(high_risk_accounts)
        self._last_compliance_score = compliance_score

    # Aggregated metrics
    def get_metrics(self) -> Dict[str, Any]:
        avg_latency_ms = (
            sum(self._latencies) / len(self._latencies) * 1000
            if self._latencies else 0.0
        )

        return {
            "transactions_scanned": self._transaction_count,
            "violations_found": self._violation_count,
            "scans_completed": self._scan_count,
            "avg_scan_latency_ms": avg_latency_ms,
            "last_compliance_score": self._last_compliance_score,
            "uptime_seconds": time.time() - self._start_time
        }

    def get_snapshot(self) -> MetricSnapshot:
        metrics = self.get_metrics()
        return MetricSnapshot(
            transactions_scanned=metrics["transactions_scanned"],
            violations_found=metrics["violations_found"],
            scans_completed=metrics["scans_completed"],
            avg_scan_latency_ms=metrics["avg_scan_latency_ms"],
            last_compliance_score=metrics["last_compliance_score"]
        )

    def export_metrics(self) -> bytes:
        return generate_latest(self.registry)

    def get_content_type(self) -> str:
        return CONTENT_TYPE_LATEST

class PerformanceMonitor:
    def __init__(self, collector: MetricsCollector, operation: str):
        self.collector = collector
        self.operation = operation
        self.start_time = None
        self.elapsed = 0.0

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time:
            self.elapsed = time.perf_counter() - self.start_time
            self.collector.record_scan_latency(self.elapsed)
            logger.debug(f"{self.operation} took {self.elapsed * 1000:.2f} ms")
