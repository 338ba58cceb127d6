from datetime import datetime, timedelta, timezone

import pytest
from prometheus_client import CollectorRegistry

from aml_monitor.compliance.models import Transaction
from aml_monitor.config.settings import ComplianceConfig
from aml_monitor.monitoring.metrics import MetricsCollector

REFERENCE_TIME = datetime(2026, 2, 21, 12, 0, tzinfo=timezone.utc)

def make_txn(
    txn_id: str,
    amount=1000.0,
    from_account: str = "ACC-001",
    to_account: str = "ACC-999",
    from_country: str = "US",
    to_country: str = "US",
    hours_ago: float = 1.0,
    **kwargs
) -> Transaction:
    return Transaction(
        id=txn_id,
        timestamp=(REFERENCE_TIME - timedelta(hours=hours_ago)).isoformat(),
        from_account=from_account,
        to_account=to_account,
        amount=amount,
        from_country=from_country,
        to_country=to_country,
        **kwargs
    )

@pytest.fixture
def reference_time():
    return REFERENCE_TIME

@pytest.fixture
def config(monkeypatch):
    for key in ("RULE_LARGE_TXN_THRESHOLD", "RULE_HIGH_RISK_COUNTRIES", "ENVIRONMENT", "LOG_LEVEL"):
        monkeypatch.delenv(key, raising=False)
    return ComplianceConfig()

@pytest.fixture
def metrics():
    return MetricsCollector(registry=CollectorRegistry())
