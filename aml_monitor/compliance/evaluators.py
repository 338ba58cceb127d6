"""Single-transaction predicates.

Every evaluator is pure and fail-closed: missing or non-numeric input is
treated as "no violation" and nothing is raised.
"""
from typing import Any, Iterable, Optional

from aml_monitor.compliance.models import as_amount

LARGE_TRANSACTION_THRESHOLD = 10000.0
CROSS_BORDER_THRESHOLD = 5000.0
HIGH_RISK_JURISDICTIONS = frozenset({"IR", "RU", "NG", "PK"})

def is_large_transaction(amount: Any, threshold: float = LARGE_TRANSACTION_THRESHOLD) -> bool:
    value = as_amount(amount)
    if value is None:
        return False
    return value > threshold

def is_cross_border_high_value(
    amount: Any,
    from_country: Optional[str],
    to_country: Optional[str],
    threshold: float = CROSS_BORDER_THRESHOLD
) -> bool:
    value = as_amount(amount)
    if value is None or not from_country or not to_country:
        return False
    return value > threshold and from_country != to_country

def involves_high_risk_jurisdiction(
    from_country: Optional[str],
    to_country: Optional[str],
    high_risk: Iterable[str] = HIGH_RISK_JURISDICTIONS
) -> bool:
    high_risk = frozenset(high_risk)
    return from_country in high_risk or to_country in high_risk
