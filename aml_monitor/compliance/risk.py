from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set
import logging

from aml_monitor.compliance.evaluators import HIGH_RISK_JURISDICTIONS, involves_high_risk_jurisdiction
from aml_monitor.compliance.models import AccountRisk, Severity, Violation, coerce_transactions

logger = logging.getLogger(__name__)

SEVERITY_WEIGHTS = {
    Severity.CRITICAL: 30,
    Severity.HIGH: 20,
    Severity.MEDIUM: 15,
    Severity.LOW: 5,
}
RISKY_GEOGRAPHY_WEIGHT = 20
STRUCTURING_WEIGHT = 25
MAX_RISK_SCORE = 100

def _severity_of(item: Any) -> Optional[Severity]:
    if isinstance(item, Violation):
        return item.severity
    if isinstance(item, Mapping):
        return Severity.parse(item.get("severity"))
    return Severity.parse(item)

def calculate_risk_score(
    violations: Iterable[Any],
    risky_geography: bool = False,
    structuring: bool = False,
    weights: Optional[Dict[Severity, int]] = None,
    geography_weight: int = RISKY_GEOGRAPHY_WEIGHT,
    structuring_weight: int = STRUCTURING_WEIGHT
) -> int:
    """Composite account score: summed severity weights plus behavioural flags.

    Unknown severities count as Low and a missing list counts as empty. The sum is not normalised by the number
    of violations and is clamped to ``[0, 100]``.
    """
    weights = weights or SEVERITY_WEIGHTS
    low = weights.get(Severity.LOW, SEVERITY_WEIGHTS[Severity.LOW])

    score = 0
    for item in violations or ():
        severity = _severity_of(item)
        score += weights.get(severity, low)
    if risky_geography:
        score += geography_weight
    if structuring:
        score += structuring_weight

    return int(max(0, min(MAX_RISK_SCORE, score)))

def risk_level_for_score(score: int) -> Severity:
    if score > 80:
        return Severity.CRITICAL
    if score > 60:
        return Severity.HIGH
    if score > 30:
        return Severity.MEDIUM
    return Severity.LOW

def build_account_risks(
    transactions: Iterable[Any],
    violations: Iterable[Violation],
    structuring_accounts: Iterable[str] = (),
    high_risk: Iterable[str] = HIGH_RISK_JURISDICTIONS,
    weights: Optional[Dict[Severity, int]] = None,
    geography_weight: int = RISKY_GEOGRAPHY_WEIGHT,
    structuring_weight: int = STRUCTURING_WEIGHT,
    scan_time: Optional[datetime] = None
) -> List[AccountRisk]:
    """Recompute every account's risk from scratch.

    Covers each originating account seen in ``transactions``. Results are
    ordered by descending score, then account id.
    """
    scan_time = scan_time or datetime.now(timezone.utc)
    high_risk = frozenset(high_risk)
    structuring_set = set(structuring_accounts)

    accounts: Set[str] = set()
    risky_geo: Set[str] = set()
    for txn in coerce_transactions(transactions):
        if not txn.from_account:
            continue
        accounts.add(txn.from_account)
        if involves_high_risk_jurisdiction(txn.from_country, txn.to_country, high_risk):
            risky_geo.add(txn.from_account)

    by_account: Dict[str, List[Violation]] = defaultdict(list)
    for violation in violations or ():
        if isinstance(violation, Violation) and violation.account_id:
            by_account[violation.account_id].append(violation)
            accounts.add(violation.account_id)

    risks = []
    for account in accounts:
        account_violations = by_account.get(account, [])
        geo = account in risky_geo
        structuring = account in structuring_set
        score = calculate_risk_score(
            account_violations, geo, structuring, weights, geography_weight, structuring_weight
        )
        risks.append(AccountRisk(
            account_id=account,
            risk_score=score,
            risk_level=risk_level_for_score(score),
            violation_count=len(account_violations),
            high_severity_count=sum(
                1 for v in account_violations
                if v.severity in (Severity.HIGH, Severity.CRITICAL)
            ),
            risky_geography=geo,
            structuring_detected=structuring,
            last_scan=scan_time.isoformat()
        ))

    risks.sort(key=lambda r: (-r.risk_score, r.account_id))
    logger.debug(f"Rebuilt risk for {len(risks)} accounts")
    return risks
