from typing import Any, Dict, Iterable, List, Optional
import logging

import pandas as pd

from aml_monitor.compliance.models import (
    AccountRisk,
    ComplianceRule,
    ScanResult,
    Severity,
    Violation,
    ViolationStatus,
)

logger = logging.getLogger(__name__)

RULE_PERFORMANCE_COLUMNS = [
    "rule_id", "rule_name", "enabled", "severity",
    "total", "open", "false_positives", "false_positive_rate"
]

def violations_frame(violations: Iterable[Violation]) -> pd.DataFrame:
    rows = [
        {
            "id": v.id,
            "record_id": v.record_id,
            "rule_id": v.rule_id,
            "account_id": v.account_id,
            "severity": v.severity.value,
            "status": v.status.value,
            "confidence": v.confidence,
            "estimated_exposure": v.estimated_exposure,
        }
        for v in violations
    ]
    return pd.DataFrame(rows, columns=[
        "id", "record_id", "rule_id", "account_id",
        "severity", "status", "confidence", "estimated_exposure"
    ])

def rule_performance(violations: Iterable[Violation], rules: Iterable[ComplianceRule]) -> pd.DataFrame:
    """Per-rule violation counts and false-positive rate (percent, 0 when no hits)."""
    df = violations_frame(violations)
    rules_df = pd.DataFrame(
        [
            {
                "rule_id": r.rule_id,
                "rule_name": r.rule_name,
                "enabled": r.enabled,
                "severity": r.severity.value
            }
            for r in rules
        ],
        columns=["rule_id", "rule_name", "enabled", "severity"]
    )

    df["is_open"] = df["status"] == ViolationStatus.OPEN.value
    df["is_fp"] = df["status"] == ViolationStatus.FALSE_POSITIVE.value
    stats = df.groupby("rule_id").agg(
        total=("id", "count"),
        open=("is_open", "sum"),
        false_positives=("is_fp", "sum")
    ).reset_index()

    merged = rules_df.merge(stats, on="rule_id", how="left")
    logger.debug(f"Rule performance over {len(df)} violations and {len(rules_df)} rules")
    for column in ("total", "open", "false_positives"):
        merged[column] = merged[column].fillna(0).astype(int)

    merged["false_positive_rate"] = 0.0
    has_hits = merged["total"] > 0
    merged.loc[has_hits, "false_positive_rate"] = (
        merged.loc[has_hits, "false_positives"] / merged.loc[has_hits, "total"] * 100
    ).round(1)

    return merged[RULE_PERFORMANCE_COLUMNS]

def risk_distribution(account_risks: Iterable[AccountRisk]) -> Dict[str, int]:
    levels = [level.value for level in Severity]
    counts = pd.Series([a.risk_level.value for a in account_risks], dtype="object").value_counts()
    return {level: int(counts.get(level, 0)) for level in levels}

def filter_violations(
    violations: Iterable[Violation],
    status: Optional[str] = None,
    severity: Optional[str] = None,
    search: Optional[str] = None
) -> List[Violation]:
    """Dashboard-style filtering; ``None`` or ``"All"`` disables a criterion."""
    def keep(v: Violation) -> bool:
        if status not in (None, "All") and v.status.value != status:
            return False
        if severity not in (None, "All") and v.severity.value != severity:
            return False
        if search:
            needle = search.lower()
            haystack = " ".join([v.id, v.record_id, v.rule_id, v.rule_name, v.reason]).lower()
            return needle in haystack
        return True

    return [v for v in violations if keep(v)]

def dashboard_summary(scan: ScanResult) -> Dict[str, Any]:
    risks = pd.Series([a.risk_score for a in scan.account_risks], dtype="float64")
    open_count = sum(1 for v in scan.violations if v.status == ViolationStatus.OPEN)
    return {
        "scan_id": scan.scan_id,
        "records_scanned": scan.records_scanned,
        "violations_found": scan.violations_found,
        "open_violations": open_count,
        "compliance_score": scan.compliance_score,
        "high_risk_accounts": scan.high_risk_accounts,
        "average_risk_score": int(round(risks.mean())) if not risks.empty else 0,
        "structuring_accounts": sum(1 for a in scan.account_risks if a.structuring_detected),
        "risk_distribution": risk_distribution(scan.account_risks),
    }
