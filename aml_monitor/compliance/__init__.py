from aml_monitor.compliance.conflict import resolve_conflict, resolve_conflicts
from aml_monitor.compliance.evaluators import (
    involves_high_risk_jurisdiction,
    is_cross_border_high_value,
    is_large_transaction,
)
from aml_monitor.compliance.models import (
    AccountRisk,
    ComplianceRule,
    RuleAction,
    RuleOutcome,
    ScanResult,
    Severity,
    Transaction,
    Violation,
    ViolationStatus,
)
from aml_monitor.compliance.risk import build_account_risks, calculate_risk_score, risk_level_for_score
from aml_monitor.compliance.structuring import detect_structuring, structuring_accounts
