from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Set
import logging

from aml_monitor.compliance import behavior, evaluators, structuring
from aml_monitor.compliance.conditions import compile_condition
from aml_monitor.compliance.models import (
    ComplianceRule,
    MonitoringFrequency,
    RuleAction,
    Severity,
    Transaction,
)

logger = logging.getLogger(__name__)

@dataclass
class RuleHit:
    record_id: str
    account_id: Optional[str]
    severity: Severity
    confidence: int
    reason: str
    field_values: Dict[str, Any] = field(default_factory=dict)
    estimated_exposure: Optional[float] = None
    timestamp: Optional[str] = None

@dataclass
class ScanContext:
    reference_time: datetime
    transactions: List[Transaction]
    by_account: Dict[str, List[Transaction]]
    transfer_graph: Dict[str, Set[str]]

    @classmethod
    def build(cls, transactions: List[Transaction], reference_time: datetime) -> "ScanContext":
        by_account: Dict[str, List[Transaction]] = {}
        for txn in transactions:
            by_account.setdefault(txn.from_account, []).append(txn)
        return cls(
            reference_time=reference_time,
            transactions=transactions,
            by_account=by_account,
            transfer_graph=behavior.build_transfer_graph(transactions)
        )

def _confidence(value: float, threshold: float, floor: int = 60, ceiling: int = 99) -> int:
    # Scales with the overshoot; one full threshold above saturates.
    if threshold <= 0:
        return ceiling
    overshoot = max(0.0, (value - threshold) / threshold)
    return int(min(ceiling, floor + round(overshoot * (ceiling - floor))))

class ComplianceRuleBase(ABC):
    """A catalog rule bound to its evaluator.

    Transaction rules look at one record, account rules at one account's
    history. Either returns ``None`` when nothing is found.
    """
    scope = "transaction"

    def __init__(self, metadata: ComplianceRule):
        self.metadata = metadata

    @property
    def name(self) -> str:
        return self.metadata.rule_id

    @property
    def priority(self) -> int:
        return self.metadata.priority

    @property
    def action(self) -> RuleAction:
        return self.metadata.action

    @property
    def enabled(self) -> bool:
        return self.metadata.enabled

    @enabled.setter
    def enabled(self, value: bool):
        self.metadata = replace(self.metadata, enabled=value)

    def threshold(self, default: float) -> float:
        """Configured threshold; zero is a valid setting."""
        value = self.metadata.threshold_value
        return default if value is None else value

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name}, priority={self.priority}, enabled={self.enabled})"

class TransactionRule(ComplianceRuleBase):
    scope = "transaction"

    @abstractmethod
    def evaluate(self, transaction: Transaction, context: ScanContext) -> Optional[RuleHit]:
        pass

class AccountRule(ComplianceRuleBase):
    scope = "account"

    @abstractmethod
    def evaluate(self, account_id: str, context: ScanContext) -> Optional[RuleHit]:
        pass

class LargeTransactionRule(TransactionRule):
    CRITICAL_AMOUNT = 50000.0

    def evaluate(self, transaction: Transaction, context: ScanContext) -> Optional[RuleHit]:
        threshold = self.threshold(evaluators.LARGE_TRANSACTION_THRESHOLD)
        if not evaluators.is_large_transaction(transaction.amount, threshold):
            return None

        amount = transaction.amount
        return RuleHit(
            record_id=transaction.id,
            account_id=transaction.from_account,
            severity=Severity.CRITICAL if amount > self.CRITICAL_AMOUNT else self.metadata.severity,
            confidence=_confidence(amount, threshold, floor=75),
            reason=f"Transaction amount ${amount:,.2f} exceeds ${threshold:,.0f} threshold",
            field_values={"amount": amount, "from_account": transaction.from_account},
            estimated_exposure=amount,
            timestamp=transaction.timestamp
        )

class CrossBorderRule(TransactionRule):
    EXPOSURE_RATIO = 0.3

    def evaluate(self, transaction: Transaction, context: ScanContext) -> Optional[RuleHit]:
        threshold = self.threshold(evaluators.CROSS_BORDER_THRESHOLD)
        if not evaluators.is_cross_border_high_value(
            transaction.amount, transaction.from_country, transaction.to_country, threshold
        ):
            return None

        amount = transaction.amount
        return RuleHit(
            record_id=transaction.id,
            account_id=transaction.from_account,
            severity=self.metadata.severity,
            confidence=_confidence(amount, threshold, floor=60, ceiling=90),
            reason=(
                f"Cross-border transaction ${amount:,.2f} from "
                f"{transaction.from_country} to {transaction.to_country}"
            ),
            field_values={
                "amount": amount,
                "from_country": transaction.from_country,
                "to_country": transaction.to_country
            },
            estimated_exposure=amount * self.EXPOSURE_RATIO,
            timestamp=transaction.timestamp
        )

class HighRiskJurisdictionRule(TransactionRule):
    def __init__(self, metadata: ComplianceRule, high_risk=evaluators.HIGH_RISK_JURISDICTIONS):
        super().__init__(metadata)
        self.high_risk = frozenset(high_risk)

    def evaluate(self, transaction: Transaction, context: ScanContext) -> Optional[RuleHit]:
        if not evaluators.involves_high_risk_jurisdiction(
            transaction.from_country, transaction.to_country, self.high_risk
        ):
            return None

        both = transaction.from_country in self.high_risk and transaction.to_country in self.high_risk
        return RuleHit(
            record_id=transaction.id,
            account_id=transaction.from_account,
            severity=self.metadata.severity,
            confidence=95 if both else 85,
            reason=(
                f"Transaction involves high-risk jurisdiction "
                f"({transaction.from_country} -> {transaction.to_country})"
            ),
            field_values={
                "from_country": transaction.from_country,
                "to_country": transaction.to_country,
                "amount": transaction.amount
            },
            timestamp=transaction.timestamp
        )

class ConditionRule(TransactionRule):
    """Rule whose ``condition_logic`` compiles to a single-record predicate."""

    def __init__(self, metadata: ComplianceRule, predicate: Optional[Callable[[Transaction], bool]] = None):
        super().__init__(metadata)
        self.predicate = predicate or compile_condition(metadata.condition_logic)

    def evaluate(self, transaction: Transaction, context: ScanContext) -> Optional[RuleHit]:
        if not self.predicate(transaction):
            return None
        return RuleHit(
            record_id=transaction.id,
            account_id=transaction.from_account,
            severity=self.metadata.severity,
            confidence=80,
            reason=f"{self.metadata.rule_name}: {self.metadata.condition_logic}",
            field_values={
                name: getattr(transaction, name)
                for name in self.metadata.required_fields
                if hasattr(transaction, name)
            },
            timestamp=transaction.timestamp
        )

class StructuringRule(AccountRule):
    def __init__(
        self,
        metadata: ComplianceRule,
        window: timedelta = structuring.STRUCTURING_WINDOW,
        min_transactions: int = structuring.STRUCTURING_MIN_TRANSACTIONS
    ):
        super().__init__(metadata)
        self.window = window
        self.min_transactions = min_transactions

    def evaluate(self, account_id: str, context: ScanContext) -> Optional[RuleHit]:
        threshold = self.threshold(structuring.STRUCTURING_THRESHOLD)
        window_txns = structuring.structuring_window(
            context.by_account.get(account_id, []), account_id, context.reference_time, self.window
        )
        if not structuring.is_structuring_pattern(window_txns, threshold, self.min_transactions):
            return None

        total = sum(txn.amount for txn in window_txns)
        hours = int(self.window.total_seconds() // 3600)
        return RuleHit(
            record_id=account_id,
            account_id=account_id,
            severity=self.metadata.severity,
            confidence=min(99, 70 + 5 * len(window_txns)),
            reason=(
                f"{len(window_txns)} transactions totaling ${total:,.2f} in {hours}h, "
                f"each below ${threshold:,.0f}"
            ),
            field_values={
                "from_account": account_id,
                "total_amount": total,
                "transaction_ids": [txn.id for txn in window_txns]
            },
            estimated_exposure=total,
            timestamp=max(window_txns, key=lambda t: t.occurred_at).timestamp
        )

class VelocityRule(AccountRule):
    def __init__(self, metadata: ComplianceRule, window: timedelta = timedelta(hours=1)):
        super().__init__(metadata)
        self.window = window

    def evaluate(self, account_id: str, context: ScanContext) -> Optional[RuleHit]:
        max_count = int(self.threshold(10))
        history = context.by_account.get(account_id, [])
        if not behavior.detect_velocity(history, account_id, context.reference_time, max_count, self.window):
            return None
        recent = [
            txn for txn in history
            if txn.occurred_at and context.reference_time - txn.occurred_at < self.window
        ]
        return RuleHit(
            record_id=account_id,
            account_id=account_id,
            severity=self.metadata.severity,
            confidence=_confidence(len(recent), max_count, floor=70, ceiling=95),
            reason=f"{len(recent)} transactions within {int(self.window.total_seconds() // 60)} minutes exceeds limit of {max_count}",
            field_values={"from_account": account_id, "transaction_count": len(recent)}
        )

class CircularTransferRule(AccountRule):
    def __init__(self, metadata: ComplianceRule, max_depth: int = 3):
        super().__init__(metadata)
        self.max_depth = max_depth

    def evaluate(self, account_id: str, context: ScanContext) -> Optional[RuleHit]:
        if not behavior.detect_circular_transfer(
            context.transactions, account_id, self.max_depth, graph=context.transfer_graph
        ):
            return None
        return RuleHit(
            record_id=account_id,
            account_id=account_id,
            severity=self.metadata.severity,
            confidence=85,
            reason=f"Funds returned to {account_id} within {self.max_depth} hops",
            field_values={"from_account": account_id, "max_depth": self.max_depth}
        )

class DormantAccountRule(AccountRule):
    def evaluate(self, account_id: str, context: ScanContext) -> Optional[RuleHit]:
        days = int(self.threshold(180))
        history = context.by_account.get(account_id, [])
        if not behavior.detect_dormant_activity(history, account_id, context.reference_time, days):
            return None
        return RuleHit(
            record_id=account_id,
            account_id=account_id,
            severity=self.metadata.severity,
            confidence=70,
            reason=f"Activity after more than {days} days of inactivity",
            field_values={"from_account": account_id, "dormancy_days": days}
        )

class CashHeavyRule(AccountRule):
    def evaluate(self, account_id: str, context: ScanContext) -> Optional[RuleHit]:
        limit = self.threshold(80) / 100.0
        ratio = behavior.cash_ratio(context.by_account.get(account_id, []), account_id)
        if ratio <= limit:
            return None
        return RuleHit(
            record_id=account_id,
            account_id=account_id,
            severity=self.metadata.severity,
            confidence=65,
            reason=f"Cash share {ratio:.0%} above {limit:.0%}",
            field_values={"from_account": account_id, "cash_ratio": round(ratio, 4)}
        )

DEFAULT_RULES = [
    ComplianceRule(
        rule_id="AML_001", rule_name="Large Transaction Threshold",
        description="Flag any single transaction exceeding $10,000",
        severity=Severity.HIGH, threshold_value=10000, priority=7,
        required_fields=("amount",), condition_logic="amount > 10000",
        category="Transaction Monitoring", regulatory_ref="FATF Rec. 10", version="v1.3"
    ),
    ComplianceRule(
        rule_id="AML_002", rule_name="Structuring Detection",
        description="Detect multiple transactions just below threshold within 24h",
        severity=Severity.CRITICAL, threshold_value=10000, priority=10,
        required_fields=("amount", "timestamp", "from_account"),
        condition_logic="SUM(amount) WHERE from_account=X AND last_24h > 10000 AND each < 10000",
        category="Pattern Detection", regulatory_ref="FATF Rec. 20, RBI AML 2023 §4.2", version="v2.1"
    ),
    ComplianceRule(
        rule_id="AML_003", rule_name="Cross-Border High Value",
        description="Flag cross-border transactions over $5,000",
        severity=Severity.MEDIUM, threshold_value=5000, priority=5,
        required_fields=("amount", "from_country", "to_country"),
        condition_logic="amount > 5000 AND from_country != to_country",
        category="Transaction Monitoring", regulatory_ref="FATF Rec. 16", version="v1.0"
    ),
    ComplianceRule(
        rule_id="AML_004", rule_name="Rapid Transaction Velocity",
        description="More than 10 transactions from single account in 1 hour",
        severity=Severity.HIGH, threshold_value=10, priority=6,
        required_fields=("from_account", "timestamp"),
        condition_logic="COUNT(txn) WHERE from_account=X AND last_1h > 10",
        category="Behavioral Analysis", regulatory_ref="Basel III §7.3", version="v1.1"
    ),
    ComplianceRule(
        rule_id="AML_005", rule_name="Circular Transfer Detection",
        description="Detect funds returning to origin account through intermediaries",
        severity=Severity.CRITICAL, priority=9,
        required_fields=("from_account", "to_account"),
        condition_logic="GRAPH_CYCLE(from_account, to_account, depth=3)",
        monitoring_frequency=MonitoringFrequency.DAILY,
        category="Network Analysis", regulatory_ref="FATF Rec. 10, 20", version="v1.0"
    ),
    ComplianceRule(
        rule_id="AML_006", rule_name="Dormant Account Activity",
        description="Activity on accounts inactive for 180+ days",
        severity=Severity.MEDIUM, threshold_value=180, priority=4,
        required_fields=("from_account", "timestamp"), condition_logic="last_activity_days > 180",
        monitoring_frequency=MonitoringFrequency.DAILY,
        category="Behavioral Analysis", regulatory_ref="RBI KYC 2023 §6.1", version="v1.2"
    ),
    ComplianceRule(
        rule_id="AML_007", rule_name="High-Risk Jurisdiction",
        description="Transactions involving FATF grey/black listed countries",
        severity=Severity.HIGH, priority=8,
        required_fields=("from_country", "to_country"),
        condition_logic="from_country IN high_risk_list OR to_country IN high_risk_list",
        category="Geographic Risk", regulatory_ref="FATF Country List 2025", version="v3.0"
    ),
    ComplianceRule(
        rule_id="AML_008", rule_name="Cash-Heavy Business Pattern",
        description="Detect accounts with >80% cash transactions",
        severity=Severity.MEDIUM, threshold_value=80, priority=3,
        required_fields=("transaction_type", "from_account"),
        condition_logic="cash_ratio(from_account) > 0.8",
        monitoring_frequency=MonitoringFrequency.MONTHLY,
        category="Pattern Detection", regulatory_ref="FATF Rec. 22", version="v1.0", enabled=False
    ),
]

_BUILTIN_RULES = {
    "AML_001": LargeTransactionRule,
    "AML_002": StructuringRule,
    "AML_003": CrossBorderRule,
    "AML_004": VelocityRule,
    "AML_005": CircularTransferRule,
    "AML_006": DormantAccountRule,
    "AML_007": HighRiskJurisdictionRule,
    "AML_008": CashHeavyRule,
}

def build_rule(metadata: ComplianceRule, thresholds=None) -> ComplianceRuleBase:
    """Bind catalog metadata to its evaluator.

    Built-in rule ids get their dedicated evaluator; any other rule must carry
    a compilable single-record ``condition_logic``.
    """
    rule_cls = _BUILTIN_RULES.get(metadata.rule_id)
    if rule_cls is None:
        logger.debug(f"Compiling condition for custom rule {metadata.rule_id}")
        return ConditionRule(metadata)

    if thresholds is None:
        return rule_cls(metadata)
    if rule_cls is HighRiskJurisdictionRule:
        return rule_cls(metadata, high_risk=thresholds.high_risk_countries)
    if rule_cls is StructuringRule:
        return rule_cls(
            metadata,
            window=timedelta(hours=thresholds.structuring_window_hours),
            min_transactions=thresholds.structuring_min_transactions
        )
    if rule_cls is VelocityRule:
        return rule_cls(metadata, window=timedelta(minutes=thresholds.velocity_window_minutes))
    if rule_cls is CircularTransferRule:
        return rule_cls(metadata, max_depth=thresholds.circular_max_depth)
    return rule_cls(metadata)

def default_rule_catalog(thresholds=None) -> List[ComplianceRule]:
    """Catalog metadata, with thresholds taken from config when given."""
    if thresholds is None:
        return [replace(rule) for rule in DEFAULT_RULES]

    overrides = {
        "AML_001": thresholds.large_transaction_threshold,
        "AML_002": thresholds.structuring_threshold,
        "AML_003": thresholds.cross_border_threshold,
        "AML_004": thresholds.velocity_max_transactions,
        "AML_006": thresholds.dormancy_days,
    }
    return [
        replace(rule, threshold_value=overrides[rule.rule_id]) if rule.rule_id in overrides else replace(rule)
        for rule in DEFAULT_RULES
    ]

def default_rules(thresholds=None) -> List[ComplianceRuleBase]:
    return [build_rule(metadata, thresholds) for metadata in default_rule_catalog(thresholds)]
