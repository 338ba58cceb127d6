from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union
import math

class Severity(Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"

    @classmethod
    def parse(cls, value: Any) -> Optional["Severity"]:
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.strip().lower():
                    return member
        return None

class ViolationStatus(Enum):
    OPEN = "Open"
    REVIEWED = "Reviewed"
    ESCALATED = "Escalated"
    RESOLVED = "Resolved"
    FALSE_POSITIVE = "False Positive"

class RuleAction(Enum):
    FLAG = "flag"
    SUPPRESS = "suppress"

class MonitoringFrequency(Enum):
    REAL_TIME = "real-time"
    DAILY = "daily"
    MONTHLY = "monthly"

def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string (``Z`` suffix allowed) into an aware UTC datetime.

    Naive values are taken as UTC. Anything unparsable yields ``None``.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value:
        try:
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)

def as_amount(value: Any) -> Optional[float]:
    """Return ``value`` as a finite float, or ``None`` when it is not a real number."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return float(value)

@dataclass(frozen=True)
class Transaction:
    id: str
    timestamp: str
    from_account: str
    to_account: str
    amount: Optional[float]
    currency: str = "USD"
    from_country: Optional[str] = None
    to_country: Optional[str] = None
    transaction_type: str = "Transfer"
    payment_format: Optional[str] = None
    is_laundering: bool = False

    def __post_init__(self):
        # Amount is a finite number or absent, however the record was built.
        object.__setattr__(self, "amount", as_amount(self.amount))

    @property
    def occurred_at(self) -> Optional[datetime]:
        return parse_timestamp(self.timestamp)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Transaction":
        return cls(
            id=str(data.get("id", "")),
            timestamp=data.get("timestamp", ""),
            from_account=data.get("from_account", ""),
            to_account=data.get("to_account", ""),
            amount=data.get("amount"),
            currency=data.get("currency", "USD"),
            from_country=data.get("from_country") or None,
            to_country=data.get("to_country") or None,
            transaction_type=data.get("transaction_type", "Transfer"),
            payment_format=data.get("payment_format"),
            is_laundering=bool(data.get("is_laundering", False))
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

def coerce_transactions(items: Iterable[Any]) -> List[Transaction]:
    """Accept ``Transaction`` objects or plain mappings with the same keys.

    Anything else is dropped.
    """
    return [
        item if isinstance(item, Transaction) else Transaction.from_dict(item)
        for item in items or ()
        if isinstance(item, (Transaction, Mapping))
    ]

@dataclass
class ComplianceRule:
    rule_id: str
    rule_name: str
    description: str
    severity: Severity
    threshold_value: Optional[float] = None
    priority: int = 5
    action: RuleAction = RuleAction.FLAG
    required_fields: Tuple[str, ...] = ()
    condition_logic: str = ""
    monitoring_frequency: MonitoringFrequency = MonitoringFrequency.REAL_TIME
    category: str = "Transaction Monitoring"
    regulatory_ref: str = ""
    version: str = "v1.0"
    enabled: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "rule_name": self.rule_name,
            "description": self.description,
            "severity": self.severity.value,
            "threshold_value": self.threshold_value,
            "priority": self.priority,
            "action": self.action.value,
            "required_fields": list(self.required_fields),
            "condition_logic": self.condition_logic,
            "monitoring_frequency": self.monitoring_frequency.value,
            "category": self.category,
            "regulatory_ref": self.regulatory_ref,
            "version": self.version,
            "enabled": self.enabled
        }

@dataclass(frozen=True)
class RuleOutcome:
    priority: int
    action: RuleAction

@dataclass(frozen=True)
class Violation:
    id: str
    record_id: str
    rule_id: str
    severity: Severity
    confidence: int
    status: ViolationStatus = ViolationStatus.OPEN
    rule_name: str = ""
    reason: str = ""
    account_id: Optional[str] = None
    timestamp: Optional[str] = None
    field_values: Dict[str, Any] = field(default_factory=dict)
    reviewer: Optional[str] = None
    estimated_exposure: Optional[float] = None
    regulatory_ref: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["severity"] = self.severity.value
        data["status"] = self.status.value
        return data

@dataclass(frozen=True)
class AccountRisk:
    account_id: str
    risk_score: int
    risk_level: Severity
    violation_count: int
    high_severity_count: int
    risky_geography: bool
    structuring_detected: bool
    last_scan: str

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["risk_level"] = self.risk_level.value
        return data

@dataclass(frozen=True)
class AuditEntry:
    id: str
    action: str
    user: str
    timestamp: str
    details: str
    category: str

@dataclass
class ScanResult:
    scan_id: str
    timestamp: str
    records_scanned: int
    violations_found: int
    compliance_score: int
    high_risk_accounts: int
    scan_duration_ms: int
    rules_applied: int
    violations: List[Violation] = field(default_factory=list)
    account_risks: List[AccountRisk] = field(default_factory=list)
    suppressed_records: List[str] = field(default_factory=list)

    def to_dict(self, include_details: bool = False) -> Dict[str, Any]:
        data: Dict[str, Union[str, int, list]] = {
            "scan_id": self.scan_id,
            "timestamp": self.timestamp,
            "records_scanned": self.records_scanned,
            "violations_found": self.violations_found,
            "compliance_score": self.compliance_score,
            "high_risk_accounts": self.high_risk_accounts,
            "scan_duration_ms": self.scan_duration_ms,
            "rules_applied": self.rules_applied
        }
        if include_details:
            data["violations"] = [v.to_dict() for v in self.violations]
            data["account_risks"] = [a.to_dict() for a in self.account_risks]
            data["suppressed_records"] = list(self.suppressed_records)
        return data
