from collections import OrderedDict
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union
import logging
import uuid

from aml_monitor.compliance.conditions import rule_from_llm_response
from aml_monitor.compliance.conflict import resolve_conflicts
from aml_monitor.compliance.models import (
    AuditEntry,
    RuleAction,
    RuleOutcome,
    ScanResult,
    Severity,
    Transaction,
    Violation,
    ViolationStatus,
    coerce_transactions,
)
from aml_monitor.compliance.risk import build_account_risks
from aml_monitor.compliance.rules import (
    AccountRule,
    ComplianceRuleBase,
    RuleHit,
    ScanContext,
    StructuringRule,
    TransactionRule,
    build_rule,
    default_rules,
)
from aml_monitor.config.settings import ComplianceConfig, get_config
from aml_monitor.monitoring.logging_config import AuditLogger
from aml_monitor.monitoring.metrics import MetricsCollector, PerformanceMonitor

logger = logging.getLogger(__name__)

class InvalidStatusTransition(ValueError):
    pass

Hit = Tuple[ComplianceRuleBase, RuleHit]

class ComplianceEngine:
    def __init__(
        self,
        rules: Optional[List[ComplianceRuleBase]] = None,
        config: Optional[ComplianceConfig] = None,
        metrics: Optional[MetricsCollector] = None,
        audit_logger: Optional[AuditLogger] = None
    ):
        self.config = config or get_config()
        self.metrics = metrics or MetricsCollector()
        self.audit = audit_logger or AuditLogger()
        self.audit_trail: List[AuditEntry] = []
        self.rules: List[ComplianceRuleBase] = []

        for rule in default_rules(self.config.rules) if rules is None else rules:
            self.add_rule(rule)

        logger.info(f"Initialized compliance engine with {len(self.rules)} rules")

    # Rule management

    def add_rule(self, rule: ComplianceRuleBase) -> None:
        self.rules.append(rule)
        # Stable sort keeps insertion order among equal priorities.
        self.rules.sort(key=lambda r: r.priority, reverse=True)
        logger.info(f"Added rule: {rule}")

    def add_rule_from_llm_response(self, content: str, user: str = "Rule Parser") -> ComplianceRuleBase:
        metadata = rule_from_llm_response(content)
        rule = build_rule(metadata, self.config.rules)
        self.add_rule(rule)
        self._record_audit("Rule Created", user, f"{metadata.rule_id} {metadata.rule_name} added", "Rule Change")
        return rule

    def remove_rule(self, rule_name: str) -> bool:
        initial_count = len(self.rules)
        self.rules = [r for r in self.rules if r.name != rule_name]
        removed = len(self.rules) < initial_count
        if removed:
            logger.info(f"Removed rule: {rule_name}")
        return removed

    def enable_rule(self, rule_name: str) -> bool:
        return self._set_enabled(rule_name, True)

    def disable_rule(self, rule_name: str) -> bool:
        return self._set_enabled(rule_name, False)

    def _set_enabled(self, rule_name: str, enabled: bool) -> bool:
        for rule in self.rules:
            if rule.name == rule_name:
                rule.enabled = enabled
                logger.info(f"{'Enabled' if enabled else 'Disabled'} rule: {rule_name}")
                return True
        return False

    def get_rule(self, rule_name: str) -> Optional[ComplianceRuleBase]:
        return next((r for r in self.rules if r.name == rule_name), None)

    def list_rules(self) -> List[Dict[str, Any]]:
        return [
            {
                "name": rule.name,
                "rule_name": rule.metadata.rule_name,
                "enabled": rule.enabled,
                "priority": rule.priority,
                "action": rule.action.value,
                "severity": rule.metadata.severity.value,
                "scope": rule.scope,
                "type": rule.__class__.__name__
            }
            for rule in self.rules
        ]

    # Evaluation

    def _active(self, scope: type) -> List[ComplianceRuleBase]:
        return [r for r in self.rules if r.enabled and isinstance(r, scope)]

    def _safe_evaluate(self, rule: ComplianceRuleBase, subject: Any, context: ScanContext) -> Optional[RuleHit]:
        try:
            return rule.evaluate(subject, context)
        except Exception as e:
            # Fail closed: a broken rule yields no violation for this subject.
            logger.error(f"Error evaluating rule {rule.name}: {e}", exc_info=True)
            self.metrics.record_rule_error(rule.name)
            return None

    def evaluate_transaction(
        self,
        transaction: Union[Transaction, Dict[str, Any]],
        context: Optional[ScanContext] = None,
        reference_time: Optional[datetime] = None
    ) -> List[Hit]:
        txn = coerce_transactions([transaction])[0]
        if context is None:
            context = ScanContext.build([txn], reference_time or datetime.now(timezone.utc))

        hits = []
        for rule in self._active(TransactionRule):
            hit = self._safe_evaluate(rule, txn, context)
            if hit is not None:
                hits.append((rule, hit))
        return hits

    def evaluate_account(self, account_id: str, context: ScanContext) -> List[Hit]:
        hits = []
        for rule in self._active(AccountRule):
            hit = self._safe_evaluate(rule, account_id, context)
            if hit is not None:
                hits.append((rule, hit))
        return hits

    def scan(
        self,
        transactions: Iterable[Any],
        reference_time: Optional[datetime] = None
    ) -> ScanResult:
        """Evaluate every active rule over a transaction snapshot.

        Hits are grouped per record (a transaction id, or an account id for
        account-level rules) and each group is settled through priority-based
        conflict resolution: when the winning rule's action is ``suppress``
        the whole record is dropped. Account risks are then rebuilt from the
        surviving violations.
        """
        reference_time = reference_time or datetime.now(timezone.utc)
        txns = coerce_transactions(transactions)
        scan_id = f"SCN-{uuid.uuid4().hex[:8].upper()}"

        with PerformanceMonitor(self.metrics, "compliance_scan") as monitor:
            context = ScanContext.build(txns, reference_time)

            grouped: "OrderedDict[str, List[Hit]]" = OrderedDict()
            for txn in txns:
                for rule, hit in self.evaluate_transaction(txn, context):
                    grouped.setdefault(hit.record_id, []).append((rule, hit))
            for account_id in sorted(context.by_account):
                for rule, hit in self.evaluate_account(account_id, context):
                    grouped.setdefault(hit.record_id, []).append((rule, hit))

            violations, suppressed = self._settle(grouped)

            structuring_accounts = {
                v.account_id for v in violations
                if isinstance(self.get_rule(v.rule_id), StructuringRule)
            }
            account_risks = build_account_risks(
                txns,
                violations,
                structuring_accounts,
                high_risk=self.config.rules.high_risk_countries,
                weights={Severity.parse(k): w for k, w in self.config.risk.severity_weights().items()},
                geography_weight=self.config.risk.risky_geography,
                structuring_weight=self.config.risk.structuring,
                scan_time=reference_time
            )

        txn_ids = {txn.id for txn in txns}
        flagged_records = {v.record_id for v in violations if v.record_id in txn_ids}
        compliance_score = (
            round(100 * (1 - len(flagged_records) / len(txns))) if txns else 100
        )
        high_risk_accounts = sum(
            1 for a in account_risks if a.risk_level in (Severity.HIGH, Severity.CRITICAL)
        )

        result = ScanResult(
            scan_id=scan_id,
            timestamp=reference_time.isoformat(),
            records_scanned=len(txns),
            violations_found=len(violations),
            compliance_score=compliance_score,
            high_risk_accounts=high_risk_accounts,
            scan_duration_ms=int(monitor.elapsed * 1000),
            rules_applied=len([r for r in self.rules if r.enabled]),
            violations=violations,
            account_risks=account_risks,
            suppressed_records=suppressed
        )
        self._report(result)
        return result

    def _settle(self, grouped: "OrderedDict[str, List[Hit]]") -> Tuple[List[Violation], List[str]]:
        violations: List[Violation] = []
        suppressed: List[str] = []

        for record_id, hits in grouped.items():
            winner = resolve_conflicts(RuleOutcome(rule.priority, rule.action) for rule, _ in hits)
            if winner == RuleAction.SUPPRESS:
                suppressed.append(record_id)
                self.metrics.increment_suppressed()
                logger.info(f"Record {record_id} suppressed by higher-priority rule")
                continue

            for rule, hit in hits:
                if rule.action != RuleAction.FLAG:
                    continue
                violations.append(Violation(
                    id=f"VIO-{len(violations) + 1:04d}",
                    record_id=record_id,
                    rule_id=rule.name,
                    severity=hit.severity,
                    confidence=hit.confidence,
                    rule_name=rule.metadata.rule_name,
                    reason=hit.reason,
                    account_id=hit.account_id,
                    timestamp=hit.timestamp,
                    field_values=hit.field_values,
                    estimated_exposure=hit.estimated_exposure,
                    regulatory_ref=rule.metadata.regulatory_ref or None
                ))

        return violations, suppressed

    def _report(self, result: ScanResult) -> None:
        self.metrics.increment_transactions_scanned(result.records_scanned)
        for violation in result.violations:
            self.metrics.increment_violation(violation.rule_id, violation.severity.value)
            self.audit.log_violation(
                violation.id,
                violation.record_id,
                violation.rule_id,
                violation.severity.value,
                violation.confidence,
                {"account_id": violation.account_id, "reason": violation.reason}
            )
        for risk in result.account_risks:
            self.metrics.record_account_risk(risk.risk_score)
        self.metrics.update_scan_summary(result.compliance_score, result.high_risk_accounts)

        self.audit.log_scan(
            result.scan_id,
            result.records_scanned,
            result.violations_found,
            result.compliance_score,
            result.scan_duration_ms
        )
        self._record_audit(
            "Scan Completed", "System",
            f"Full scan: {result.violations_found} violations detected", "Scan"
        )
        if result.violations_found:
            logger.warning(
                f"Scan {result.scan_id}: {result.violations_found} violations across "
                f"{result.records_scanned} records (compliance score {result.compliance_score})"
            )

    # Review workflow

    def update_violation_status(
        self,
        violation: Violation,
        status: Union[ViolationStatus, str],
        reviewer: str
    ) -> Violation:
        """Manual review action. Returns a new record; the input is left untouched."""
        if not isinstance(status, ViolationStatus):
            try:
                status = ViolationStatus(status)
            except ValueError:
                raise InvalidStatusTransition(f"Unknown violation status: {status!r}")
        if status == violation.status:
            raise InvalidStatusTransition(f"{violation.id} is already {status.value}")

        updated = replace(violation, status=status, reviewer=reviewer)
        self.metrics.record_status_change(status.value)
        self.audit.log_status_change(violation.id, violation.status.value, status.value, reviewer)
        self._record_audit(
            f"Violation {status.value}", reviewer,
            f"{violation.id} moved from {violation.status.value} to {status.value}", "Review"
        )
        return updated

    def _record_audit(self, action: str, user: str, details: str, category: str) -> AuditEntry:
        entry = AuditEntry(
            id=f"AUD-{len(self.audit_trail) + 1:03d}",
            action=action,
            user=user,
            timestamp=datetime.now(timezone.utc).isoformat(),
            details=details,
            category=category
        )
        self.audit_trail.append(entry)
        return entry
