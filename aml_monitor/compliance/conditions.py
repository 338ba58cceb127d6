"""Boundary adapter for rules produced by the natural-language rule parser.

The parser itself is an external LLM service. It returns a JSON rule object,
often wrapped in a Markdown code fence, whose ``condition_logic`` is a
SQL-like expression. This module turns that payload into a
``ComplianceRule`` and, where the expression is a plain conjunction or
disjunction of field comparisons, into an executable predicate.
"""
from typing import Any, Callable, Dict, List, Tuple
import json
import logging
import re

from aml_monitor.compliance.models import (
    ComplianceRule,
    MonitoringFrequency,
    RuleAction,
    Severity,
    Transaction,
    as_amount,
)

logger = logging.getLogger(__name__)

class RuleParseError(ValueError):
    pass

_CODE_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")
_CLAUSE = re.compile(
    r"^\s*(?P<field>[a-z_]+)\s*(?P<op>>=|<=|!=|<>|==|=|>|<|not\s+in|in)\s*(?P<value>.+?)\s*$",
    re.IGNORECASE
)
_OR = re.compile(r"\s+or\s+", re.IGNORECASE)
_AND = re.compile(r"\s+and\s+", re.IGNORECASE)

TRANSACTION_FIELDS = frozenset({
    "id", "timestamp", "from_account", "to_account", "amount", "currency",
    "from_country", "to_country", "transaction_type", "payment_format",
})

def extract_json(content: str) -> Dict[str, Any]:
    match = _CODE_FENCE.search(content or "")
    raw = match.group(1).strip() if match else (content or "").strip()
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        raise RuleParseError(f"Rule response is not valid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise RuleParseError("Rule response must be a JSON object")
    return payload

def _as_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise RuleParseError(f"enabled must be a boolean, got {value!r}")

def rule_from_payload(payload: Dict[str, Any]) -> ComplianceRule:
    for key in ("rule_id", "rule_name", "severity"):
        if not payload.get(key):
            raise RuleParseError(f"Rule is missing required field '{key}'")

    severity = Severity.parse(payload["severity"])
    if severity is None:
        raise RuleParseError(f"Unknown severity: {payload['severity']!r}")

    try:
        action = RuleAction(str(payload.get("action", "flag")).lower())
        frequency = MonitoringFrequency(payload.get("monitoring_frequency", "real-time"))
        priority = int(payload.get("priority", 5))
    except (TypeError, ValueError) as e:
        raise RuleParseError(f"Invalid rule field: {e}") from e

    return ComplianceRule(
        rule_id=str(payload["rule_id"]),
        rule_name=str(payload["rule_name"]),
        description=str(payload.get("description", "")),
        severity=severity,
        threshold_value=as_amount(payload.get("threshold_value")),
        priority=priority,
        action=action,
        required_fields=tuple(payload.get("required_fields") or ()),
        condition_logic=str(payload.get("condition_logic", "")),
        monitoring_frequency=frequency,
        category=str(payload.get("category", "Transaction Monitoring")),
        regulatory_ref=str(payload.get("regulatory_ref", "")),
        version=str(payload.get("version", "v1.0")),
        enabled=_as_flag(payload.get("enabled", True))
    )

def rule_from_llm_response(content: str) -> ComplianceRule:
    rule = rule_from_payload(extract_json(content))
    logger.info(f"Parsed rule {rule.rule_id} from rule parser response")
    return rule

# Condition compiler

class FieldRef(str):
    """Unquoted operand naming another transaction field."""

def _parse_scalar(token: str) -> Any:
    token = token.strip()
    if len(token) >= 2 and token[0] == token[-1] and token[0] in "'\"":
        return token[1:-1]
    if token.lower() in TRANSACTION_FIELDS:
        return FieldRef(token.lower())
    try:
        return float(token)
    except ValueError:
        return token

def _parse_value(raw: str, op: str) -> Any:
    if op in ("in", "not in"):
        raw = raw.strip()
        if not (raw.startswith("(") and raw.endswith(")")):
            raise RuleParseError(f"IN expects a parenthesised list, got {raw!r}")
        return frozenset(_parse_scalar(item) for item in raw[1:-1].split(",") if item.strip())
    return _parse_scalar(raw)

def _compare(actual: Any, op: str, expected: Any) -> bool:
    if op in ("in", "not in"):
        found = actual in expected
        return found if op == "in" else not found
    if op in ("=", "=="):
        return actual == expected
    if op in ("!=", "<>"):
        return actual != expected

    # Ordering comparisons are numeric only; anything else fails closed.
    left, right = as_amount(actual), as_amount(expected)
    if left is None or right is None:
        return False
    if op == ">":
        return left > right
    if op == ">=":
        return left >= right
    if op == "<":
        return left < right
    return left <= right

def _compile_clause(clause: str) -> Tuple[str, str, Any]:
    match = _CLAUSE.match(clause)
    if not match:
        raise RuleParseError(f"Unsupported condition: {clause!r}")
    field = match.group("field").lower()
    if field not in TRANSACTION_FIELDS:
        raise RuleParseError(f"Unknown transaction field: {field!r}")
    op = " ".join(match.group("op").lower().split())
    return field, op, _parse_value(match.group("value"), op)

def compile_condition(logic: str) -> Callable[[Transaction], bool]:
    """Compile ``a > 1 AND b IN ('X','Y') OR c = 'Z'`` into a predicate.

    AND binds tighter than OR. Aggregates and functions (``SUM``, ``COUNT``,
    ``GRAPH_CYCLE``) are not single-record conditions and raise
    ``RuleParseError``.
    """
    if not logic or not logic.strip():
        raise RuleParseError("Empty condition")

    disjuncts: List[List[Tuple[str, str, Any]]] = [
        [_compile_clause(clause) for clause in _AND.split(part)]
        for part in _OR.split(logic.strip())
    ]

    def predicate(txn: Transaction) -> bool:
        return any(
            all(
                _compare(
                    getattr(txn, field), op,
                    getattr(txn, value) if isinstance(value, FieldRef) else value
                )
                for field, op, value in clauses
            )
            for clauses in disjuncts
        )

    return predicate
