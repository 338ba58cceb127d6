from typing import Any, Iterable, Mapping, Optional, Union
import logging

from aml_monitor.compliance.models import RuleAction, RuleOutcome

logger = logging.getLogger(__name__)

OutcomeLike = Union[RuleOutcome, Mapping[str, Any]]

def _as_priority(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0

def _as_action(value: Any) -> RuleAction:
    if isinstance(value, RuleAction):
        return value
    try:
        return RuleAction(str(value).lower())
    except ValueError:
        return RuleAction.FLAG

def _as_outcome(outcome: Any) -> Optional[RuleOutcome]:
    """Normalise an outcome. Unusable priorities count as 0 and unknown actions as flag."""
    if isinstance(outcome, RuleOutcome):
        return outcome
    if not isinstance(outcome, Mapping):
        logger.warning(f"Ignoring malformed rule outcome: {outcome!r}")
        return None
    return RuleOutcome(
        priority=_as_priority(outcome.get("priority", 0)),
        action=_as_action(outcome.get("action", RuleAction.FLAG))
    )

def resolve_conflict(rule_a: OutcomeLike, rule_b: OutcomeLike) -> RuleAction:
    """Action of the higher-priority rule. Ties go to ``rule_a``."""
    return resolve_conflicts([rule_a, rule_b])

def resolve_conflicts(outcomes: Iterable[OutcomeLike]) -> RuleAction:
    # Pairwise rule folded left: highest priority wins, earliest wins a tie.
    winner = None
    for outcome in outcomes or ():
        outcome = _as_outcome(outcome)
        if outcome is None:
            continue
        if winner is None or outcome.priority > winner.priority:
            winner = outcome
    return winner.action if winner is not None else RuleAction.FLAG
