"""
Tests for priority-based conflict resolution
"""

from aml_monitor.compliance.conflict import resolve_conflict, resolve_conflicts
from aml_monitor.compliance.models import RuleAction, RuleOutcome


class TestResolveConflict:

    def test_higher_priority_wins(self):
        result = resolve_conflict({"priority": 8, "action": "suppress"}, {"priority": 5, "action": "flag"})
        assert result == RuleAction.SUPPRESS

    def test_flag_wins_when_higher_priority(self):
        result = resolve_conflict({"priority": 3, "action": "suppress"}, {"priority": 9, "action": "flag"})
        assert result == RuleAction.FLAG

    def test_tie_goes_to_first_argument(self):
        a = RuleOutcome(priority=5, action=RuleAction.SUPPRESS)
        b = RuleOutcome(priority=5, action=RuleAction.FLAG)
        assert resolve_conflict(a, b) == RuleAction.SUPPRESS
        assert resolve_conflict(b, a) == RuleAction.FLAG


class TestResolveConflicts:

    def test_highest_priority_of_many(self):
        outcomes = [
            RuleOutcome(3, RuleAction.FLAG),
            RuleOutcome(9, RuleAction.SUPPRESS),
            RuleOutcome(7, RuleAction.FLAG),
        ]
        assert resolve_conflicts(outcomes) == RuleAction.SUPPRESS

    def test_earliest_wins_a_tie(self):
        outcomes = [
            RuleOutcome(9, RuleAction.FLAG),
            RuleOutcome(9, RuleAction.SUPPRESS),
        ]
        assert resolve_conflicts(outcomes) == RuleAction.FLAG

    def test_matches_pairwise_rule(self):
        a = {"priority": 4, "action": "suppress"}
        b = {"priority": 4, "action": "flag"}
        assert resolve_conflicts([a, b]) == resolve_conflict(a, b)

    def test_empty_defaults_to_flag(self):
        assert resolve_conflicts([]) == RuleAction.FLAG


class TestMalformedOutcomes:

    def test_unknown_action_counts_as_flag(self):
        assert resolve_conflict({"priority": 5, "action": "block"}, {"priority": 3, "action": "suppress"}) == RuleAction.FLAG

    def test_unusable_priority_counts_as_zero(self):
        assert resolve_conflict({"priority": None, "action": "suppress"}, {"priority": 1, "action": "flag"}) == RuleAction.FLAG
        assert resolve_conflict({"priority": "high", "action": "suppress"}, {"priority": 0, "action": "flag"}) == RuleAction.SUPPRESS

    def test_non_mapping_outcome_is_ignored(self):
        assert resolve_conflict("suppress", {"priority": 2, "action": "suppress"}) == RuleAction.SUPPRESS
        assert resolve_conflicts([None, 42]) == RuleAction.FLAG

    def test_missing_outcomes(self):
        assert resolve_conflicts(None) == RuleAction.FLAG
