"""Tests for HierarchicalClauseNode and ClauseStats.

Covers:
1. Construction and validation
2. Failure / violation recording and percentiles
3. Observed values and ceiling gap
4. Near misses, last-mile and OR contribution rates
5. reset_stats and JSON round-trip
"""

import pytest

from prototype_overlap.clause_node import ClauseStats, HierarchicalClauseNode
from prototype_overlap.errors import ModelValidationError


def _leaf(node_id="0.0", text="emotions.joy >= 0.5"):
    return HierarchicalClauseNode(node_id, "leaf", text)


# ═══════════════════════════════════════════════════════════════════
# 1. Construction
# ═══════════════════════════════════════════════════════════════════

class TestConstruction:

    def test_leaf(self):
        leaf = _leaf()
        assert leaf.node_type == "leaf"
        assert not leaf.is_compound
        assert leaf.children == []

    def test_compound(self):
        root = HierarchicalClauseNode("0", "and", "AND", children=[_leaf()])
        assert root.is_compound
        assert [c.id for c in root.children] == ["0.0"]

    def test_leaf_ignores_children(self):
        leaf = HierarchicalClauseNode("0", "leaf", "x", children=[_leaf()])
        assert leaf.children == []

    def test_compound_drops_logic(self):
        node = HierarchicalClauseNode("0", "or", "OR", logic={">=": [1, 0]})
        assert node.logic is None

    def test_bad_id(self):
        with pytest.raises(ModelValidationError):
            HierarchicalClauseNode("", "leaf", "x")

    def test_bad_type(self):
        with pytest.raises(ModelValidationError, match="node_type"):
            HierarchicalClauseNode("0", "xor", "x")

    def test_bad_description(self):
        with pytest.raises(ModelValidationError):
            HierarchicalClauseNode("0", "leaf", 5)

    def test_stat_delegation(self):
        leaf = _leaf()
        leaf.record_evaluation(False, 0.1)
        assert leaf.failure_count == leaf.stats.failure_count == 1

    def test_unknown_attribute(self):
        with pytest.raises(AttributeError):
            _leaf().no_such_field


# ═══════════════════════════════════════════════════════════════════
# 2. Failures and violations
# ═══════════════════════════════════════════════════════════════════

class TestViolations:

    def test_empty_node(self):
        leaf = _leaf()
        assert leaf.failure_rate == 0.0
        assert leaf.average_violation == 0.0
        assert leaf.violation_p50 is None

    def test_failure_rate(self):
        leaf = _leaf()
        leaf.record_evaluation(True)
        leaf.record_evaluation(False, 0.2)
        leaf.record_evaluation(False, 0.4)
        leaf.record_evaluation(True)
        assert leaf.failure_rate == 0.5
        assert leaf.average_violation == pytest.approx(0.3)

    def test_zero_violation_not_sampled(self):
        leaf = _leaf()
        leaf.record_evaluation(False, 0.0)
        assert leaf.failure_count == 1
        assert leaf.violation_sample_count == 0

    def test_passing_violation_ignored(self):
        leaf = _leaf()
        leaf.record_evaluation(True, 0.7)
        assert leaf.violation_sum == 0.0

    def test_percentiles(self):
        leaf = _leaf()
        for v in (0.4, 0.1, 0.3, 0.2):
            leaf.record_evaluation(False, v)
        assert leaf.violation_p50 == pytest.approx(0.25)
        assert leaf.violation_p90 == pytest.approx(0.37)
        assert leaf.violation_sample_count == 4


# ═══════════════════════════════════════════════════════════════════
# 3. Observed values
# ═══════════════════════════════════════════════════════════════════

class TestObservedValues:

    def test_min_max_mean(self):
        leaf = _leaf()
        for v in (0.2, 0.6, 0.4):
            leaf.record_observed_value(v)
        assert leaf.observed_min == 0.2
        assert leaf.max_observed_value == 0.6
        assert leaf.observed_mean == pytest.approx(0.4)

    def test_non_numbers_ignored(self):
        leaf = _leaf()
        leaf.record_observed_value(None)
        leaf.record_observed_value("0.3")
        leaf.record_observed_value(float("nan"))
        assert leaf.observed_mean is None

    def test_ceiling_gap_unreachable(self):
        leaf = _leaf()
        leaf.set_threshold_metadata(0.5, ">=", "emotions.joy")
        leaf.record_observed_value(0.3)
        assert leaf.ceiling_gap == pytest.approx(0.2)

    def test_ceiling_gap_reachable_is_negative(self):
        leaf = _leaf()
        leaf.set_threshold_metadata(0.5, ">", "emotions.joy")
        leaf.record_observed_value(0.8)
        assert leaf.ceiling_gap == pytest.approx(-0.3)

    def test_floor_gap(self):
        leaf = _leaf(text="threat <= 0.2")
        leaf.set_threshold_metadata(0.2, "<=", "threat")
        leaf.record_observed_value(0.35)
        assert leaf.ceiling_gap == pytest.approx(0.15)

    def test_ceiling_gap_none_cases(self):
        leaf = _leaf()
        assert leaf.ceiling_gap is None
        leaf.set_threshold_metadata(0.5, ">=", "emotions.joy")
        assert leaf.ceiling_gap is None
        eq = _leaf(text="x == 0.5")
        eq.set_threshold_metadata(0.5, "==", "x")
        eq.record_observed_value(0.5)
        assert eq.ceiling_gap is None


# ═══════════════════════════════════════════════════════════════════
# 4. Near misses and sibling-conditioned counters
# ═══════════════════════════════════════════════════════════════════

class TestRates:

    def test_near_miss(self):
        leaf = _leaf()
        leaf.record_evaluation(False, 0.01)
        leaf.record_evaluation(False, 0.3)
        leaf.record_near_miss(0.49, 0.5, 0.02)
        leaf.record_near_miss(0.2, 0.5, 0.02)
        assert leaf.near_miss_count == 1
        assert leaf.near_miss_epsilon == 0.02
        assert leaf.near_miss_rate == 0.5

    def test_near_miss_boundary_inclusive(self):
        leaf = _leaf()
        leaf.record_evaluation(False, 0.25)
        leaf.record_near_miss(0.25, 0.5, 0.25)
        assert leaf.near_miss_count == 1

    def test_near_miss_rate_without_evaluations(self):
        assert _leaf().near_miss_rate is None

    def test_last_mile(self):
        leaf = _leaf()
        for _ in range(4):
            leaf.record_others_passed()
        leaf.record_last_mile_fail()
        assert leaf.last_mile_fail_rate == 0.25

    def test_last_mile_never_exceeds_one(self):
        leaf = _leaf()
        leaf.record_last_mile_fail()
        leaf.record_last_mile_fail()
        assert leaf.last_mile_fail_rate == 1.0

    def test_sibling_conditioned(self):
        leaf = _leaf()
        assert leaf.sibling_conditioned_fail_rate is None
        leaf.record_siblings_passed()
        leaf.record_siblings_passed()
        leaf.record_sibling_conditioned_fail()
        assert leaf.sibling_conditioned_fail_rate == 0.5

    def test_or_contribution(self):
        leaf = _leaf()
        assert leaf.or_contribution_rate is None
        for _ in range(3):
            leaf.record_or_success()
        leaf.record_or_contribution()
        assert leaf.or_contribution_rate == pytest.approx(1 / 3)


# ═══════════════════════════════════════════════════════════════════
# 5. Reset and serialisation
# ═══════════════════════════════════════════════════════════════════

class TestResetAndSerialisation:

    def _tree(self):
        a = _leaf("0.0")
        b = _leaf("0.1", "threat <= 0.2")
        root = HierarchicalClauseNode("0", "and", "AND of 2", children=[a, b])
        a.set_threshold_metadata(0.5, ">=", "emotions.joy")
        for v in (0.1, 0.2, 0.3):
            a.record_evaluation(False, v)
            a.record_observed_value(0.5 - v)
        b.record_evaluation(True)
        root.record_evaluation(False, 0.0)
        a.is_single_clause = True
        a.parent_node_type = "and"
        return root

    def test_reset_subtree(self):
        root = self._tree()
        root.reset_stats()
        for node in root.iter_nodes():
            assert node.stats == ClauseStats()

    def test_reset_keeps_structural_annotations(self):
        root = self._tree()
        root.reset_stats()
        leaf = root.children[0]
        assert leaf.is_single_clause
        assert leaf.parent_node_type == "and"
        assert leaf.threshold_value == 0.5

    def test_json_round_trip(self):
        root = self._tree()
        restored = HierarchicalClauseNode.from_json(root.to_json())
        assert restored.to_dict() == root.to_dict()
        leaf = restored.children[0]
        assert leaf.violation_p50 == pytest.approx(0.2)
        assert leaf.ceiling_gap == pytest.approx(0.1)
        assert leaf.is_single_clause

    def test_to_dict_has_derived_values(self):
        d = self._tree().children[0].to_dict()
        assert d["failure_rate"] == 1.0
        assert d["violation_sample_count"] == 3
        assert "observed_p95" in d
        assert d["children"] == []

    def test_iter_nodes_preorder(self):
        assert [n.id for n in self._tree().iter_nodes()] == ["0", "0.0", "0.1"]
