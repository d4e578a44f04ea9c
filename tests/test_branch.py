"""Tests for AnalysisBranch.

Covers:
1. Construction and validation
2. Immutability — builders return new branches, getters return copies
3. Feasibility and conflicts
4. Summary text and serialisation
"""

import pytest

from prototype_overlap.branch import AnalysisBranch
from prototype_overlap.errors import ModelValidationError
from prototype_overlap.intervals import AxisInterval, KnifeEdge


@pytest.fixture
def branch():
    return AnalysisBranch("0.1", "flow via interest", ["flow", "interest"])


# ═══════════════════════════════════════════════════════════════════
# 1. Construction
# ═══════════════════════════════════════════════════════════════════

class TestConstruction:

    def test_defaults(self, branch):
        assert branch.branch_id == "0.1"
        assert branch.required_prototypes == ["flow", "interest"]
        assert branch.axis_intervals == {}
        assert branch.conflicts == []
        assert branch.knife_edges == []
        assert not branch.is_infeasible
        assert not branch.has_knife_edges

    def test_required_prototypes_optional(self):
        assert AnalysisBranch("0", "root").required_prototypes == []

    @pytest.mark.parametrize("bad_id", ["", None, 3])
    def test_bad_id(self, bad_id):
        with pytest.raises(ModelValidationError):
            AnalysisBranch(bad_id, "x")

    def test_bad_description(self):
        with pytest.raises(ModelValidationError):
            AnalysisBranch("0", None)

    def test_bad_required_prototypes(self):
        with pytest.raises(ModelValidationError):
            AnalysisBranch("0", "x", "flow")


# ═══════════════════════════════════════════════════════════════════
# 2. Immutability
# ═══════════════════════════════════════════════════════════════════

class TestImmutability:

    def test_setattr_blocked(self, branch):
        with pytest.raises(AttributeError):
            branch._branch_id = "other"

    def test_getters_return_copies(self, branch):
        branch.required_prototypes.append("awe")
        branch.conflicts.append({"axis": "x"})
        assert branch.required_prototypes == ["flow", "interest"]
        assert branch.conflicts == []

    def test_input_lists_not_aliased(self):
        names = ["flow"]
        b = AnalysisBranch("0", "x", names)
        names.append("awe")
        assert b.required_prototypes == ["flow"]

    def test_builders_return_new_branch(self, branch):
        updated = branch.with_axis_intervals({"threat": AxisInterval(0.0, 0.2)})
        assert updated is not branch
        assert branch.axis_intervals == {}
        assert updated.axis_intervals["threat"] == AxisInterval(0.0, 0.2)
        assert updated.branch_id == branch.branch_id

    def test_partitioning(self, branch):
        b = branch.with_prototype_partitioning(["flow"], ["interest"])
        assert b.active_prototypes == ["flow"]
        assert b.inactive_prototypes == ["interest"]
        assert branch.active_prototypes == []

    def test_knife_edges(self, branch):
        b = branch.with_knife_edges([KnifeEdge("threat", 0.1, 0.1)])
        assert b.has_knife_edges
        assert not branch.has_knife_edges


# ═══════════════════════════════════════════════════════════════════
# 3. Conflicts
# ═══════════════════════════════════════════════════════════════════

class TestConflicts:

    def test_conflict_for(self):
        c = AnalysisBranch.conflict_for("threat", AxisInterval(0.4, 0.2))
        assert c == {
            "axis": "threat",
            "message": "Impossible constraint: threat requires [0.40, 0.20]",
        }

    def test_conflicts_make_infeasible(self, branch):
        b = branch.with_conflicts(
            [AnalysisBranch.conflict_for("threat", AxisInterval(0.4, 0.2))])
        assert b.is_infeasible
        assert "infeasible" in repr(b)


# ═══════════════════════════════════════════════════════════════════
# 4. Presentation
# ═══════════════════════════════════════════════════════════════════

class TestPresentation:

    def test_summary_feasible(self, branch):
        b = branch.with_prototype_partitioning(["flow", "interest"], [])
        b = b.with_knife_edges([KnifeEdge("agency_control", 0.1, 0.1)])
        assert b.to_summary() == (
            "Branch 0.1: flow via interest [✓ feasible]\n"
            "  Active: flow, interest | Inactive: none\n"
            "  Conflicts: 0 | Knife-edges: 1"
        )

    def test_summary_infeasible(self, branch):
        b = branch.with_conflicts([{"axis": "threat", "message": "x"}])
        assert b.to_summary().splitlines()[0].endswith("[✗ infeasible]")

    def test_dict_round_trip(self, branch):
        b = (branch
             .with_axis_intervals({"threat": AxisInterval(0.1, 0.1)})
             .with_knife_edges([KnifeEdge("threat", 0.1, 0.1, ["fear"])])
             .with_prototype_partitioning(["flow"], ["interest"]))
        restored = AnalysisBranch.from_dict(b.to_dict())
        assert restored == b
        assert restored.knife_edges[0].contributing_prototypes == ("fear",)
