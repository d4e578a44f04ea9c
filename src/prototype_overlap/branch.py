"""AnalysisBranch — one feasible path through OR'd gate alternatives.

When an expression references prototypes through nested ``AND``/``OR``
clauses, feasibility analysis enumerates each combination of OR
alternatives as a separate *branch*.  A branch accumulates per-axis
intervals, the conflicts that make it impossible, and knife-edge
warnings, and records which prototypes are active on it.

Branches are value objects: every ``with_*`` builder returns a new
branch and every collection getter returns a fresh copy, so a branch
handed to a report can never be altered by the caller.

Usage
-----
>>> from prototype_overlap.branch import AnalysisBranch
>>> from prototype_overlap.intervals import AxisInterval
>>> b = AnalysisBranch("0.1", "flow via interest", ["flow", "interest"])
>>> b = b.with_conflicts([AnalysisBranch.conflict_for("threat",
...                                                   AxisInterval(0.4, 0.2))])
>>> b.is_infeasible                          # True
>>> print(b.to_summary())
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

from .errors import ModelValidationError
from .intervals import AxisInterval, KnifeEdge

__all__ = [
    "AnalysisBranch",
]


class AnalysisBranch:
    """Immutable description of one OR-branch.

    Parameters
    ----------
    branch_id : str
        Non-empty identifier, e.g. ``"0.1.2"``.
    description : str
        Human-readable path description.
    required_prototypes : list[str], optional
        Prototypes referenced on this path.
    axis_intervals : dict[str, AxisInterval], optional
    conflicts : list[dict], optional
        ``{"axis": ..., "message": ...}`` records.
    knife_edges : list[KnifeEdge], optional
    active_prototypes, inactive_prototypes : list[str], optional

    Raises
    ------
    ModelValidationError
        On an empty/non-string id, non-string description or a
        non-list ``required_prototypes``.
    """

    __slots__ = (
        "_branch_id", "_description", "_required_prototypes",
        "_axis_intervals", "_conflicts", "_knife_edges",
        "_active_prototypes", "_inactive_prototypes",
    )

    def __init__(
        self,
        branch_id: str,
        description: str,
        required_prototypes: Optional[Sequence[str]] = None,
        *,
        axis_intervals: Optional[Mapping[str, AxisInterval]] = None,
        conflicts: Optional[Sequence[Mapping[str, Any]]] = None,
        knife_edges: Optional[Sequence[KnifeEdge]] = None,
        active_prototypes: Optional[Sequence[str]] = None,
        inactive_prototypes: Optional[Sequence[str]] = None,
    ):
        if not isinstance(branch_id, str) or not branch_id:
            raise ModelValidationError("branch_id must be a non-empty string")
        if not isinstance(description, str):
            raise ModelValidationError("description must be a string")
        if required_prototypes is None:
            required_prototypes = []
        if not isinstance(required_prototypes, (list, tuple)):
            raise ModelValidationError("required_prototypes must be a list")

        self._branch_id = branch_id
        self._description = description
        self._required_prototypes = tuple(required_prototypes)
        self._axis_intervals: Dict[str, AxisInterval] = dict(
            axis_intervals or {})
        self._conflicts = tuple(dict(c) for c in (conflicts or ()))
        self._knife_edges = tuple(knife_edges or ())
        self._active_prototypes = tuple(active_prototypes or ())
        self._inactive_prototypes = tuple(inactive_prototypes or ())

    def __setattr__(self, name, value):
        if hasattr(self, "_inactive_prototypes"):
            raise AttributeError("AnalysisBranch is immutable")
        object.__setattr__(self, name, value)

    # ── getters (copies out) ────────────────────────────────────

    @property
    def branch_id(self) -> str:
        return self._branch_id

    @property
    def description(self) -> str:
        return self._description

    @property
    def required_prototypes(self) -> List[str]:
        return list(self._required_prototypes)

    @property
    def axis_intervals(self) -> Dict[str, AxisInterval]:
        return dict(self._axis_intervals)

    @property
    def conflicts(self) -> List[Dict[str, Any]]:
        return [dict(c) for c in self._conflicts]

    @property
    def knife_edges(self) -> List[KnifeEdge]:
        return list(self._knife_edges)

    @property
    def active_prototypes(self) -> List[str]:
        return list(self._active_prototypes)

    @property
    def inactive_prototypes(self) -> List[str]:
        return list(self._inactive_prototypes)

    @property
    def is_infeasible(self) -> bool:
        return len(self._conflicts) > 0

    @property
    def has_knife_edges(self) -> bool:
        return len(self._knife_edges) > 0

    # ── builders ────────────────────────────────────────────────

    def _copy(self, **changes) -> "AnalysisBranch":
        fields = dict(
            axis_intervals=self._axis_intervals,
            conflicts=self._conflicts,
            knife_edges=self._knife_edges,
            active_prototypes=self._active_prototypes,
            inactive_prototypes=self._inactive_prototypes,
        )
        fields.update(changes)
        return AnalysisBranch(
            self._branch_id,
            self._description,
            list(self._required_prototypes),
            **fields,
        )

    def with_axis_intervals(
        self, axis_intervals: Mapping[str, AxisInterval],
    ) -> "AnalysisBranch":
        return self._copy(axis_intervals=axis_intervals)

    def with_conflicts(
        self, conflicts: Sequence[Mapping[str, Any]],
    ) -> "AnalysisBranch":
        return self._copy(conflicts=conflicts)

    def with_knife_edges(
        self, knife_edges: Sequence[KnifeEdge],
    ) -> "AnalysisBranch":
        return self._copy(knife_edges=knife_edges)

    def with_prototype_partitioning(
        self,
        active: Sequence[str],
        inactive: Sequence[str],
    ) -> "AnalysisBranch":
        return self._copy(
            active_prototypes=active, inactive_prototypes=inactive)

    @staticmethod
    def conflict_for(axis: str, interval: AxisInterval) -> Dict[str, str]:
        """Build the conflict record for an empty *interval*."""
        return {
            "axis": axis,
            "message": (
                f"Impossible constraint: {axis} requires "
                f"[{interval.min:.2f}, {interval.max:.2f}]"
            ),
        }

    # ── presentation ────────────────────────────────────────────

    def to_summary(self) -> str:
        """Fixed-format multi-line summary.

        ::

            Branch 0.1: flow via interest [✓ feasible]
              Active: flow, interest | Inactive: none
              Conflicts: 0 | Knife-edges: 1
        """
        glyph = "✗ infeasible" if self.is_infeasible else "✓ feasible"
        active = ", ".join(self._active_prototypes) or "none"
        inactive = ", ".join(self._inactive_prototypes) or "none"
        return (
            f"Branch {self._branch_id}: {self._description} [{glyph}]\n"
            f"  Active: {active} | Inactive: {inactive}\n"
            f"  Conflicts: {len(self._conflicts)} | "
            f"Knife-edges: {len(self._knife_edges)}"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "branch_id": self._branch_id,
            "description": self._description,
            "required_prototypes": list(self._required_prototypes),
            "axis_intervals": {
                k: iv.to_dict() for k, iv in self._axis_intervals.items()
            },
            "conflicts": self.conflicts,
            "knife_edges": [ke.to_dict() for ke in self._knife_edges],
            "active_prototypes": list(self._active_prototypes),
            "inactive_prototypes": list(self._inactive_prototypes),
            "is_infeasible": self.is_infeasible,
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "AnalysisBranch":
        return cls(
            d["branch_id"],
            d.get("description", ""),
            list(d.get("required_prototypes", [])),
            axis_intervals={
                k: AxisInterval.from_dict(v)
                for k, v in d.get("axis_intervals", {}).items()
            },
            conflicts=d.get("conflicts", []),
            knife_edges=[
                KnifeEdge.from_dict(k) for k in d.get("knife_edges", [])
            ],
            active_prototypes=d.get("active_prototypes", []),
            inactive_prototypes=d.get("inactive_prototypes", []),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AnalysisBranch):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        state = "infeasible" if self.is_infeasible else "feasible"
        return f"AnalysisBranch({self._branch_id!r}, {state})"
