"""Hierarchical clause trees with per-node failure statistics.

A gate expression such as ``AND(joy >= 0.5, OR(threat <= 0.2, ...))``
is diagnosed by mirroring it as a tree of :class:`HierarchicalClauseNode`
objects and replaying many Monte-Carlo trials through it.  Each node
collects running statistics that answer *why* the expression fails:

* how often the clause fails and by how much (violation percentiles)
* what values the gated variable actually reaches (ceiling gap)
* how often a sample lands just beside the threshold (near misses)
* how often this clause alone blocks an otherwise passing AND
  (last-mile / sibling-conditioned failures)
* how often this alternative is the one that satisfies a parent OR

The tree *structure* (``id``, ``node_type``, ``description``, ``logic``,
``children``) is fixed at construction.  All counters live on a separate
:class:`ClauseStats` object reachable as ``node.stats``; the node exposes
them read-only by attribute delegation, so ``node.failure_count`` is
``node.stats.failure_count``.

Usage
-----
>>> leaf = HierarchicalClauseNode("0.0", "leaf", "emotions.joy >= 0.5")
>>> root = HierarchicalClauseNode("0", "and", "AND of 1", children=[leaf])
>>> leaf.set_threshold_metadata(0.5, ">=", "emotions.joy")
>>> leaf.record_evaluation(False, violation=0.2)
>>> leaf.record_observed_value(0.3)
>>> leaf.failure_rate, leaf.ceiling_gap     # (1.0, 0.2)
>>> restored = HierarchicalClauseNode.from_json(root.to_json())
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .errors import ModelValidationError
from .statistics import is_finite_number, percentile

__all__ = [
    "NODE_TYPES",
    "ClauseStats",
    "HierarchicalClauseNode",
]


NODE_TYPES: Tuple[str, ...] = ("and", "or", "leaf")


# ═══════════════════════════════════════════════════════════════════
# ClauseStats — the mutable half
# ═══════════════════════════════════════════════════════════════════

@dataclass
class ClauseStats:
    """Running counters for one clause node.

    Every field is zeroed by :meth:`reset`.  Sample lists are kept in
    insertion order; percentile queries sort a copy.
    """

    evaluation_count: int = 0
    failure_count: int = 0
    violation_sum: float = 0.0
    violation_values: List[float] = field(default_factory=list)

    max_observed_value: Optional[float] = None
    min_observed_value: Optional[float] = None
    observed_sum: float = 0.0
    observed_values: List[float] = field(default_factory=list)

    near_miss_count: int = 0
    near_miss_epsilon: Optional[float] = None

    others_passed_count: int = 0
    last_mile_fail_count: int = 0
    siblings_passed_count: int = 0
    sibling_conditioned_fail_count: int = 0

    or_success_count: int = 0
    or_contribution_count: int = 0

    def reset(self) -> None:
        fresh = ClauseStats()
        for f in fields(self):
            setattr(self, f.name, getattr(fresh, f.name))

    def to_dict(self) -> Dict[str, Any]:
        d = {f.name: getattr(self, f.name) for f in fields(self)}
        d["violation_values"] = list(self.violation_values)
        d["observed_values"] = list(self.observed_values)
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ClauseStats":
        known = {f.name for f in fields(cls)}
        stats = cls(**{k: v for k, v in d.items() if k in known})
        stats.violation_values = list(stats.violation_values)
        stats.observed_values = list(stats.observed_values)
        return stats


# Names delegated from the node to its stats object.
_STAT_FIELDS = frozenset(f.name for f in fields(ClauseStats))


# ═══════════════════════════════════════════════════════════════════
# HierarchicalClauseNode — the immutable half
# ═══════════════════════════════════════════════════════════════════

class HierarchicalClauseNode:
    """One AND / OR / leaf clause plus its running statistics.

    Parameters
    ----------
    id : str
        Non-empty node id, conventionally a dotted tree path (``"0.1"``).
    node_type : {'and', 'or', 'leaf'}
    description : str
        Human-readable clause text.
    logic : dict, optional
        Raw JSON-logic of a leaf clause.  Ignored for compound nodes.
    children : list[HierarchicalClauseNode], optional
        Child clauses (compound nodes only).

    Raises
    ------
    ModelValidationError
        On an empty id, unknown node type or non-string description.
    """

    def __init__(
        self,
        id: str,
        node_type: str,
        description: str,
        *,
        logic: Optional[Dict[str, Any]] = None,
        children: Optional[Sequence["HierarchicalClauseNode"]] = None,
    ):
        if not isinstance(id, str) or not id:
            raise ModelValidationError("id must be a non-empty string")
        if node_type not in NODE_TYPES:
            raise ModelValidationError(
                "node_type must be 'and', 'or', or 'leaf'")
        if not isinstance(description, str):
            raise ModelValidationError("description must be a string")

        self._id = id
        self._node_type = node_type
        self._description = description
        self._logic = logic if node_type == "leaf" else None
        self._children: Tuple[HierarchicalClauseNode, ...] = (
            tuple(children or ()) if node_type != "leaf" else ())

        self.stats = ClauseStats()

        # Structural annotations: survive reset_stats().
        self.is_single_clause: bool = False
        self.parent_node_type: Optional[str] = None

        self._threshold_value: Optional[float] = None
        self._comparison_operator: Optional[str] = None
        self._variable_path: Optional[str] = None

    def __getattr__(self, name: str):
        # Only reached when normal lookup fails.
        stats = self.__dict__.get("stats")
        if stats is not None and name in _STAT_FIELDS:
            return getattr(stats, name)
        raise AttributeError(
            f"{type(self).__name__!r} object has no attribute {name!r}")

    # ── structure ───────────────────────────────────────────────

    @property
    def id(self) -> str:
        return self._id

    @property
    def node_type(self) -> str:
        return self._node_type

    @property
    def description(self) -> str:
        return self._description

    @property
    def logic(self) -> Optional[Dict[str, Any]]:
        return self._logic

    @property
    def children(self) -> List["HierarchicalClauseNode"]:
        return list(self._children)

    @property
    def is_compound(self) -> bool:
        return self._node_type in ("and", "or")

    # ── threshold metadata ──────────────────────────────────────

    @property
    def threshold_value(self) -> Optional[float]:
        return self._threshold_value

    @property
    def comparison_operator(self) -> Optional[str]:
        return self._comparison_operator

    @property
    def variable_path(self) -> Optional[str]:
        return self._variable_path

    def set_threshold_metadata(
        self,
        threshold_value: float,
        comparison_operator: str,
        variable_path: str,
    ) -> None:
        """Attach the leaf's gate threshold (used by :attr:`ceiling_gap`)."""
        self._threshold_value = threshold_value
        self._comparison_operator = comparison_operator
        self._variable_path = variable_path

    # ── recording ───────────────────────────────────────────────

    def record_evaluation(self, passed: bool, violation: float = 0.0) -> None:
        """Record one trial outcome.

        On failure the violation magnitude is added to the running sum,
        and kept as a percentile sample when strictly positive.
        """
        s = self.stats
        s.evaluation_count += 1
        if not passed:
            s.failure_count += 1
            s.violation_sum += violation
            if violation > 0:
                s.violation_values.append(violation)

    def record_observed_value(self, value) -> None:
        """Record the gated variable's actual value; non-numbers ignored."""
        if not is_finite_number(value):
            return
        s = self.stats
        value = float(value)
        if s.max_observed_value is None or value > s.max_observed_value:
            s.max_observed_value = value
        if s.min_observed_value is None or value < s.min_observed_value:
            s.min_observed_value = value
        s.observed_sum += value
        s.observed_values.append(value)

    def record_near_miss(self, value, threshold, epsilon) -> None:
        """Count *value* as a near miss when ``|value − threshold| ≤ ε``."""
        if not (is_finite_number(value) and is_finite_number(threshold)
                and is_finite_number(epsilon)):
            return
        self.stats.near_miss_epsilon = epsilon
        if abs(value - threshold) <= epsilon:
            self.stats.near_miss_count += 1

    def record_others_passed(self) -> None:
        """Every sibling in the parent AND passed on this trial."""
        self.stats.others_passed_count += 1

    def record_last_mile_fail(self) -> None:
        """This clause failed while every sibling passed."""
        s = self.stats
        s.last_mile_fail_count += 1
        if s.last_mile_fail_count > s.others_passed_count:
            s.others_passed_count = s.last_mile_fail_count

    def record_siblings_passed(self) -> None:
        self.stats.siblings_passed_count += 1

    def record_sibling_conditioned_fail(self) -> None:
        s = self.stats
        s.sibling_conditioned_fail_count += 1
        if s.sibling_conditioned_fail_count > s.siblings_passed_count:
            s.siblings_passed_count = s.sibling_conditioned_fail_count

    def record_or_success(self) -> None:
        """The parent OR node succeeded on this trial."""
        self.stats.or_success_count += 1

    def record_or_contribution(self) -> None:
        """This alternative is the one that satisfied the parent OR."""
        self.stats.or_contribution_count += 1

    def reset_stats(self) -> None:
        """Zero every counter in this subtree.

        ``is_single_clause`` and ``parent_node_type`` are structural
        annotations and are left untouched.
        """
        self.stats.reset()
        for child in self._children:
            child.reset_stats()

    # ── derived statistics ──────────────────────────────────────

    @property
    def failure_rate(self) -> float:
        s = self.stats
        if s.evaluation_count == 0:
            return 0.0
        return s.failure_count / s.evaluation_count

    @property
    def average_violation(self) -> float:
        s = self.stats
        if s.failure_count == 0:
            return 0.0
        return s.violation_sum / s.failure_count

    @property
    def violation_sample_count(self) -> int:
        return len(self.stats.violation_values)

    @property
    def violation_p50(self) -> Optional[float]:
        return percentile(self.stats.violation_values, 0.50)

    @property
    def violation_p90(self) -> Optional[float]:
        return percentile(self.stats.violation_values, 0.90)

    @property
    def violation_p95(self) -> Optional[float]:
        return percentile(self.stats.violation_values, 0.95)

    @property
    def violation_p99(self) -> Optional[float]:
        return percentile(self.stats.violation_values, 0.99)

    @property
    def observed_min(self) -> Optional[float]:
        return self.stats.min_observed_value

    @property
    def observed_mean(self) -> Optional[float]:
        s = self.stats
        if not s.observed_values:
            return None
        return s.observed_sum / len(s.observed_values)

    @property
    def observed_p95(self) -> Optional[float]:
        return percentile(self.stats.observed_values, 0.95)

    @property
    def observed_p99(self) -> Optional[float]:
        return percentile(self.stats.observed_values, 0.99)

    @property
    def ceiling_gap(self) -> Optional[float]:
        """Distance between the threshold and the best value observed.

        Positive means the threshold was never reached ("ceiling" for
        ``>=``/``>``, "floor" for ``<=``/``<``); negative means it is
        achievable.  ``None`` without a threshold, without observations
        or for ``==`` gates.
        """
        t = self._threshold_value
        op = self._comparison_operator
        s = self.stats
        if t is None or op is None:
            return None
        if op in (">=", ">"):
            if s.max_observed_value is None:
                return None
            return t - s.max_observed_value
        if op in ("<=", "<"):
            if s.min_observed_value is None:
                return None
            return s.min_observed_value - t
        return None

    @property
    def near_miss_rate(self) -> Optional[float]:
        s = self.stats
        if s.evaluation_count == 0:
            return None
        return s.near_miss_count / s.evaluation_count

    @property
    def last_mile_fail_rate(self) -> Optional[float]:
        s = self.stats
        if s.others_passed_count == 0:
            return None
        return s.last_mile_fail_count / s.others_passed_count

    @property
    def sibling_conditioned_fail_rate(self) -> Optional[float]:
        s = self.stats
        if s.siblings_passed_count == 0:
            return None
        return s.sibling_conditioned_fail_count / s.siblings_passed_count

    @property
    def or_contribution_rate(self) -> Optional[float]:
        s = self.stats
        if s.or_success_count == 0:
            return None
        return s.or_contribution_count / s.or_success_count

    # ── serialisation ───────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        """Full snapshot: structure, raw counters, derived values, children.

        Raw sample lists are included so that :meth:`from_dict`
        reproduces every derived value exactly.
        """
        d: Dict[str, Any] = {
            "id": self._id,
            "node_type": self._node_type,
            "description": self._description,
            "logic": self._logic,
            "is_compound": self.is_compound,
            "threshold_value": self._threshold_value,
            "comparison_operator": self._comparison_operator,
            "variable_path": self._variable_path,
            "is_single_clause": self.is_single_clause,
            "parent_node_type": self.parent_node_type,
        }
        d.update(self.stats.to_dict())
        d.update({
            "failure_rate": self.failure_rate,
            "average_violation": self.average_violation,
            "violation_sample_count": self.violation_sample_count,
            "violation_p50": self.violation_p50,
            "violation_p90": self.violation_p90,
            "violation_p95": self.violation_p95,
            "violation_p99": self.violation_p99,
            "observed_min": self.observed_min,
            "observed_mean": self.observed_mean,
            "observed_p95": self.observed_p95,
            "observed_p99": self.observed_p99,
            "ceiling_gap": self.ceiling_gap,
            "near_miss_rate": self.near_miss_rate,
            "last_mile_fail_rate": self.last_mile_fail_rate,
            "sibling_conditioned_fail_rate":
                self.sibling_conditioned_fail_rate,
            "or_contribution_rate": self.or_contribution_rate,
        })
        d["children"] = [c.to_dict() for c in self._children]
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "HierarchicalClauseNode":
        node = cls(
            d["id"],
            d["node_type"],
            d.get("description", ""),
            logic=d.get("logic"),
            children=[cls.from_dict(c) for c in d.get("children", [])],
        )
        node.stats = ClauseStats.from_dict(d)
        node.is_single_clause = bool(d.get("is_single_clause", False))
        node.parent_node_type = d.get("parent_node_type")
        if d.get("comparison_operator") is not None:
            node.set_threshold_metadata(
                d.get("threshold_value"),
                d["comparison_operator"],
                d.get("variable_path"),
            )
        return node

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, text: str) -> "HierarchicalClauseNode":
        return cls.from_dict(json.loads(text))

    # ── traversal ───────────────────────────────────────────────

    def iter_nodes(self):
        """Depth-first pre-order iteration over this subtree."""
        yield self
        for child in self._children:
            yield from child.iter_nodes()

    def __repr__(self) -> str:
        return (
            f"HierarchicalClauseNode({self._id!r}, {self._node_type!r}, "
            f"failures={self.stats.failure_count}/"
            f"{self.stats.evaluation_count})"
        )
