"""Classification result records.

:class:`ClassificationResult` is the audit trail for one pair: the
winning classification, which side is subsumed or narrower, snapshots
of the metrics and thresholds the decision was made on, and every rule
that matched, in priority order.

Usage
-----
>>> result = classifier.classify(candidate, behavior)
>>> result.type                          # "merge_recommended"
>>> [e.type for e in result.all_matching_classifications]
>>> print(result.explain())
>>> result.to_dict()                     # JSON-safe dict
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

__all__ = [
    "CLASSIFICATION_TYPES",
    "PRIORITY_ORDER",
    "ClassificationEvidence",
    "EffectiveCorrelation",
    "ClassificationResult",
    "NearMissResult",
]


PRIORITY_ORDER: Tuple[str, ...] = (
    "merge_recommended",
    "subsumed_recommended",
    "convert_to_expression",
    "nested_siblings",
    "needs_separation",
    "keep_distinct",
)

CLASSIFICATION_TYPES = frozenset(PRIORITY_ORDER)


def _round(value):
    if isinstance(value, float):
        return round(value, 6)
    return value


# ═══════════════════════════════════════════════════════════════════
# Evidence
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ClassificationEvidence:
    """One matching rule.

    ``subsumed_prototype`` is set for ``subsumed_recommended``;
    ``narrower_prototype`` for ``convert_to_expression`` and
    ``nested_siblings``.  Both are ``"a"`` or ``"b"``.
    """

    type: str
    is_primary: bool = False
    subsumed_prototype: Optional[str] = None
    narrower_prototype: Optional[str] = None
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"type": self.type, "is_primary": self.is_primary}
        if self.subsumed_prototype is not None:
            out["subsumed_prototype"] = self.subsumed_prototype
        if self.narrower_prototype is not None:
            out["narrower_prototype"] = self.narrower_prototype
        if self.reason:
            out["reason"] = self.reason
        return out


@dataclass(frozen=True)
class EffectiveCorrelation:
    """The correlation the legacy rules actually compared against.

    ``source`` is one of ``co_pass``, ``global``, ``combined``,
    ``co_pass_sparse`` or ``none``; ``confidence`` is ``high``,
    ``medium``, ``low`` or ``none``.
    """

    value: Optional[float]
    source: str
    confidence: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "value": _round(self.value),
            "source": self.source,
            "confidence": self.confidence,
        }


# ═══════════════════════════════════════════════════════════════════
# ClassificationResult
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ClassificationResult:
    """Outcome of classifying one prototype pair.

    The result is frozen, and identical inputs always produce an equal
    result.

    Serialisation
    -------------
    :meth:`to_dict` gives a JSON-safe representation; :meth:`summary`
    one line; :meth:`explain` a multi-line breakdown.
    """

    type: str
    ruleset: str
    metrics: Dict[str, Any]
    thresholds: Dict[str, float]
    evidence: Tuple[ClassificationEvidence, ...] = ()
    subsumed_prototype: Optional[str] = None
    narrower_prototype: Optional[str] = None
    effective_correlation: Optional[EffectiveCorrelation] = None

    # ── Derived properties ──────────────────────────────────────

    @property
    def all_matching_classifications(self) -> List[ClassificationEvidence]:
        """Every matching rule in priority order; the first is primary."""
        return list(self.evidence)

    @property
    def primary(self) -> Optional[ClassificationEvidence]:
        for ev in self.evidence:
            if ev.is_primary:
                return ev
        return None

    @property
    def is_actionable(self) -> bool:
        """Anything other than ``keep_distinct``."""
        return self.type != "keep_distinct"

    # ── Serialisation ───────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "type": self.type,
            "ruleset": self.ruleset,
            "metrics": {k: _round(v) for k, v in self.metrics.items()},
            "thresholds": dict(self.thresholds),
            "all_matching_classifications": [
                ev.to_dict() for ev in self.evidence],
        }
        if self.subsumed_prototype is not None:
            out["subsumed_prototype"] = self.subsumed_prototype
        if self.narrower_prototype is not None:
            out["narrower_prototype"] = self.narrower_prototype
        if self.effective_correlation is not None:
            out["effective_correlation"] = self.effective_correlation.to_dict()
        return out

    def summary(self) -> str:
        """One-line human-readable summary."""
        side = ""
        if self.subsumed_prototype is not None:
            side = f", subsumed={self.subsumed_prototype}"
        elif self.narrower_prototype is not None:
            side = f", narrower={self.narrower_prototype}"
        others = len(self.evidence) - 1 if self.evidence else 0
        return f"{self.type} ({self.ruleset}{side}, +{others} other matches)"

    def explain(self) -> str:
        lines = [
            f"Classification: {self.type}",
            f"  Rule set:      {self.ruleset}",
        ]
        if self.effective_correlation is not None:
            ec = self.effective_correlation
            value = "n/a" if ec.value is None else f"{ec.value:.4f}"
            lines.append(
                f"  Correlation:   {value} "
                f"(source={ec.source}, confidence={ec.confidence})")

        lines.append("")
        lines.append("Matching rules:")
        for ev in self.evidence:
            marker = " ←" if ev.is_primary else ""
            reason = f"  {ev.reason}" if ev.reason else ""
            lines.append(f"  {ev.type:<24s}{reason}{marker}")

        lines.append("")
        lines.append("Metrics:")
        for key in sorted(self.metrics):
            value = self.metrics[key]
            if isinstance(value, float):
                lines.append(f"  {key:<28s} {value:.4f}")
            else:
                lines.append(f"  {key:<28s} {value}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"ClassificationResult({self.type!r}, ruleset={self.ruleset!r}, "
            f"matches={len(self.evidence)})"
        )


# ═══════════════════════════════════════════════════════════════════
# NearMissResult
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class NearMissResult:
    """A pair that came close to merging but did not qualify.

    ``threshold_proximity`` maps ``correlation`` and
    ``gate_overlap_ratio`` to ``{"value", "near_miss_threshold",
    "merge_threshold", "met"}`` and ``on_either_rate`` to
    ``{"value", "threshold", "met"}``.  It is empty when the pair is
    not a near miss.
    """

    is_near_miss: bool
    reasons: Tuple[str, ...] = ()
    threshold_proximity: Mapping[str, Mapping[str, Any]] = field(
        default_factory=dict)

    @property
    def reason(self) -> str:
        return "; ".join(self.reasons)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_near_miss": self.is_near_miss,
            "reasons": list(self.reasons),
            "threshold_proximity": {
                k: {kk: _round(vv) for kk, vv in v.items()}
                for k, v in self.threshold_proximity.items()
            },
        }
