"""ThresholdRegistry — every tunable number in one place.

The overlap engine has five groups of knobs:

* **legacy** — the threshold rule set used by the V2 classifier
  (``merge.*``, ``subsumption.*``, ``nesting.*``, ``separation.*``,
  ``expression.*``, ``near_miss.*``, ``reliability.*``)
* **agreement** — the CI-based V3 rule set (``agreement.*``)
* **evaluator** — Monte-Carlo sampling budget and guardrails
* **profile** — expression-candidate cut-offs (``profile.*``)
* **candidate** — structural pre-filter (``candidate.*``)

Each group ships as a named, immutable registry that can be:

* **inspected** — ``registry["merge.min_correlation"]``
* **overridden** — ``registry.replace({"merge.min_correlation": 0.97})``
* **diffed** — ``registry.diff(other)``
* **swept** — build 100 registries with one threshold varying

Usage
-----
>>> from prototype_overlap.thresholds import DEFAULT_LEGACY_THRESHOLDS
>>> reg = DEFAULT_LEGACY_THRESHOLDS
>>> reg["merge.min_correlation"]            # 0.98
>>> custom = reg.replace({"merge.min_correlation": 0.97})
>>> diff = custom.diff(reg)                 # {'merge.min_correlation': (0.97, 0.98)}

Historical notes
----------------
v0.2.0 — registries split per rule set so that each classifier
variant validates only the keys it actually reads.
"""

from __future__ import annotations

from typing import Dict, Iterator, Optional, Tuple

__all__ = [
    "ThresholdRegistry",
    "DEFAULT_LEGACY_THRESHOLDS",
    "DEFAULT_AGREEMENT_THRESHOLDS",
    "DEFAULT_EVALUATOR_THRESHOLDS",
    "DEFAULT_PROFILE_THRESHOLDS",
    "DEFAULT_CANDIDATE_THRESHOLDS",
    "DEFAULT_HIGH_THRESHOLDS",
]


# ═══════════════════════════════════════════════════════════════════
# ThresholdRegistry
# ═══════════════════════════════════════════════════════════════════

class ThresholdRegistry:
    """Read-only mapping of ``section.name`` keys to numeric thresholds.

    Parameters
    ----------
    data : dict[str, float]
        Threshold values, copied on construction.
    name : str, optional
        Label shown in ``repr`` and carried into derived registries.

    Notes
    -----
    Item assignment raises ``TypeError``; derive a variant with
    :meth:`replace`.  Registries compare and hash by content, so two
    registries built from equal data are interchangeable.
    """

    def __init__(self, data: Dict[str, float], *, name: str = "custom"):
        self._data: Dict[str, float] = dict(data)
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    # ── mapping protocol ────────────────────────────────────────

    def __getitem__(self, key: str) -> float:
        return self._data[key]

    def __setitem__(self, key: str, value: float):
        raise TypeError(
            f"ThresholdRegistry {self._name!r} is immutable; "
            "derive a variant with .replace()")

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def get(self, key: str, default: Optional[float] = 0.0) -> Optional[float]:
        return self._data.get(key, default)

    def keys(self):
        return self._data.keys()

    def to_dict(self) -> Dict[str, float]:
        """Mutable copy, e.g. for :class:`~prototype_overlap.config.ConfigValidator`."""
        return dict(self._data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ThresholdRegistry):
            return NotImplemented
        return self._data == other._data

    def __hash__(self) -> int:
        return hash(tuple(sorted(self._data.items())))

    def __repr__(self) -> str:
        return f"ThresholdRegistry({self._name!r}, {len(self._data)} keys)"

    # ── derivation ──────────────────────────────────────────────

    def replace(
        self,
        overrides: Dict[str, float],
        *,
        name: Optional[str] = None,
    ) -> "ThresholdRegistry":
        """New registry with *overrides* applied on top of this one.

        Only existing keys may be overridden, so a misspelled key fails
        loudly instead of being silently ignored by every rule.  The
        default name is this registry's name with ``"+"`` appended.

        Raises
        ------
        KeyError
            Naming the first unknown key and listing the valid ones.
        """
        unknown = [k for k in overrides if k not in self._data]
        if unknown:
            raise KeyError(
                f"Unknown threshold key {unknown[0]!r}. "
                f"Valid keys: {sorted(self._data)}")
        data = {**self._data, **overrides}
        return ThresholdRegistry(data, name=name or f"{self._name}+")

    def diff(
        self, other: "ThresholdRegistry",
    ) -> Dict[str, Tuple[Optional[float], Optional[float]]]:
        """``{key: (mine, theirs)}`` for every key whose value differs.

        A key present on one side only is reported with ``None`` for
        the missing side.
        """
        return {
            k: (self._data.get(k), other._data.get(k))
            for k in sorted(set(self._data) | set(other._data))
            if self._data.get(k) != other._data.get(k)
        }


# ═══════════════════════════════════════════════════════════════════
# Default registries
# ═══════════════════════════════════════════════════════════════════
#
# Naming convention: section.descriptive_name
#   legacy     ∈ {merge, subsumption, nesting, separation, expression,
#                 near_miss, reliability}
#   agreement  ∈ {agreement}
#   evaluator  ∈ {evaluator}
#   profile    ∈ {profile}
#   candidate  ∈ {candidate}
# ═══════════════════════════════════════════════════════════════════

_LEGACY_DATA: Dict[str, float] = {

    # ── merge: both prototypes functionally equivalent ─────────
    "merge.min_on_either_rate": 0.05,       # dead-prototype floor
    "merge.min_gate_overlap_ratio": 0.90,   # on_both / on_either
    "merge.min_correlation": 0.98,          # co-pass pearson
    "merge.max_mean_abs_diff": 0.03,        # co-pass MAD
    "merge.min_global_correlation": 0.90,   # when source = global
    "merge.max_global_mean_abs_diff": 0.15,

    # ── subsumption: one side never fires alone ────────────────
    "subsumption.max_exclusive_rate": 0.01,
    "subsumption.min_correlation": 0.95,
    "subsumption.min_global_correlation": 0.85,
    "subsumption.min_dominance": 0.95,

    # ── nesting: asymmetric implication ────────────────────────
    "nesting.conditional_threshold": 0.97,

    # ── separation: overlapping but not mergeable ──────────────
    "separation.min_gate_overlap_ratio": 0.70,
    "separation.min_correlation": 0.80,

    # ── expression: low-threat steady-state heuristic ──────────
    "expression.max_threat_upper": 0.20,

    # ── near_miss: review candidates just short of merge ───────
    "near_miss.correlation_threshold": 0.90,
    "near_miss.gate_overlap_ratio": 0.75,

    # ── reliability: effective-correlation cascade ─────────────
    "reliability.min_co_pass_samples": 500.0,
    "reliability.min_co_pass_ratio": 0.10,
    "reliability.co_pass_weight": 0.6,
    "reliability.global_weight": 0.4,
}


_AGREEMENT_DATA: Dict[str, float] = {

    # Merge
    "agreement.max_mae_global_for_merge": 0.08,
    "agreement.min_activation_jaccard_for_merge": 0.85,
    "agreement.symmetry_tolerance": 0.05,
    "agreement.max_mae_co_pass_for_merge": 0.03,

    # Subsumption / nesting
    "agreement.asymmetry_required": 0.10,
    "agreement.min_conditional_prob_for_nesting": 0.95,
    "agreement.min_conditional_prob_ci_lower_for_nesting": 0.90,

    # Expression conversion
    "agreement.max_mae_delta_for_expression": 0.05,

    # Separation (mirrors the legacy cut-offs)
    "agreement.min_gate_overlap_for_separation": 0.70,
    "agreement.min_correlation_for_separation": 0.80,

    # Guardrails
    "agreement.dead_gate_volume": 0.01,
    "agreement.confidence_level": 0.95,
    "agreement.min_samples_for_reliable_correlation": 500.0,
    "agreement.min_co_pass_ratio_for_reliable": 0.10,
    "agreement.jaccard_empty_set_value": 1.0,
}


_EVALUATOR_DATA: Dict[str, float] = {
    "evaluator.sample_count_per_pair": 8000.0,
    "evaluator.divergence_examples_k": 5.0,
    "evaluator.dominance_delta": 0.05,
    "evaluator.min_co_pass_samples": 200.0,
    "evaluator.intensity_eps": 0.05,
    "evaluator.min_pass_samples_for_conditional": 200.0,
    "evaluator.confidence_level": 0.95,
}


_PROFILE_DATA: Dict[str, float] = {
    "profile.low_volume_threshold": 0.05,
    "profile.single_axis_focus_threshold": 0.60,
}


_CANDIDATE_DATA: Dict[str, float] = {
    "candidate.active_axis_epsilon": 0.08,
    "candidate.soft_sign_threshold": 0.15,
    "candidate.jaccard_empty_set_value": 1.0,
    "candidate.min_active_axis_overlap": 0.60,
    "candidate.min_sign_agreement": 0.80,
    "candidate.min_cosine_similarity": 0.85,
}


DEFAULT_LEGACY_THRESHOLDS: ThresholdRegistry = ThresholdRegistry(
    _LEGACY_DATA, name="legacy",
)
"""Thresholds for the V2 (legacy) classifier rule set."""

DEFAULT_AGREEMENT_THRESHOLDS: ThresholdRegistry = ThresholdRegistry(
    _AGREEMENT_DATA, name="agreement",
)
"""Thresholds for the V3 (agreement / CI-based) classifier rule set."""

DEFAULT_EVALUATOR_THRESHOLDS: ThresholdRegistry = ThresholdRegistry(
    _EVALUATOR_DATA, name="evaluator",
)
"""Sampling budget and guardrails for the behavioral evaluator.

``evaluator.min_co_pass_samples`` is the co-pass guardrail: below it
every co-pass-restricted intensity metric is reported as ``NaN``.
"""

DEFAULT_PROFILE_THRESHOLDS: ThresholdRegistry = ThresholdRegistry(
    _PROFILE_DATA, name="profile",
)
"""Cut-offs for flagging narrow prototypes as expression candidates."""

DEFAULT_CANDIDATE_THRESHOLDS: ThresholdRegistry = ThresholdRegistry(
    _CANDIDATE_DATA, name="candidate",
)
"""Structural pre-filter thresholds over weight vectors."""

DEFAULT_HIGH_THRESHOLDS: Tuple[float, ...] = (0.4, 0.6, 0.75)
"""Intensity levels at which high co-activation is tracked."""
