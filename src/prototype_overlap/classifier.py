"""OverlapClassifier — priority-ordered redundancy verdicts for one pair.

Two rule sets share one classifier, selected once at construction by
the :class:`~prototype_overlap.config.ClassifierConfig` variant:

**legacy** (threshold rules over behavioral metrics)

1. ``merge_recommended`` — high gate overlap, effective correlation and
   intensity agreement, neither side dominating
2. ``subsumed_recommended`` — one side almost never fires alone and is
   consistently out-fired by the other
3. ``convert_to_expression`` — nested, and the narrower side is gated
   to a low-threat band
4. ``nested_siblings`` — one side's gates imply the other's
5. ``needs_separation`` — overlapping and correlated, but intensities
   differ too much to merge
6. ``keep_distinct`` — fallback

Every rule except the fallback is gated on the dead-prototype floor
(``merge.min_on_either_rate``).

**agreement** (CI-based rules over :class:`AgreementMetrics` and
:class:`PrototypeProfile`) uses the same six outcomes with
Wilson-bound conditions; see :meth:`OverlapClassifier._classify_agreement`.

Every rule is evaluated.  The first match in priority order is the
primary classification and all matches are returned as evidence.
Missing or ``NaN`` metrics never raise; they simply make the rules that
depend on them fail.

Usage
-----
>>> clf = OverlapClassifier(ClassifierConfig.legacy())
>>> result = clf.classify(candidate_metrics, behavior_metrics)
>>> result.type, result.subsumed_prototype
>>> clf.check_near_miss(candidate_metrics, behavior_metrics).reasons

Historical notes
----------------
v0.3.0 — the effective-correlation cascade replaced raw co-pass
correlation, which was unreliable for rarely co-firing pairs.
v0.4.0 — agreement rule set added alongside the legacy one.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from .config import ClassifierConfig
from .errors import ConfigurationError
from .result import (
    ClassificationEvidence,
    ClassificationResult,
    EffectiveCorrelation,
    NearMissResult,
)

__all__ = ["OverlapClassifier"]

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════
# Input coercion
# ═══════════════════════════════════════════════════════════════════

def _as_mapping(obj: Any) -> Mapping[str, Any]:
    """Accept a mapping, anything with ``to_dict()``, or ``None``."""
    if obj is None:
        return {}
    if isinstance(obj, Mapping):
        return obj
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return {}


def _opt(value: Any) -> Optional[float]:
    """Finite float or ``None`` (NaN, missing and non-numbers)."""
    if isinstance(value, bool) or value is None:
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(f) or math.isinf(f):
        return None
    return f


def _rate(value: Any) -> float:
    f = _opt(value)
    return 0.0 if f is None else f


@dataclass(frozen=True)
class _Nesting:
    narrower: Optional[str] = None
    deterministic: bool = False

    @property
    def found(self) -> bool:
        return self.narrower is not None


@dataclass
class _LegacyInputs:
    metrics: Dict[str, Any]
    pass_rates: Mapping[str, Any]
    gate_implication: Optional[Mapping[str, Any]]
    gate_parse_info: Optional[Mapping[str, Any]]
    correlation: EffectiveCorrelation = field(
        default_factory=lambda: EffectiveCorrelation(None, "none", "none"))


_Rule = Callable[[Any], Optional[ClassificationEvidence]]


# ═══════════════════════════════════════════════════════════════════
# OverlapClassifier
# ═══════════════════════════════════════════════════════════════════

class OverlapClassifier:
    """Classify a prototype pair from its metrics.

    Parameters
    ----------
    config : ClassifierConfig, optional
        Defaults to ``ClassifierConfig.legacy()``.

    Raises
    ------
    ConfigurationError
        If *config* is not a :class:`ClassifierConfig`, or a threshold
        its rule set reads is missing or non-numeric.
    """

    def __init__(self, config: Optional[ClassifierConfig] = None):
        if config is None:
            config = ClassifierConfig.legacy()
        if not isinstance(config, ClassifierConfig):
            logger.error(
                "OverlapClassifier: config must be a ClassifierConfig, "
                "got %s", type(config).__name__)
            raise ConfigurationError(
                "OverlapClassifier requires a ClassifierConfig")
        config.validate()
        self.config = config
        self._t = config.thresholds
        overrides = config.overrides
        if overrides:
            logger.debug(
                "OverlapClassifier: %s rule set with %d overridden "
                "thresholds: %s", config.ruleset, len(overrides), overrides)

        if config.ruleset == "legacy":
            self._rules: Tuple[Tuple[str, _Rule], ...] = (
                ("merge_recommended", self._legacy_merge),
                ("subsumed_recommended", self._legacy_subsumed),
                ("convert_to_expression", self._legacy_convert),
                ("nested_siblings", self._legacy_nested),
                ("needs_separation", self._legacy_separation),
            )
        else:
            self._rules = (
                ("merge_recommended", self._agreement_merge),
                ("subsumed_recommended", self._agreement_subsumed),
                ("convert_to_expression", self._agreement_convert),
                ("nested_siblings", self._agreement_nested),
                ("needs_separation", self._agreement_separation),
            )

    @property
    def ruleset(self) -> str:
        return self.config.ruleset

    # ── public API ──────────────────────────────────────────────

    def classify(
        self,
        candidate_metrics: Any = None,
        behavior_metrics: Any = None,
        agreement_metrics: Any = None,
        profiles: Any = None,
    ) -> ClassificationResult:
        """Classify one pair.

        Parameters
        ----------
        candidate_metrics : mapping, optional
            ``active_axis_overlap``, ``sign_agreement``,
            ``weight_cosine_similarity``.
        behavior_metrics : mapping or BehavioralMetrics, optional
            Nested ``gate_overlap`` / ``intensity`` / ``pass_rates`` /
            ``gate_implication`` / ``gate_parse_info``.
        agreement_metrics : mapping or AgreementMetrics, optional
            Agreement rule set only.  Falls back to
            ``behavior_metrics["agreement_metrics"]``.
        profiles : mapping, optional
            Agreement rule set only: ``{"a": PrototypeProfile,
            "b": PrototypeProfile}`` (or a two-element sequence).

        Returns
        -------
        ClassificationResult
        """
        if self.config.ruleset == "legacy":
            inputs = self._legacy_inputs(candidate_metrics, behavior_metrics)
            snapshot = dict(inputs.metrics)
            correlation = inputs.correlation
        else:
            inputs = self._agreement_inputs(
                candidate_metrics, behavior_metrics, agreement_metrics, profiles)
            snapshot = dict(inputs["metrics"])
            correlation = None

        matches: List[ClassificationEvidence] = []
        if self.config.ruleset == "legacy" or inputs["available"]:
            for _, rule in self._rules:
                ev = rule(inputs)
                if ev is not None:
                    matches.append(ev)
        if not matches:
            matches.append(ClassificationEvidence(
                "keep_distinct", reason="no other rule matched"))

        evidence = tuple(
            ClassificationEvidence(
                type=ev.type,
                is_primary=(i == 0),
                subsumed_prototype=ev.subsumed_prototype,
                narrower_prototype=ev.narrower_prototype,
                reason=ev.reason,
            )
            for i, ev in enumerate(matches)
        )
        primary = evidence[0]
        result = ClassificationResult(
            type=primary.type,
            ruleset=self.config.ruleset,
            metrics=snapshot,
            thresholds=self._t.to_dict(),
            evidence=evidence,
            subsumed_prototype=primary.subsumed_prototype,
            narrower_prototype=primary.narrower_prototype,
            effective_correlation=correlation,
        )
        logger.debug(
            "OverlapClassifier: %s via %s rules (%d matching: %s)",
            result.type, self.config.ruleset, len(evidence),
            ", ".join(ev.type for ev in evidence))
        return result

    def check_near_miss(
        self,
        candidate_metrics: Any = None,
        behavior_metrics: Any = None,
    ) -> NearMissResult:
        """Flag pairs just short of the merge thresholds.

        A pair is a near miss when its co-pass correlation or its gate
        overlap ratio lies between the near-miss and merge thresholds,
        or when both clear their near-miss thresholds but intensities
        differ too much.  Dead prototypes are never near misses.
        """
        inputs = self._legacy_inputs(candidate_metrics, behavior_metrics)
        m = inputs.metrics
        t = self._t

        nm_corr = t.get("near_miss.correlation_threshold", 0.90)
        nm_ratio = t.get("near_miss.gate_overlap_ratio", 0.75)
        merge_corr = t.get("merge.min_correlation", 0.98)
        merge_ratio = t.get("merge.min_gate_overlap_ratio", 0.90)
        min_either = t.get("merge.min_on_either_rate", 0.05)
        max_mad = t.get("merge.max_mean_abs_diff", 0.03)

        if m["on_either_rate"] < min_either:
            return NearMissResult(False)

        r = m["pearson_correlation"]
        ratio = m["gate_overlap_ratio"]
        mad = m["mean_abs_diff"]

        high_corr = r is not None and nm_corr <= r < merge_corr
        high_ratio = nm_ratio <= ratio < merge_ratio

        reasons: List[str] = []
        if high_corr:
            reasons.append(f"correlation {r:.3f} (threshold: {merge_corr})")
        if high_ratio:
            reasons.append(
                f"gate overlap {ratio:.3f} (threshold: {merge_ratio})")

        if (not reasons and r is not None and r >= nm_corr
                and ratio >= nm_ratio
                and (mad is None or mad > max_mad)):
            mad_txt = "NaN" if mad is None else f"{mad:.3f}"
            reasons.append(f"mean abs diff {mad_txt} (threshold: {max_mad})")

        if not reasons:
            return NearMissResult(False)

        proximity = {
            "correlation": {
                "value": r,
                "near_miss_threshold": nm_corr,
                "merge_threshold": merge_corr,
                "met": high_corr or (r is not None and r >= merge_corr),
            },
            "gate_overlap_ratio": {
                "value": ratio,
                "near_miss_threshold": nm_ratio,
                "merge_threshold": merge_ratio,
                "met": high_ratio or ratio >= merge_ratio,
            },
            "on_either_rate": {
                "value": m["on_either_rate"],
                "threshold": min_either,
                "met": True,
            },
        }
        logger.debug(
            "OverlapClassifier: near-miss detected - %s", ", ".join(reasons))
        return NearMissResult(True, tuple(reasons), proximity)

    # ═══════════════════════════════════════════════════════════════
    # Legacy rule set
    # ═══════════════════════════════════════════════════════════════

    def _legacy_inputs(self, candidate_metrics, behavior_metrics) -> _LegacyInputs:
        cand = _as_mapping(candidate_metrics)
        behavior = _as_mapping(behavior_metrics)
        overlap = _as_mapping(behavior.get("gate_overlap"))
        intensity = _as_mapping(behavior.get("intensity"))
        pass_rates = _as_mapping(behavior.get("pass_rates"))

        on_either = _rate(overlap.get("on_either_rate"))
        on_both = _rate(overlap.get("on_both_rate"))
        co_pass = _opt(pass_rates.get("co_pass_count"))

        metrics: Dict[str, Any] = {
            "active_axis_overlap": _rate(cand.get("active_axis_overlap")),
            "sign_agreement": _rate(cand.get("sign_agreement")),
            "weight_cosine_similarity": _rate(
                cand.get("weight_cosine_similarity")),
            "on_either_rate": on_either,
            "on_both_rate": on_both,
            "p_only_rate": _rate(overlap.get("p_only_rate")),
            "q_only_rate": _rate(overlap.get("q_only_rate")),
            "gate_overlap_ratio": on_both / on_either if on_either > 0 else 0.0,
            "pearson_correlation": _opt(intensity.get("pearson_correlation")),
            "mean_abs_diff": _opt(intensity.get("mean_abs_diff")),
            "dominance_p": _rate(intensity.get("dominance_p")),
            "dominance_q": _rate(intensity.get("dominance_q")),
            "global_mean_abs_diff": _opt(intensity.get("global_mean_abs_diff")),
            "global_l2_distance": _opt(intensity.get("global_l2_distance")),
            "global_output_correlation": _opt(
                intensity.get("global_output_correlation")),
            "co_pass_count": None if co_pass is None else int(co_pass),
            "p_a_given_b": _opt(pass_rates.get("p_a_given_b")),
            "p_b_given_a": _opt(pass_rates.get("p_b_given_a")),
        }
        inputs = _LegacyInputs(
            metrics=metrics,
            pass_rates=pass_rates,
            gate_implication=behavior.get("gate_implication") or None,
            gate_parse_info=behavior.get("gate_parse_info") or None,
        )
        inputs.correlation = self._effective_correlation(metrics)
        metrics["effective_correlation"] = inputs.correlation.value
        metrics["correlation_source"] = inputs.correlation.source
        return inputs

    def _effective_correlation(self, m: Mapping[str, Any]) -> EffectiveCorrelation:
        """Pick the correlation the legacy rules compare against.

        Cascade: ``co_pass`` (high) when co-pass data is plentiful,
        ``global`` (medium) when it is sparse, ``combined`` (medium) when
        it is borderline, ``co_pass_sparse`` (low) when nothing better
        exists, else ``none``.
        """
        t = self._t
        cp = m["pearson_correlation"]
        g = m["global_output_correlation"]
        count = m["co_pass_count"]
        ratio = m["gate_overlap_ratio"]
        min_n = t["reliability.min_co_pass_samples"]
        min_ratio = t["reliability.min_co_pass_ratio"]

        if cp is not None and count is not None and count >= min_n and ratio >= min_ratio:
            return EffectiveCorrelation(cp, "co_pass", "high")

        borderline = (
            count is not None and count >= min_n / 2 and ratio >= min_ratio / 2)
        if g is not None and not borderline:
            return EffectiveCorrelation(g, "global", "medium")
        if borderline and cp is not None and g is not None:
            value = (t["reliability.co_pass_weight"] * cp
                     + t["reliability.global_weight"] * g)
            return EffectiveCorrelation(value, "combined", "medium")
        if cp is not None:
            return EffectiveCorrelation(cp, "co_pass_sparse", "low")
        if g is not None:
            return EffectiveCorrelation(g, "global", "medium")
        return EffectiveCorrelation(None, "none", "none")

    def _is_dead(self, m: Mapping[str, Any]) -> bool:
        return m["on_either_rate"] < self._t["merge.min_on_either_rate"]

    def _legacy_merge(self, inputs: _LegacyInputs) -> Optional[ClassificationEvidence]:
        m, t, ec = inputs.metrics, self._t, inputs.correlation
        if self._is_dead(m):
            return None
        if m["gate_overlap_ratio"] < t["merge.min_gate_overlap_ratio"]:
            return None

        r_min = (t["merge.min_global_correlation"] if ec.source == "global"
                 else t["merge.min_correlation"])
        if ec.value is None or ec.value < r_min:
            return None

        mad, gmad = m["mean_abs_diff"], m["global_mean_abs_diff"]
        gmad_max = t["merge.max_global_mean_abs_diff"]
        if mad is not None:
            if mad > t["merge.max_mean_abs_diff"]:
                return None
        elif gmad is None or gmad > gmad_max:
            return None
        if gmad is not None and gmad > gmad_max:
            return None

        dom = t["subsumption.min_dominance"]
        if m["dominance_p"] >= dom or m["dominance_q"] >= dom:
            return None
        return ClassificationEvidence(
            "merge_recommended",
            reason=(f"gate overlap {m['gate_overlap_ratio']:.3f}, "
                    f"correlation {ec.value:.3f} ({ec.source})"))

    def _legacy_subsumed(self, inputs: _LegacyInputs) -> Optional[ClassificationEvidence]:
        m, t, ec = inputs.metrics, self._t, inputs.correlation
        if self._is_dead(m):
            return None
        r_min = (t["subsumption.min_global_correlation"]
                 if ec.source == "global"
                 else t["subsumption.min_correlation"])
        if ec.value is None or ec.value < r_min:
            return None

        max_excl = t["subsumption.max_exclusive_rate"]
        dom = t["subsumption.min_dominance"]
        # dominance_p: share of co-pass trials where B out-fires A
        if m["p_only_rate"] <= max_excl and m["dominance_p"] >= dom:
            return ClassificationEvidence(
                "subsumed_recommended", subsumed_prototype="a",
                reason=f"a rarely fires alone, dominated {m['dominance_p']:.2f}")
        if m["q_only_rate"] <= max_excl and m["dominance_q"] >= dom:
            return ClassificationEvidence(
                "subsumed_recommended", subsumed_prototype="b",
                reason=f"b rarely fires alone, dominated {m['dominance_q']:.2f}")
        return None

    def _legacy_nesting(self, inputs: _LegacyInputs) -> _Nesting:
        """Deterministic nesting from gate implication, else behavioral."""
        imp = inputs.gate_implication
        info = _as_mapping(inputs.gate_parse_info)
        complete = (
            _as_mapping(info.get("prototype_a")).get("parse_status") == "complete"
            and _as_mapping(info.get("prototype_b")).get("parse_status") == "complete"
        )
        if (complete and imp and not imp.get("is_vacuous", False)
                and bool(imp.get("a_implies_b")) != bool(imp.get("b_implies_a"))):
            return _Nesting("a" if imp.get("a_implies_b") else "b", True)

        threshold = self._t["nesting.conditional_threshold"]
        p_ab = inputs.metrics["p_a_given_b"]
        p_ba = inputs.metrics["p_b_given_a"]
        if p_ab is None or p_ba is None:
            return _Nesting()
        # P(B|A) high means every A-firing is also a B-firing: A is narrower
        if p_ba >= threshold and p_ab < threshold:
            return _Nesting("a")
        if p_ab >= threshold and p_ba < threshold:
            return _Nesting("b")
        return _Nesting()

    def _legacy_convert(self, inputs: _LegacyInputs) -> Optional[ClassificationEvidence]:
        if not self.config.enable_convert_to_expression:
            return None
        if self._is_dead(inputs.metrics):
            return None
        # threat bounds only exist for fully parsed gates
        nesting = self._legacy_nesting(inputs)
        if not nesting.deterministic:
            return None
        narrower = nesting.narrower

        threat = next(
            (e for e in inputs.gate_implication.get("evidence") or []
             if e.get("axis") == "threat"),
            None)
        if threat is None:
            return None
        interval = _as_mapping(threat.get(f"interval_{narrower}"))
        upper = _opt(interval.get("upper"))
        max_upper = self._t["expression.max_threat_upper"]
        if upper is None or upper > max_upper:
            return None
        return ClassificationEvidence(
            "convert_to_expression", narrower_prototype=narrower,
            reason=f"{narrower} is nested with threat <= {upper:.2f}")

    def _legacy_nested(self, inputs: _LegacyInputs) -> Optional[ClassificationEvidence]:
        if self._is_dead(inputs.metrics):
            return None
        nesting = self._legacy_nesting(inputs)
        if not nesting.found:
            return None
        how = "gate implication" if nesting.deterministic else "conditional pass rates"
        return ClassificationEvidence(
            "nested_siblings", narrower_prototype=nesting.narrower,
            reason=f"{nesting.narrower} implies the other ({how})")

    def _legacy_separation(self, inputs: _LegacyInputs) -> Optional[ClassificationEvidence]:
        m, t = inputs.metrics, self._t
        if self._is_dead(m):
            return None
        if m["gate_overlap_ratio"] < t["separation.min_gate_overlap_ratio"]:
            return None

        threshold = t["nesting.conditional_threshold"]
        p_ab, p_ba = m["p_a_given_b"], m["p_b_given_a"]
        if p_ab is not None and p_ba is not None:
            if p_ab >= threshold or p_ba >= threshold:
                return None
        # implied gates are nested even when the sampled conditionals miss
        if self._legacy_nesting(inputs).deterministic:
            return None

        r = inputs.correlation.value
        if r is None or r < t["separation.min_correlation"]:
            return None
        mad = m["mean_abs_diff"]
        if mad is None or mad <= t["merge.max_mean_abs_diff"]:
            return None
        return ClassificationEvidence(
            "needs_separation",
            reason=f"correlated ({r:.3f}) but mean abs diff {mad:.3f}")

    # ═══════════════════════════════════════════════════════════════
    # Agreement rule set
    # ═══════════════════════════════════════════════════════════════

    def _agreement_inputs(
        self, candidate_metrics, behavior_metrics, agreement_metrics, profiles,
    ) -> Dict[str, Any]:
        behavior = _as_mapping(behavior_metrics)
        if agreement_metrics is None:
            agreement_metrics = behavior.get("agreement_metrics")
        agr = _as_mapping(agreement_metrics)

        if isinstance(profiles, Mapping):
            prof_a, prof_b = profiles.get("a"), profiles.get("b")
        elif isinstance(profiles, (list, tuple)) and len(profiles) == 2:
            prof_a, prof_b = profiles
        else:
            prof_a = prof_b = None
        prof_a, prof_b = _as_mapping(prof_a), _as_mapping(prof_b)

        cand = _as_mapping(candidate_metrics)
        metrics: Dict[str, Any] = {
            "active_axis_overlap": _rate(cand.get("active_axis_overlap")),
            "sign_agreement": _rate(cand.get("sign_agreement")),
            "weight_cosine_similarity": _rate(
                cand.get("weight_cosine_similarity")),
        }
        for key in (
            "mae_global", "mae_co_pass", "activation_jaccard",
            "p_a_given_b", "p_a_given_b_lower", "p_a_given_b_upper",
            "p_b_given_a", "p_b_given_a_lower", "p_b_given_a_upper",
            "pearson_co_pass", "pearson_global",
        ):
            metrics[key] = _opt(agr.get(key))
        metrics["correlation_reliable"] = bool(agr.get("correlation_reliable", False))
        metrics["gate_volume_a"] = _opt(prof_a.get("gate_volume"))
        metrics["gate_volume_b"] = _opt(prof_b.get("gate_volume"))
        metrics["expression_candidate_a"] = bool(
            prof_a.get("is_expression_candidate", False))
        metrics["expression_candidate_b"] = bool(
            prof_b.get("is_expression_candidate", False))

        available = bool(agr) and bool(prof_a) and bool(prof_b)
        if not available:
            logger.debug(
                "OverlapClassifier: agreement metrics or profiles missing, "
                "defaulting to keep_distinct")
        return {"metrics": metrics, "available": available}

    def _is_dead_profile(self, volume: Optional[float]) -> bool:
        return volume is None or volume < self._t["agreement.dead_gate_volume"]

    def _agreement_subsumption(self, m: Mapping[str, Any]) -> Optional[str]:
        """Side whose firing almost guarantees the other's, asymmetrically."""
        t = self._t
        ci_min = t["agreement.min_conditional_prob_ci_lower_for_nesting"]
        asym = t["agreement.asymmetry_required"]
        if (m["p_b_given_a_lower"] is not None and m["p_a_given_b"] is not None
                and m["p_b_given_a_lower"] >= ci_min
                and 1.0 - m["p_a_given_b"] >= asym):
            return "a"
        if (m["p_a_given_b_lower"] is not None and m["p_b_given_a"] is not None
                and m["p_a_given_b_lower"] >= ci_min
                and 1.0 - m["p_b_given_a"] >= asym):
            return "b"
        return None

    def _agreement_nesting(self, m: Mapping[str, Any]) -> Optional[str]:
        t = self._t
        ci_min = t["agreement.min_conditional_prob_ci_lower_for_nesting"]
        point_min = t["agreement.min_conditional_prob_for_nesting"]
        if (m["p_b_given_a_lower"] is not None and m["p_a_given_b"] is not None
                and m["p_b_given_a_lower"] >= ci_min
                and m["p_a_given_b"] < point_min):
            return "a"
        if (m["p_a_given_b_lower"] is not None and m["p_b_given_a"] is not None
                and m["p_a_given_b_lower"] >= ci_min
                and m["p_b_given_a"] < point_min):
            return "b"
        return None

    def _agreement_convert_side(self, m: Mapping[str, Any]) -> Optional[str]:
        if not self.config.enable_convert_to_expression:
            return None
        if self._agreement_nesting(m) is None:
            return None
        if self._agreement_subsumption(m) is not None:
            return None
        mae = m["mae_co_pass"]
        if mae is None or mae > self._t["agreement.max_mae_delta_for_expression"]:
            return None
        va, vb = m["gate_volume_a"], m["gate_volume_b"]
        if va is None or vb is None:
            return None
        narrower = "a" if va <= vb else "b"
        if not m[f"expression_candidate_{narrower}"]:
            return None
        return narrower

    def _agreement_merge(self, inputs: Mapping[str, Any]) -> Optional[ClassificationEvidence]:
        m, t = inputs["metrics"], self._t
        if (self._is_dead_profile(m["gate_volume_a"])
                or self._is_dead_profile(m["gate_volume_b"])):
            return None
        mae, jac = m["mae_global"], m["activation_jaccard"]
        p_ab, p_ba = m["p_a_given_b"], m["p_b_given_a"]
        if mae is None or mae > t["agreement.max_mae_global_for_merge"]:
            return None
        if jac is None or jac < t["agreement.min_activation_jaccard_for_merge"]:
            return None
        if p_ab is None or p_ba is None:
            return None
        if abs(p_ab - p_ba) > t["agreement.symmetry_tolerance"]:
            return None
        return ClassificationEvidence(
            "merge_recommended",
            reason=f"jaccard {jac:.3f}, global MAE {mae:.3f}, symmetric")

    def _agreement_subsumed(self, inputs: Mapping[str, Any]) -> Optional[ClassificationEvidence]:
        side = self._agreement_subsumption(inputs["metrics"])
        if side is None:
            return None
        return ClassificationEvidence(
            "subsumed_recommended", subsumed_prototype=side,
            reason=f"{side} firing implies the other (CI lower bound)")

    def _agreement_convert(self, inputs: Mapping[str, Any]) -> Optional[ClassificationEvidence]:
        side = self._agreement_convert_side(inputs["metrics"])
        if side is None:
            return None
        return ClassificationEvidence(
            "convert_to_expression", narrower_prototype=side,
            reason=f"{side} is a narrow, focused expression candidate")

    def _agreement_nested(self, inputs: Mapping[str, Any]) -> Optional[ClassificationEvidence]:
        m = inputs["metrics"]
        side = self._agreement_nesting(m)
        if side is None:
            return None
        if self._agreement_subsumption(m) is not None:
            return None
        if self._agreement_convert_side(m) is not None:
            return None
        return ClassificationEvidence(
            "nested_siblings", narrower_prototype=side,
            reason=f"{side} implies the other without full asymmetry")

    def _agreement_separation(self, inputs: Mapping[str, Any]) -> Optional[ClassificationEvidence]:
        m, t = inputs["metrics"], self._t
        jac = m["activation_jaccard"]
        if jac is None or jac < t["agreement.min_gate_overlap_for_separation"]:
            return None
        if self._agreement_nesting(m) is not None:
            return None
        r = m["pearson_co_pass"] if m["correlation_reliable"] else m["pearson_global"]
        if r is None or r < t["agreement.min_correlation_for_separation"]:
            return None
        mae = m["mae_co_pass"]
        if mae is None or mae <= t["agreement.max_mae_co_pass_for_merge"]:
            return None
        return ClassificationEvidence(
            "needs_separation",
            reason=f"correlated ({r:.3f}) but co-pass MAE {mae:.3f}")
