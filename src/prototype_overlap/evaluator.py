"""Behavioral overlap evaluation by Monte-Carlo sampling.

For one prototype pair the evaluator draws ``sample_count`` independent
simulation states, builds a normalized context for each, and records:

* which gates pass (either / both / exclusive counts)
* both intensities on co-pass trials (correlation, MAE, RMSE,
  within-ε share, intensity dominance)
* both *gated* intensities on every trial, a failing prototype
  contributing 0 (global MAE, L2 distance, correlation)
* high-intensity co-activation at a few fixed intensity levels
* the K co-pass trials where the two intensities diverge most

Co-pass statistics suffer from selection bias: two prototypes that
rarely fire together can still correlate almost perfectly on the few
trials where they do.  The global statistics are computed over the
same trial set precisely to correct for that, and they stay numeric no
matter how sparse co-passing is.

Guardrails
----------
* ``co_pass_count < evaluator.min_co_pass_samples`` → every co-pass
  intensity metric is ``NaN`` (never a misleading 0).
* pass count below ``evaluator.min_pass_samples_for_conditional`` →
  the corresponding conditional probability is ``NaN``.

Usage
-----
>>> ev = BehavioralOverlapEvaluator(
...     random_state_generator=gen, context_builder=builder,
...     gate_checker=checker, intensity_calculator=calc)
>>> m = ev.evaluate(joy, delight, sample_count=4000)
>>> m.gate_overlap.gate_overlap_ratio, m.intensity.global_mean_abs_diff
>>> m.to_dict()                      # feeds OverlapClassifier.classify
"""

from __future__ import annotations

import heapq
import itertools
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .agreement import AgreementMetrics, AgreementMetricsCalculator, OutputVector
from .axes import AFFECT_TRAIT_AXES, MOOD_AXES, SEXUAL_AXES
from .collaborators import (
    ContextBuilder,
    GateConstraintExtractor,
    GateImplicationEvaluator,
    Prototype,
    PrototypeGateChecker,
    PrototypeIntensityCalculator,
    RandomStateGenerator,
)
from .errors import ConfigurationError, GateParseError
from .gates import GateConstraint
from .statistics import (
    clamp01,
    is_finite_number,
    mean_abs_diff,
    pearson,
    rmse,
    wilson_interval,
)
from .thresholds import (
    DEFAULT_EVALUATOR_THRESHOLDS,
    DEFAULT_HIGH_THRESHOLDS,
    ThresholdRegistry,
)

__all__ = [
    "GateOverlap",
    "IntensityMetrics",
    "PassRates",
    "ThresholdCoactivation",
    "DivergenceExample",
    "GateParseSummary",
    "BehavioralMetrics",
    "BehavioralOverlapEvaluator",
]

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════
# Result records
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class GateOverlap:
    """Gate-firing rates as fractions of all trials."""

    on_either_rate: float = 0.0
    on_both_rate: float = 0.0
    p_only_rate: float = 0.0
    q_only_rate: float = 0.0

    @property
    def gate_overlap_ratio(self) -> float:
        """``on_both / on_either`` in ``[0, 1]`` (0 when nothing fired)."""
        if self.on_either_rate <= 0:
            return 0.0
        return self.on_both_rate / self.on_either_rate

    def to_dict(self) -> Dict[str, float]:
        return {
            "on_either_rate": self.on_either_rate,
            "on_both_rate": self.on_both_rate,
            "p_only_rate": self.p_only_rate,
            "q_only_rate": self.q_only_rate,
        }


@dataclass(frozen=True)
class IntensityMetrics:
    """Co-pass and global intensity similarity.

    ``dominance_p`` is the share of co-pass trials in which B's
    intensity exceeds A's by more than ``dominance_delta``, i.e. how
    strongly A (P) is dominated; ``dominance_q`` is the mirror image.
    """

    pearson_correlation: float = math.nan
    mean_abs_diff: float = math.nan
    rmse: float = math.nan
    pct_within_eps: float = math.nan
    dominance_p: float = 0.0
    dominance_q: float = 0.0
    global_mean_abs_diff: float = math.nan
    global_l2_distance: float = math.nan
    global_output_correlation: float = math.nan

    def to_dict(self) -> Dict[str, float]:
        return {
            "pearson_correlation": self.pearson_correlation,
            "mean_abs_diff": self.mean_abs_diff,
            "rmse": self.rmse,
            "pct_within_eps": self.pct_within_eps,
            "dominance_p": self.dominance_p,
            "dominance_q": self.dominance_q,
            "global_mean_abs_diff": self.global_mean_abs_diff,
            "global_l2_distance": self.global_l2_distance,
            "global_output_correlation": self.global_output_correlation,
        }


@dataclass(frozen=True)
class PassRates:
    """Per-prototype pass rates and conditional probabilities."""

    pass_a_rate: float = 0.0
    pass_b_rate: float = 0.0
    p_a_given_b: float = math.nan
    p_a_given_b_lower: float = 0.0
    p_a_given_b_upper: float = 1.0
    p_b_given_a: float = math.nan
    p_b_given_a_lower: float = 0.0
    p_b_given_a_upper: float = 1.0
    co_pass_count: int = 0
    pass_a_count: int = 0
    pass_b_count: int = 0

    def to_dict(self) -> Dict[str, float]:
        return {
            "pass_a_rate": self.pass_a_rate,
            "pass_b_rate": self.pass_b_rate,
            "p_a_given_b": self.p_a_given_b,
            "p_a_given_b_lower": self.p_a_given_b_lower,
            "p_a_given_b_upper": self.p_a_given_b_upper,
            "p_b_given_a": self.p_b_given_a,
            "p_b_given_a_lower": self.p_b_given_a_lower,
            "p_b_given_a_upper": self.p_b_given_a_upper,
            "co_pass_count": self.co_pass_count,
            "pass_a_count": self.pass_a_count,
            "pass_b_count": self.pass_b_count,
        }


@dataclass(frozen=True)
class ThresholdCoactivation:
    """High-intensity co-activation at one intensity level *t*.

    All rates except ``high_jaccard`` are over "either passes" trials.
    """

    t: float
    p_high_a: float
    p_high_b: float
    p_high_both: float
    high_jaccard: float
    high_agreement: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "t": self.t,
            "p_high_a": self.p_high_a,
            "p_high_b": self.p_high_b,
            "p_high_both": self.p_high_both,
            "high_jaccard": self.high_jaccard,
            "high_agreement": self.high_agreement,
        }


@dataclass(frozen=True)
class DivergenceExample:
    """One co-pass trial where the intensities disagree strongly."""

    context: Mapping[str, Any]
    intensity_a: float
    intensity_b: float
    abs_diff: float
    context_summary: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "context": dict(self.context),
            "intensity_a": self.intensity_a,
            "intensity_b": self.intensity_b,
            "abs_diff": self.abs_diff,
            "context_summary": self.context_summary,
        }


@dataclass(frozen=True)
class GateParseSummary:
    """How much of one prototype's gate list static analysis understood."""

    parse_status: str
    parsed_gate_count: int
    total_gate_count: int
    unparsed_gates: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "parse_status": self.parse_status,
            "parsed_gate_count": self.parsed_gate_count,
            "total_gate_count": self.total_gate_count,
            "unparsed_gates": list(self.unparsed_gates),
        }


@dataclass(frozen=True)
class BehavioralMetrics:
    """Everything the evaluator learned about one pair.

    ``high_coactivation``, ``gate_implication`` and ``gate_parse_info``
    are ``None`` when unavailable (vector mode, or no static analysis
    collaborators).  ``agreement_metrics`` is only set in vector mode.
    """

    gate_overlap: GateOverlap
    intensity: IntensityMetrics
    pass_rates: PassRates
    sample_count: int
    divergence_examples: Tuple[DivergenceExample, ...] = ()
    high_coactivation: Optional[Tuple[ThresholdCoactivation, ...]] = None
    gate_implication: Optional[Mapping[str, Any]] = None
    gate_parse_info: Optional[Dict[str, GateParseSummary]] = None
    agreement_metrics: Optional[AgreementMetrics] = None

    def to_dict(self) -> Dict[str, Any]:
        """Nested plain-dict form consumed by the classifier."""
        return {
            "gate_overlap": self.gate_overlap.to_dict(),
            "intensity": self.intensity.to_dict(),
            "pass_rates": self.pass_rates.to_dict(),
            "sample_count": self.sample_count,
            "divergence_examples": [
                d.to_dict() for d in self.divergence_examples],
            "high_coactivation": (
                None if self.high_coactivation is None
                else [h.to_dict() for h in self.high_coactivation]),
            "gate_implication": (
                None if self.gate_implication is None
                else dict(self.gate_implication)),
            "gate_parse_info": (
                None if self.gate_parse_info is None
                else {k: v.to_dict() for k, v in self.gate_parse_info.items()}),
            "agreement_metrics": (
                None if self.agreement_metrics is None
                else self.agreement_metrics.to_dict()),
        }

    def summary(self) -> str:
        ov = self.gate_overlap
        r = self.intensity.pearson_correlation
        r_txt = "NaN" if math.isnan(r) else f"{r:.3f}"
        return (
            f"n={self.sample_count} either={ov.on_either_rate:.3f} "
            f"both={ov.on_both_rate:.3f} ratio={ov.gate_overlap_ratio:.3f} "
            f"r={r_txt} "
            f"gMAD={self.intensity.global_mean_abs_diff:.4f}"
        )


# ═══════════════════════════════════════════════════════════════════
# Accumulator for one evaluate() call
# ═══════════════════════════════════════════════════════════════════

@dataclass
class _HighCounter:
    t: float
    high_a: int = 0
    high_b: int = 0
    high_both: int = 0
    either_high: int = 0
    agreement: int = 0


@dataclass
class _Tally:
    either: int = 0
    both: int = 0
    p_only: int = 0
    q_only: int = 0
    dominance_p: int = 0
    dominance_q: int = 0
    co_a: List[float] = field(default_factory=list)
    co_b: List[float] = field(default_factory=list)
    global_a: List[float] = field(default_factory=list)
    global_b: List[float] = field(default_factory=list)
    global_abs_sum: float = 0.0
    global_sq_sum: float = 0.0
    high: List[_HighCounter] = field(default_factory=list)
    # min-heap of (abs_diff, seq, example)
    heap: List[Tuple[float, int, DivergenceExample]] = field(
        default_factory=list)


# ═══════════════════════════════════════════════════════════════════
# BehavioralOverlapEvaluator
# ═══════════════════════════════════════════════════════════════════

_REQUIRED_KEYS = (
    "evaluator.sample_count_per_pair",
    "evaluator.divergence_examples_k",
    "evaluator.dominance_delta",
)


class BehavioralOverlapEvaluator:
    """Monte-Carlo pairwise gate/intensity comparison.

    Parameters
    ----------
    random_state_generator : RandomStateGenerator
    context_builder : ContextBuilder
    gate_checker : PrototypeGateChecker
    intensity_calculator : PrototypeIntensityCalculator
    gate_constraint_extractor : GateConstraintExtractor, optional
        Static gate analysis; without it ``gate_parse_info`` and
        ``gate_implication`` are ``None``.
    gate_implication_evaluator : GateImplicationEvaluator, optional
    agreement_calculator : AgreementMetricsCalculator, optional
        Required only for :meth:`evaluate_vectors`.
    thresholds : ThresholdRegistry, optional
        ``evaluator.*`` keys.  Defaults to
        :data:`DEFAULT_EVALUATOR_THRESHOLDS`.
    high_thresholds : sequence of float, optional
        Intensity levels for high co-activation tracking.

    Raises
    ------
    ConfigurationError
        If a required ``evaluator.*`` key is missing or non-numeric.
    """

    def __init__(
        self,
        random_state_generator: RandomStateGenerator,
        context_builder: ContextBuilder,
        gate_checker: PrototypeGateChecker,
        intensity_calculator: PrototypeIntensityCalculator,
        *,
        gate_constraint_extractor: Optional[GateConstraintExtractor] = None,
        gate_implication_evaluator: Optional[GateImplicationEvaluator] = None,
        agreement_calculator: Optional[AgreementMetricsCalculator] = None,
        thresholds: Optional[ThresholdRegistry] = None,
        high_thresholds: Sequence[float] = DEFAULT_HIGH_THRESHOLDS,
    ):
        reg = thresholds if thresholds is not None else DEFAULT_EVALUATOR_THRESHOLDS
        for key in _REQUIRED_KEYS:
            value = reg.get(key, None)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                logger.error(
                    "BehavioralOverlapEvaluator: missing or invalid "
                    "config %s (expected number, got %r)", key, value)
                raise ConfigurationError(
                    f"BehavioralOverlapEvaluator config requires numeric {key}")
        for t in high_thresholds:
            if not is_finite_number(t) or not 0 < t < 1:
                raise ConfigurationError(
                    f"high_thresholds values must be in (0, 1), got {t!r}")

        self.random_state_generator = random_state_generator
        self.context_builder = context_builder
        self.gate_checker = gate_checker
        self.intensity_calculator = intensity_calculator
        self.gate_constraint_extractor = gate_constraint_extractor
        self.gate_implication_evaluator = gate_implication_evaluator
        self.agreement_calculator = agreement_calculator
        self.thresholds = reg
        self.high_thresholds = tuple(float(t) for t in high_thresholds)

    # ── public API ──────────────────────────────────────────────

    def resolve_sample_count(self, sample_count) -> int:
        """Validate a requested sample count.

        Non-numeric, non-finite or ``< 1`` requests fall back to
        ``evaluator.sample_count_per_pair``; others are floored.
        """
        if not is_finite_number(sample_count) or sample_count < 1:
            return int(self.thresholds["evaluator.sample_count_per_pair"])
        return int(math.floor(sample_count))

    def evaluate(
        self,
        prototype_a: Prototype,
        prototype_b: Prototype,
        sample_count: Optional[int] = None,
    ) -> BehavioralMetrics:
        """Run the Monte-Carlo comparison for one pair.

        Parameters
        ----------
        prototype_a, prototype_b : Prototype
            Mappings with ``weights`` and ``gates``.
        sample_count : int, optional
            Number of trials; see :meth:`resolve_sample_count`.

        Returns
        -------
        BehavioralMetrics
        """
        n = self.resolve_sample_count(sample_count)
        reg = self.thresholds
        k = int(reg["evaluator.divergence_examples_k"])
        delta = reg["evaluator.dominance_delta"]
        relevant_axes = _relevant_axes(prototype_a, prototype_b)

        tally = _Tally(high=[_HighCounter(t) for t in self.high_thresholds])
        seq = itertools.count()

        for _ in range(n):
            state = self.random_state_generator.generate()
            context = self.context_builder.build_context(
                state.get("current"),
                state.get("previous"),
                state.get("affect_traits"),
            )
            pass_a = bool(self.gate_checker.check_all_gates_pass(prototype_a, context))
            pass_b = bool(self.gate_checker.check_all_gates_pass(prototype_b, context))

            out_a = (
                float(self.intensity_calculator.compute_intensity(prototype_a, context))
                if pass_a else 0.0)
            out_b = (
                float(self.intensity_calculator.compute_intensity(prototype_b, context))
                if pass_b else 0.0)

            tally.global_a.append(out_a)
            tally.global_b.append(out_b)
            diff = out_a - out_b
            tally.global_abs_sum += abs(diff)
            tally.global_sq_sum += diff * diff

            if pass_a or pass_b:
                tally.either += 1
                for hc in tally.high:
                    high_a = out_a >= hc.t
                    high_b = out_b >= hc.t
                    hc.high_a += high_a
                    hc.high_b += high_b
                    hc.high_both += high_a and high_b
                    hc.either_high += high_a or high_b
                    hc.agreement += high_a == high_b

            if pass_a and pass_b:
                tally.both += 1
                tally.co_a.append(out_a)
                tally.co_b.append(out_b)
                if out_b > out_a + delta:
                    tally.dominance_p += 1
                if out_a > out_b + delta:
                    tally.dominance_q += 1
                if k > 0:
                    self._push_divergence(
                        tally.heap, k, next(seq), context, out_a, out_b,
                        relevant_axes)
            elif pass_a:
                tally.p_only += 1
            elif pass_b:
                tally.q_only += 1

        metrics = self._assemble(prototype_a, prototype_b, n, tally)
        logger.debug(
            "BehavioralOverlapEvaluator: completed %d samples, "
            "on_both_rate=%.4f, correlation=%s, gate_implication=%s",
            n,
            metrics.gate_overlap.on_both_rate,
            _fmt_nan(metrics.intensity.pearson_correlation),
            (metrics.gate_implication or {}).get("relation", "none"),
        )
        return metrics

    def evaluate_vectors(
        self,
        prototype_a: Prototype,
        prototype_b: Prototype,
        vector_a: OutputVector,
        vector_b: OutputVector,
    ) -> BehavioralMetrics:
        """Derive behavioral metrics from pre-computed output vectors.

        Intended for large prototype sets where every prototype is
        evaluated once against a shared context pool.  Dominance,
        ``pct_within_eps``, divergence examples and static gate analysis
        need per-trial data and are not reported in this mode.

        Raises
        ------
        ConfigurationError
            If no :class:`AgreementMetricsCalculator` was supplied.
        """
        if self.agreement_calculator is None:
            raise ConfigurationError(
                "BehavioralOverlapEvaluator: agreement_calculator required "
                "for vector-based evaluation")
        agreement = self.agreement_calculator.calculate(vector_a, vector_b)
        n = agreement.sample_count
        n_a, n_b = agreement.pass_a_count, agreement.pass_b_count
        n_both = agreement.co_pass_count
        min_cond = self.thresholds.get(
            "evaluator.min_pass_samples_for_conditional", 200)

        def rate(count: int) -> float:
            return count / n if n > 0 else 0.0

        gate_overlap = GateOverlap(
            on_either_rate=rate(agreement.either_count),
            on_both_rate=rate(n_both),
            p_only_rate=rate(n_a - n_both),
            q_only_rate=rate(n_b - n_both),
        )
        intensity = IntensityMetrics(
            pearson_correlation=agreement.pearson_co_pass,
            mean_abs_diff=agreement.mae_co_pass,
            rmse=agreement.rmse_co_pass,
            pct_within_eps=math.nan,
            dominance_p=0.0,
            dominance_q=0.0,
            global_mean_abs_diff=agreement.mae_global,
            global_l2_distance=agreement.rmse_global,
            global_output_correlation=agreement.pearson_global,
        )
        pass_rates = PassRates(
            pass_a_rate=rate(n_a),
            pass_b_rate=rate(n_b),
            p_a_given_b=agreement.p_a_given_b if n_b >= min_cond else math.nan,
            p_a_given_b_lower=agreement.p_a_given_b_lower,
            p_a_given_b_upper=agreement.p_a_given_b_upper,
            p_b_given_a=agreement.p_b_given_a if n_a >= min_cond else math.nan,
            p_b_given_a_lower=agreement.p_b_given_a_lower,
            p_b_given_a_upper=agreement.p_b_given_a_upper,
            co_pass_count=n_both,
            pass_a_count=n_a,
            pass_b_count=n_b,
        )
        logger.debug(
            "BehavioralOverlapEvaluator: evaluated %d samples via vectors, "
            "on_both_rate=%.4f, correlation=%s",
            n, gate_overlap.on_both_rate,
            _fmt_nan(intensity.pearson_correlation))
        return BehavioralMetrics(
            gate_overlap=gate_overlap,
            intensity=intensity,
            pass_rates=pass_rates,
            sample_count=n,
            agreement_metrics=agreement,
        )

    # ── internals ───────────────────────────────────────────────

    def _push_divergence(
        self,
        heap: List[Tuple[float, int, DivergenceExample]],
        k: int,
        seq: int,
        context: Mapping[str, Any],
        out_a: float,
        out_b: float,
        relevant_axes: Sequence[str],
    ) -> None:
        abs_diff = abs(out_a - out_b)
        if len(heap) >= k and abs_diff <= heap[0][0]:
            return
        example = DivergenceExample(
            context=context,
            intensity_a=out_a,
            intensity_b=out_b,
            abs_diff=abs_diff,
            context_summary=format_context_summary(context, relevant_axes),
        )
        if len(heap) < k:
            heapq.heappush(heap, (abs_diff, seq, example))
        else:
            heapq.heapreplace(heap, (abs_diff, seq, example))

    def _assemble(
        self,
        prototype_a: Prototype,
        prototype_b: Prototype,
        n: int,
        tally: _Tally,
    ) -> BehavioralMetrics:
        reg = self.thresholds
        min_co_pass = reg.get("evaluator.min_co_pass_samples", 1)
        eps = reg.get("evaluator.intensity_eps", 0.05)
        min_cond = reg.get("evaluator.min_pass_samples_for_conditional", 200)
        conf = reg.get("evaluator.confidence_level", 0.95)

        def rate(count: int) -> float:
            return count / n if n > 0 else 0.0

        gate_overlap = GateOverlap(
            on_either_rate=rate(tally.either),
            on_both_rate=rate(tally.both),
            p_only_rate=rate(tally.p_only),
            q_only_rate=rate(tally.q_only),
        )

        joint = tally.both
        r = mad = err = within = math.nan
        if joint >= min_co_pass and joint > 0:
            r = pearson(tally.co_a, tally.co_b)
            mad = mean_abs_diff(tally.co_a, tally.co_b)
            err = rmse(tally.co_a, tally.co_b)
            within = sum(
                1 for a, b in zip(tally.co_a, tally.co_b)
                if abs(a - b) <= eps) / joint

        intensity = IntensityMetrics(
            pearson_correlation=r,
            mean_abs_diff=mad,
            rmse=err,
            pct_within_eps=within,
            dominance_p=tally.dominance_p / joint if joint else 0.0,
            dominance_q=tally.dominance_q / joint if joint else 0.0,
            global_mean_abs_diff=tally.global_abs_sum / n if n else math.nan,
            global_l2_distance=(
                math.sqrt(tally.global_sq_sum / n) if n else math.nan),
            global_output_correlation=pearson(tally.global_a, tally.global_b),
        )

        n_a = tally.both + tally.p_only
        n_b = tally.both + tally.q_only
        a_lo, a_hi = wilson_interval(tally.both, n_b, conf)
        b_lo, b_hi = wilson_interval(tally.both, n_a, conf)
        pass_rates = PassRates(
            pass_a_rate=rate(n_a),
            pass_b_rate=rate(n_b),
            p_a_given_b=tally.both / n_b if n_b >= min_cond and n_b else math.nan,
            p_a_given_b_lower=a_lo,
            p_a_given_b_upper=a_hi,
            p_b_given_a=tally.both / n_a if n_a >= min_cond and n_a else math.nan,
            p_b_given_a_lower=b_lo,
            p_b_given_a_upper=b_hi,
            co_pass_count=tally.both,
            pass_a_count=n_a,
            pass_b_count=n_b,
        )

        either = tally.either
        high = tuple(
            ThresholdCoactivation(
                t=hc.t,
                p_high_a=hc.high_a / either if either else 0.0,
                p_high_b=hc.high_b / either if either else 0.0,
                p_high_both=hc.high_both / either if either else 0.0,
                high_jaccard=(
                    hc.high_both / hc.either_high if hc.either_high else 0.0),
                high_agreement=hc.agreement / either if either else 0.0,
            )
            for hc in tally.high
        )

        examples = tuple(
            ex for _, _, ex in sorted(
                tally.heap, key=lambda item: (-item[0], item[1])))

        gate_implication, parse_info = self._static_analysis(
            prototype_a, prototype_b)

        return BehavioralMetrics(
            gate_overlap=gate_overlap,
            intensity=intensity,
            pass_rates=pass_rates,
            sample_count=n,
            divergence_examples=examples,
            high_coactivation=high,
            gate_implication=gate_implication,
            gate_parse_info=parse_info,
        )

    def _static_analysis(
        self,
        prototype_a: Prototype,
        prototype_b: Prototype,
    ) -> Tuple[Optional[Mapping[str, Any]], Optional[Dict[str, GateParseSummary]]]:
        extractor = self.gate_constraint_extractor
        if extractor is None:
            return None, None
        extracted_a = extractor.extract(prototype_a)
        extracted_b = extractor.extract(prototype_b)

        info = {
            "prototype_a": _parse_summary(prototype_a, extracted_a),
            "prototype_b": _parse_summary(prototype_b, extracted_b),
        }

        implication = None
        if (self.gate_implication_evaluator is not None
                and info["prototype_a"].parse_status == "complete"
                and info["prototype_b"].parse_status == "complete"):
            implication = self.gate_implication_evaluator.evaluate(
                extracted_a.get("intervals"), extracted_b.get("intervals"))
        return implication, info


# ═══════════════════════════════════════════════════════════════════
# Context summaries
# ═══════════════════════════════════════════════════════════════════

def _parse_summary(
    prototype: Prototype,
    extracted: Mapping[str, Any],
) -> GateParseSummary:
    gates = list(prototype.get("gates") or [])
    unparsed = tuple(extracted.get("unparsed_gates") or ())
    return GateParseSummary(
        parse_status=extracted.get("parse_status", "failed"),
        parsed_gate_count=len(gates) - len(unparsed),
        total_gate_count=len(gates),
        unparsed_gates=unparsed,
    )


def _relevant_axes(*prototypes: Prototype) -> List[str]:
    """Axes named by the weights or gates of any of *prototypes*."""
    seen: Dict[str, None] = {}
    for proto in prototypes:
        for axis in (proto.get("weights") or {}):
            seen.setdefault(axis, None)
        for gate in proto.get("gates") or []:
            try:
                seen.setdefault(GateConstraint.parse(gate).axis_name, None)
            except GateParseError:
                continue
    return list(seen)


def _resolve_context_value(context: Mapping[str, Any], axis: str):
    if axis in MOOD_AXES:
        mood = context.get("mood_axes") or context.get("mood") or {}
        return mood.get(axis)
    if axis in AFFECT_TRAIT_AXES:
        return (context.get("affect_traits") or {}).get(axis)
    if axis == "sexual_arousal":
        return context.get("sexual_arousal")
    if axis in SEXUAL_AXES:
        sexual = context.get("sexual_axes") or context.get("sexual") or {}
        return sexual.get(axis)
    return None


def _display_value(axis: str, raw: float) -> float:
    """Map a raw context value onto [0, 1] for display."""
    if axis in MOOD_AXES:
        return clamp01((raw + 100) / 200)
    if axis == "sexual_arousal":
        return clamp01(raw)
    if axis == "baseline_libido":
        return clamp01((raw + 50) / 100)
    if axis in AFFECT_TRAIT_AXES or axis in SEXUAL_AXES:
        return clamp01(raw / 100)
    return raw


def format_context_summary(
    context: Mapping[str, Any],
    relevant_axes: Sequence[str],
) -> str:
    """``"arousal: 0.70, valence: 0.35"`` for the three largest axes.

    Only axes used by the compared prototypes are considered; they are
    ranked by raw magnitude.  Returns ``""`` when nothing is resolvable.
    """
    if not isinstance(context, Mapping):
        return ""
    entries = []
    for axis in relevant_axes:
        value = _resolve_context_value(context, axis)
        if is_finite_number(value):
            entries.append((axis, float(value)))
    entries.sort(key=lambda e: abs(e[1]), reverse=True)
    return ", ".join(
        f"{axis}: {_display_value(axis, value):.2f}"
        for axis, value in entries[:3])


def _fmt_nan(value: float) -> str:
    return "NaN" if math.isnan(value) else f"{value:.4f}"
