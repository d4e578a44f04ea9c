"""Agreement metrics over pre-computed prototype output vectors.

The Monte-Carlo evaluator answers "how often do the two gates fire
together and how similar are the intensities?".  The agreement
calculator answers the same question over a *fixed* shared context
pool, which lets many pairs reuse one set of per-prototype output
vectors, and attaches Wilson confidence bounds so that the V3
classifier can reason about certainty rather than point estimates.

An :class:`OutputVector` holds one prototype's gate outcome and raw
intensity for every context in the pool.  For global statistics a
failing prototype's intensity counts as 0, exactly as in the
evaluator.

Usage
-----
>>> calc = AgreementMetricsCalculator()
>>> va = compute_output_vector(proto_a, contexts, checker, intensity_calc)
>>> vb = compute_output_vector(proto_b, contexts, checker, intensity_calc)
>>> m = calc.calculate(va, vb)
>>> m.activation_jaccard, m.p_b_given_a_lower, m.correlation_reliable
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping, Optional, Sequence

import numpy as np

from .collaborators import (
    Prototype,
    PrototypeGateChecker,
    PrototypeIntensityCalculator,
)
from .errors import ConfigurationError
from .statistics import jaccard, mean_abs_diff, pearson, rmse, wilson_interval
from .thresholds import DEFAULT_AGREEMENT_THRESHOLDS, ThresholdRegistry

__all__ = [
    "OutputVector",
    "AgreementMetrics",
    "AgreementMetricsCalculator",
    "compute_output_vector",
]

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════
# OutputVector
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class OutputVector:
    """Per-context gate results and intensities for one prototype."""

    gate_results: np.ndarray
    intensities: np.ndarray

    def __post_init__(self):
        gates = np.asarray(self.gate_results, dtype=bool)
        values = np.asarray(self.intensities, dtype=float)
        if gates.shape != values.shape:
            raise ConfigurationError(
                f"OutputVector length mismatch: {gates.size} gate results "
                f"vs {values.size} intensities")
        object.__setattr__(self, "gate_results", gates)
        object.__setattr__(self, "intensities", values)

    def __len__(self) -> int:
        return int(self.gate_results.size)

    @property
    def pass_rate(self) -> float:
        """Fraction of contexts where the gates pass (gate volume)."""
        if self.gate_results.size == 0:
            return 0.0
        return float(self.gate_results.mean())

    @property
    def gated_intensities(self) -> np.ndarray:
        """Intensities with failing contexts zeroed."""
        return np.where(self.gate_results, self.intensities, 0.0)


def compute_output_vector(
    prototype: Prototype,
    contexts: Sequence[Mapping[str, Any]],
    gate_checker: PrototypeGateChecker,
    intensity_calculator: PrototypeIntensityCalculator,
) -> OutputVector:
    """Evaluate *prototype* on every context of a shared pool."""
    gates = np.empty(len(contexts), dtype=bool)
    values = np.zeros(len(contexts), dtype=float)
    for i, ctx in enumerate(contexts):
        passed = bool(gate_checker.check_all_gates_pass(prototype, ctx))
        gates[i] = passed
        if passed:
            values[i] = float(intensity_calculator.compute_intensity(prototype, ctx))
    return OutputVector(gates, values)


# ═══════════════════════════════════════════════════════════════════
# AgreementMetrics
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class AgreementMetrics:
    """Agreement summary for one prototype pair.

    Co-pass fields (``mae_co_pass``, ``rmse_co_pass``,
    ``pearson_co_pass``) are ``NaN`` when the two gates never fire
    together; ``pearson_*`` is also ``NaN`` for constant series.
    """

    mae_co_pass: float
    rmse_co_pass: float
    mae_global: float
    rmse_global: float
    activation_jaccard: float
    p_a_given_b: float
    p_a_given_b_lower: float
    p_a_given_b_upper: float
    p_b_given_a: float
    p_b_given_a_lower: float
    p_b_given_a_upper: float
    pearson_co_pass: float
    pearson_global: float
    co_pass_count: int
    pass_a_count: int
    pass_b_count: int
    either_count: int
    sample_count: int
    correlation_reliable: bool

    @property
    def co_pass_ratio(self) -> float:
        if self.either_count == 0:
            return 0.0
        return self.co_pass_count / self.either_count

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def summary(self) -> str:
        return (
            f"J={self.activation_jaccard:.3f} "
            f"P(A|B)={self.p_a_given_b:.3f} P(B|A)={self.p_b_given_a:.3f} "
            f"MAE_global={self.mae_global:.4f} "
            f"n_co={self.co_pass_count}"
            f"{'' if self.correlation_reliable else ' (unreliable r)'}"
        )


# ═══════════════════════════════════════════════════════════════════
# AgreementMetricsCalculator
# ═══════════════════════════════════════════════════════════════════

_REQUIRED_KEYS = (
    "agreement.confidence_level",
    "agreement.min_samples_for_reliable_correlation",
    "agreement.min_co_pass_ratio_for_reliable",
    "agreement.jaccard_empty_set_value",
)


class AgreementMetricsCalculator:
    """Compute :class:`AgreementMetrics` from two output vectors.

    Parameters
    ----------
    thresholds : ThresholdRegistry, optional
        Registry providing the ``agreement.*`` guardrail keys.

    Raises
    ------
    ConfigurationError
        If a required key is missing or non-numeric.
    """

    def __init__(self, thresholds: Optional[ThresholdRegistry] = None):
        reg = thresholds if thresholds is not None else DEFAULT_AGREEMENT_THRESHOLDS
        for key in _REQUIRED_KEYS:
            value = reg.get(key, None)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                logger.error(
                    "AgreementMetricsCalculator: missing or invalid "
                    "threshold %s=%r", key, value)
                raise ConfigurationError(
                    f"AgreementMetricsCalculator requires numeric "
                    f"threshold {key!r}")
        self.thresholds = reg

    def calculate(
        self,
        vector_a: OutputVector,
        vector_b: OutputVector,
    ) -> AgreementMetrics:
        if len(vector_a) != len(vector_b):
            raise ConfigurationError(
                f"Output vectors differ in length: "
                f"{len(vector_a)} vs {len(vector_b)}")
        reg = self.thresholds
        conf = reg["agreement.confidence_level"]

        ga, gb = vector_a.gate_results, vector_b.gate_results
        both = ga & gb
        n = len(vector_a)
        n_a = int(ga.sum())
        n_b = int(gb.sum())
        n_both = int(both.sum())
        n_either = int((ga | gb).sum())

        ia, ib = vector_a.intensities, vector_b.intensities
        co_a, co_b = ia[both], ib[both]
        glob_a, glob_b = vector_a.gated_intensities, vector_b.gated_intensities

        p_a_given_b = n_both / n_b if n_b else math.nan
        p_b_given_a = n_both / n_a if n_a else math.nan
        a_lo, a_hi = wilson_interval(n_both, n_b, conf)
        b_lo, b_hi = wilson_interval(n_both, n_a, conf)

        ratio = n_both / n_either if n_either else 0.0
        reliable = (
            n_both >= reg["agreement.min_samples_for_reliable_correlation"]
            and ratio >= reg["agreement.min_co_pass_ratio_for_reliable"]
        )

        return AgreementMetrics(
            mae_co_pass=mean_abs_diff(co_a, co_b),
            rmse_co_pass=rmse(co_a, co_b),
            mae_global=mean_abs_diff(glob_a, glob_b),
            rmse_global=rmse(glob_a, glob_b),
            activation_jaccard=jaccard(
                n_both, n_either,
                empty_value=reg["agreement.jaccard_empty_set_value"]),
            p_a_given_b=p_a_given_b,
            p_a_given_b_lower=a_lo,
            p_a_given_b_upper=a_hi,
            p_b_given_a=p_b_given_a,
            p_b_given_a_lower=b_lo,
            p_b_given_a_upper=b_hi,
            pearson_co_pass=pearson(co_a, co_b),
            pearson_global=pearson(glob_a, glob_b),
            co_pass_count=n_both,
            pass_a_count=n_a,
            pass_b_count=n_b,
            either_count=n_either,
            sample_count=n,
            correlation_reliable=bool(reliable),
        )
