"""Tests for output vectors and agreement metrics.

Covers:
1. OutputVector — coercion, length check, pass rate, gated intensities
2. compute_output_vector with simple collaborators
3. AgreementMetricsCalculator — Jaccard, conditionals, Wilson bounds,
   co-pass NaN soft failure, correlation reliability
"""

import math

import numpy as np
import pytest

from prototype_overlap.agreement import (
    AgreementMetricsCalculator,
    OutputVector,
    compute_output_vector,
)
from prototype_overlap.errors import ConfigurationError
from prototype_overlap.statistics import wilson_interval
from prototype_overlap.thresholds import DEFAULT_AGREEMENT_THRESHOLDS, ThresholdRegistry


class ThresholdGateChecker:
    """Passes when context["x"] >= prototype["min_x"]."""

    def check_all_gates_pass(self, prototype, context):
        return context["x"] >= prototype["min_x"]


class EchoIntensity:

    def compute_intensity(self, prototype, context):
        return context["x"] * prototype.get("scale", 1.0)


# ═══════════════════════════════════════════════════════════════════
# 1. OutputVector
# ═══════════════════════════════════════════════════════════════════

class TestOutputVector:

    def test_coerces_arrays(self):
        v = OutputVector([1, 0, 1], [0.5, 0.2, 0.7])
        assert v.gate_results.dtype == bool
        assert v.intensities.dtype == float
        assert len(v) == 3

    def test_length_mismatch(self):
        with pytest.raises(ConfigurationError, match="length mismatch"):
            OutputVector([True, False], [0.5])

    def test_pass_rate(self):
        assert OutputVector([True, False, True, True], [0, 0, 0, 0]).pass_rate == 0.75
        assert OutputVector([], []).pass_rate == 0.0

    def test_gated_intensities(self):
        v = OutputVector([True, False], [0.4, 0.9])
        np.testing.assert_allclose(v.gated_intensities, [0.4, 0.0])


# ═══════════════════════════════════════════════════════════════════
# 2. compute_output_vector
# ═══════════════════════════════════════════════════════════════════

class TestComputeOutputVector:

    def test_evaluates_every_context(self):
        contexts = [{"x": 0.1}, {"x": 0.5}, {"x": 0.9}]
        v = compute_output_vector(
            {"min_x": 0.4}, contexts, ThresholdGateChecker(), EchoIntensity())
        assert list(v.gate_results) == [False, True, True]
        np.testing.assert_allclose(v.intensities, [0.0, 0.5, 0.9])

    def test_failing_contexts_skip_intensity(self):
        class Exploding:
            def compute_intensity(self, prototype, context):
                raise AssertionError("should not be called")

        v = compute_output_vector(
            {"min_x": 2.0}, [{"x": 0.1}], ThresholdGateChecker(), Exploding())
        assert v.pass_rate == 0.0


# ═══════════════════════════════════════════════════════════════════
# 3. AgreementMetricsCalculator
# ═══════════════════════════════════════════════════════════════════

class TestAgreementMetrics:

    def test_counts_and_jaccard(self):
        va = OutputVector([1, 1, 1, 0, 0], [0.5, 0.6, 0.7, 0.0, 0.0])
        vb = OutputVector([1, 1, 0, 1, 0], [0.5, 0.6, 0.0, 0.3, 0.0])
        m = AgreementMetricsCalculator().calculate(va, vb)
        assert m.co_pass_count == 2
        assert m.either_count == 4
        assert m.pass_a_count == 3
        assert m.pass_b_count == 3
        assert m.sample_count == 5
        assert m.activation_jaccard == 0.5
        assert m.co_pass_ratio == 0.5

    def test_conditionals_and_wilson(self):
        va = OutputVector([1, 1, 1, 1], [0.5] * 4)
        vb = OutputVector([1, 1, 0, 0], [0.5] * 4)
        m = AgreementMetricsCalculator().calculate(va, vb)
        assert m.p_b_given_a == 0.5
        assert m.p_a_given_b == 1.0
        assert (m.p_b_given_a_lower, m.p_b_given_a_upper) == pytest.approx(
            wilson_interval(2, 4, 0.95))
        assert m.p_a_given_b_lower <= 1.0 <= m.p_a_given_b_upper + 1e-12

    def test_global_mae_counts_failures_as_zero(self):
        va = OutputVector([1, 0], [0.8, 0.9])
        vb = OutputVector([0, 0], [0.4, 0.4])
        m = AgreementMetricsCalculator().calculate(va, vb)
        assert m.mae_global == pytest.approx(0.4)

    def test_no_co_pass_is_nan(self):
        va = OutputVector([1, 0], [0.8, 0.0])
        vb = OutputVector([0, 1], [0.0, 0.6])
        m = AgreementMetricsCalculator().calculate(va, vb)
        assert math.isnan(m.mae_co_pass)
        assert math.isnan(m.rmse_co_pass)
        assert math.isnan(m.pearson_co_pass)
        assert m.activation_jaccard == 0.0
        assert not m.correlation_reliable

    def test_nobody_fires(self):
        v = OutputVector([0, 0, 0], [0.0, 0.0, 0.0])
        m = AgreementMetricsCalculator().calculate(v, v)
        assert m.activation_jaccard == 1.0
        assert math.isnan(m.p_a_given_b)
        assert (m.p_a_given_b_lower, m.p_a_given_b_upper) == (0.0, 1.0)

    def test_reliability_threshold(self):
        reg = DEFAULT_AGREEMENT_THRESHOLDS.replace(
            {"agreement.min_samples_for_reliable_correlation": 3})
        rng = np.random.default_rng(3)
        values = rng.random(4)
        va = OutputVector([1, 1, 1, 1], values)
        vb = OutputVector([1, 1, 1, 0], values * 0.9)
        m = AgreementMetricsCalculator(reg).calculate(va, vb)
        assert m.correlation_reliable
        assert m.pearson_co_pass == pytest.approx(1.0)
        m_default = AgreementMetricsCalculator().calculate(va, vb)
        assert not m_default.correlation_reliable

    def test_vector_length_mismatch(self):
        with pytest.raises(ConfigurationError, match="differ in length"):
            AgreementMetricsCalculator().calculate(
                OutputVector([1], [0.1]), OutputVector([1, 1], [0.1, 0.2]))

    def test_missing_threshold_raises(self):
        with pytest.raises(ConfigurationError):
            AgreementMetricsCalculator(ThresholdRegistry({}))

    def test_to_dict_and_summary(self):
        va = OutputVector([1, 1], [0.5, 0.6])
        m = AgreementMetricsCalculator().calculate(va, va)
        d = m.to_dict()
        assert d["co_pass_count"] == 2
        assert d["correlation_reliable"] is False
        assert "J=1.000" in m.summary()
        assert "(unreliable r)" in m.summary()
