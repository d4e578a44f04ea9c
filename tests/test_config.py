"""Tests for ClassifierConfig and ConfigValidator."""

import pytest

from prototype_overlap.config import (
    ClassifierConfig,
    ConfigValidationResult,
    ConfigValidator,
)
from prototype_overlap.errors import ConfigurationError, OverlapError
from prototype_overlap.thresholds import (
    DEFAULT_AGREEMENT_THRESHOLDS,
    DEFAULT_EVALUATOR_THRESHOLDS,
    DEFAULT_LEGACY_THRESHOLDS,
    ThresholdRegistry,
)


# ═══════════════════════════════════════════════════════════════════
# ClassifierConfig
# ═══════════════════════════════════════════════════════════════════

class TestClassifierConfig:

    def test_default_constructor(self):
        cfg = ClassifierConfig()
        assert cfg.ruleset == "legacy"
        assert cfg.thresholds == DEFAULT_LEGACY_THRESHOLDS
        assert cfg.enable_convert_to_expression is True
        assert hash(cfg) == hash(ClassifierConfig.legacy())

    def test_legacy_factory(self):
        cfg = ClassifierConfig.legacy()
        assert cfg.ruleset == "legacy"
        assert cfg.thresholds == DEFAULT_LEGACY_THRESHOLDS
        assert cfg.enable_convert_to_expression is True

    def test_agreement_factory(self):
        cfg = ClassifierConfig.agreement(enable_convert_to_expression=False)
        assert cfg.ruleset == "agreement"
        assert cfg.thresholds == DEFAULT_AGREEMENT_THRESHOLDS
        assert cfg.enable_convert_to_expression is False

    def test_overrides(self):
        cfg = ClassifierConfig.legacy({"merge.min_correlation": 0.97})
        assert cfg.thresholds["merge.min_correlation"] == 0.97
        assert cfg.thresholds.diff(DEFAULT_LEGACY_THRESHOLDS) == {
            "merge.min_correlation": (0.97, 0.98)}

    def test_overrides_property(self):
        assert ClassifierConfig.agreement().overrides == {}
        cfg = ClassifierConfig.agreement({"agreement.asymmetry_required": 0.2})
        assert cfg.overrides == {"agreement.asymmetry_required": (0.2, 0.10)}

    def test_unknown_override_key(self):
        with pytest.raises(KeyError):
            ClassifierConfig.legacy({"merge.no_such_key": 1.0})

    def test_bad_ruleset(self):
        with pytest.raises(ConfigurationError, match="ruleset"):
            ClassifierConfig("v4")

    def test_thresholds_must_be_registry(self):
        with pytest.raises(ConfigurationError, match="ThresholdRegistry"):
            ClassifierConfig("legacy", {"merge.min_correlation": 0.98})

    def test_flag_must_be_bool(self):
        with pytest.raises(ConfigurationError):
            ClassifierConfig("legacy", DEFAULT_LEGACY_THRESHOLDS, 1)

    def test_errors_are_value_errors(self):
        with pytest.raises(ValueError):
            ClassifierConfig("v4")
        with pytest.raises(OverlapError):
            ClassifierConfig("v4")

    def test_validate_missing_key(self):
        data = DEFAULT_LEGACY_THRESHOLDS.to_dict()
        del data["nesting.conditional_threshold"]
        cfg = ClassifierConfig("legacy", ThresholdRegistry(data))
        with pytest.raises(ConfigurationError, match="nesting.conditional_threshold"):
            cfg.validate()

    def test_validate_non_numeric(self):
        data = DEFAULT_LEGACY_THRESHOLDS.to_dict()
        data["merge.min_correlation"] = float("nan")
        with pytest.raises(ConfigurationError):
            ClassifierConfig("legacy", ThresholdRegistry(data)).validate()

    def test_extra_keys_allowed(self):
        reg = ThresholdRegistry({
            **DEFAULT_LEGACY_THRESHOLDS.to_dict(),
            **DEFAULT_EVALUATOR_THRESHOLDS.to_dict(),
        })
        ClassifierConfig("legacy", reg).validate()

    def test_required_keys(self):
        assert set(ClassifierConfig.agreement().required_keys) == set(
            DEFAULT_AGREEMENT_THRESHOLDS.keys())

    def test_to_dict(self):
        d = ClassifierConfig.legacy().to_dict()
        assert d["ruleset"] == "legacy"
        assert d["enable_convert_to_expression"] is True
        assert d["merge.min_correlation"] == 0.98

    def test_to_dict_validates(self):
        d = ClassifierConfig.legacy().to_dict()
        assert ConfigValidator().comprehensive(d).is_valid
        d = ClassifierConfig.agreement().to_dict()
        assert ConfigValidator().comprehensive(d).is_valid


# ═══════════════════════════════════════════════════════════════════
# ConfigValidator — basic layer
# ═══════════════════════════════════════════════════════════════════

class TestBasicValidation:

    def test_non_mapping(self):
        result = ConfigValidator().validate(["merge.min_correlation"])
        assert not result.is_valid
        assert result.errors == ("Configuration must be a mapping",)

    def test_empty_is_valid(self):
        assert ConfigValidator().validate({}).is_valid

    def test_probability_range(self):
        result = ConfigValidator().validate({"merge.min_gate_overlap_ratio": 1.5})
        assert result.errors == (
            "merge.min_gate_overlap_ratio must be in range [0, 1], got 1.5",)

    def test_probability_type(self):
        result = ConfigValidator().validate({"nesting.conditional_threshold": "high"})
        assert result.errors == (
            "nesting.conditional_threshold must be a number, got str",)

    def test_bool_is_not_a_number(self):
        result = ConfigValidator().validate({"merge.min_on_either_rate": True})
        assert not result.is_valid

    def test_correlation_range(self):
        ok = ConfigValidator().validate({"merge.min_correlation": -0.5})
        assert ok.is_valid
        bad = ConfigValidator().validate({"merge.min_correlation": -1.5})
        assert bad.errors == (
            "merge.min_correlation must be in range [-1, 1], got -1.5",)

    def test_positive_integer(self):
        result = ConfigValidator().validate({
            "evaluator.sample_count_per_pair": 10.5,
            "evaluator.divergence_examples_k": 0,
            "evaluator.min_co_pass_samples": 200.0,
        })
        assert result.errors == (
            "evaluator.sample_count_per_pair must be an integer, got 10.5",
            "evaluator.divergence_examples_k must be >= 1, got 0",
        )

    def test_infinite_integer_rejected(self):
        result = ConfigValidator().validate(
            {"evaluator.sample_count_per_pair": float("inf")})
        assert not result.is_valid

    def test_positive_number(self):
        result = ConfigValidator().validate({"merge.max_mean_abs_diff": 0})
        assert result.errors == ("merge.max_mean_abs_diff must be > 0, got 0",)

    def test_boolean(self):
        result = ConfigValidator().validate({"enable_convert_to_expression": "yes"})
        assert result.errors == (
            "enable_convert_to_expression must be a boolean, got str",)

    def test_enum(self):
        result = ConfigValidator().validate({"ruleset": "v4"})
        assert result.errors == (
            "ruleset must be one of [legacy, agreement], got 'v4'",)

    def test_high_thresholds(self):
        v = ConfigValidator()
        assert v.validate({"high_thresholds": [0.4, 0.6]}).is_valid
        assert v.validate({"high_thresholds": 0.4}).errors == (
            "high_thresholds must be a list, got float",)
        assert v.validate({"high_thresholds": [0.4, 1.0]}).errors == (
            "high_thresholds[1] must be a number in range (0, 1), got 1.0",)


# ═══════════════════════════════════════════════════════════════════
# ConfigValidator — dependency layer
# ═══════════════════════════════════════════════════════════════════

class TestDependencyValidation:

    def test_ordering_violation(self):
        result = ConfigValidator().validate_threshold_dependencies({
            "candidate.active_axis_epsilon": 0.2,
            "candidate.soft_sign_threshold": 0.15,
        })
        assert result.errors == (
            "active_axis_epsilon must be less than soft_sign_threshold: "
            "candidate.active_axis_epsilon=0.2 must be < "
            "candidate.soft_sign_threshold=0.15",)

    def test_ordering_allows_equal_for_le(self):
        result = ConfigValidator().validate_threshold_dependencies({
            "subsumption.min_correlation": 0.98,
            "merge.min_correlation": 0.98,
        })
        assert result.is_valid

    def test_strict_ordering_rejects_equal(self):
        result = ConfigValidator().validate_threshold_dependencies({
            "near_miss.correlation_threshold": 0.98,
            "merge.min_correlation": 0.98,
        })
        assert not result.is_valid

    def test_missing_side_skipped(self):
        result = ConfigValidator().validate_threshold_dependencies(
            {"merge.min_correlation": 0.5})
        assert result.is_valid

    def test_weight_sum(self):
        result = ConfigValidator().validate_threshold_dependencies({
            "reliability.co_pass_weight": 0.7,
            "reliability.global_weight": 0.4,
        })
        assert result.errors == (
            "Correlation weights must sum to 1.0: [reliability.co_pass_weight, "
            "reliability.global_weight] sum to 1.1000, expected 1.0",)

    def test_weight_sum_tolerance(self):
        result = ConfigValidator().validate_threshold_dependencies({
            "reliability.co_pass_weight": 0.6005,
            "reliability.global_weight": 0.4,
        })
        assert result.is_valid

    def test_co_pass_warning(self):
        result = ConfigValidator().validate_threshold_dependencies({
            "evaluator.sample_count_per_pair": 300,
            "evaluator.min_co_pass_samples": 200,
        })
        assert result.is_valid
        assert len(result.warnings) == 1
        assert "min_co_pass_samples (200)" in result.warnings[0]

    def test_high_thresholds_order_warning(self):
        result = ConfigValidator().validate_threshold_dependencies(
            {"high_thresholds": [0.6, 0.4]})
        assert result.warnings == (
            "high_thresholds should be in increasing order",)

    def test_details(self):
        result = ConfigValidator().validate_threshold_dependencies({})
        assert result.details["constraints_checked"] == 8


# ═══════════════════════════════════════════════════════════════════
# ConfigValidator — combined
# ═══════════════════════════════════════════════════════════════════

class TestComprehensive:

    def test_concatenates_layers(self):
        result = ConfigValidator().comprehensive({
            "merge.min_gate_overlap_ratio": 1.5,
            "reliability.co_pass_weight": 0.5,
            "reliability.global_weight": 0.4,
        })
        assert not result.is_valid
        assert len(result.errors) == 2
        assert result.errors[0].startswith("merge.min_gate_overlap_ratio")
        layers = result.details["layers"]
        assert isinstance(layers["basic"], ConfigValidationResult)
        assert not layers["dependencies"].is_valid
        assert result.details["duration_ms"] >= 0.0

    def test_to_dict(self):
        result = ConfigValidator().comprehensive({"ruleset": "v4"})
        d = result.to_dict()
        assert d["is_valid"] is False
        assert d["formatted_errors"] == result.errors[0]

    def test_validate_or_raise(self):
        v = ConfigValidator()
        v.validate_or_raise({"merge.min_correlation": 0.98})
        with pytest.raises(ConfigurationError, match="Invalid prototype overlap"):
            v.validate_or_raise({"merge.min_correlation": 2.0})
