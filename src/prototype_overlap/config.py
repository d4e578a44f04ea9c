"""Classifier configuration and configuration validation.

:class:`ClassifierConfig` is a tagged variant: ``ruleset`` names the
rule set (``"legacy"`` or ``"agreement"``) and ``thresholds`` carries
the registry that rule set reads.  The classifier resolves the variant
once, at construction, and validates exactly the keys that variant
needs.

:class:`ConfigValidator` is a broader, multi-layer check over a flat
dotted-key configuration dict: typed value ranges first, then
cross-threshold ordering and weight-sum constraints.

Usage
-----
>>> cfg = ClassifierConfig.legacy({"merge.min_correlation": 0.97})
>>> cfg.validate()                      # raises ConfigurationError if bad
>>> ConfigValidator().validate_or_raise(cfg.to_dict())
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .errors import ConfigurationError
from .thresholds import (
    DEFAULT_AGREEMENT_THRESHOLDS,
    DEFAULT_LEGACY_THRESHOLDS,
    ThresholdRegistry,
)

__all__ = [
    "RULESETS",
    "ClassifierConfig",
    "ConfigValidationResult",
    "ConfigValidator",
]

logger = logging.getLogger(__name__)

RULESETS = ("legacy", "agreement")

_DEFAULT_REGISTRIES = {
    "legacy": DEFAULT_LEGACY_THRESHOLDS,
    "agreement": DEFAULT_AGREEMENT_THRESHOLDS,
}


def _is_number(value: Any) -> bool:
    return (not isinstance(value, bool)
            and isinstance(value, (int, float))
            and math.isfinite(value))


# ═══════════════════════════════════════════════════════════════════
# ClassifierConfig
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ClassifierConfig:
    """Rule-set selection plus its thresholds.

    Build through :meth:`legacy` or :meth:`agreement` rather than the
    raw constructor.
    """

    ruleset: str = "legacy"
    thresholds: ThresholdRegistry = field(
        default_factory=lambda: DEFAULT_LEGACY_THRESHOLDS)
    enable_convert_to_expression: bool = True

    def __post_init__(self):
        if self.ruleset not in RULESETS:
            raise ConfigurationError(
                f"ruleset must be one of {RULESETS}, got {self.ruleset!r}")
        if not isinstance(self.thresholds, ThresholdRegistry):
            raise ConfigurationError(
                "thresholds must be a ThresholdRegistry, got "
                f"{type(self.thresholds).__name__}")
        if not isinstance(self.enable_convert_to_expression, bool):
            raise ConfigurationError(
                "enable_convert_to_expression must be a boolean")

    @classmethod
    def legacy(
        cls,
        overrides: Optional[Mapping[str, float]] = None,
        *,
        enable_convert_to_expression: bool = True,
    ) -> "ClassifierConfig":
        """Threshold rule set (V2), optionally with overridden keys."""
        reg = DEFAULT_LEGACY_THRESHOLDS
        if overrides:
            reg = reg.replace(dict(overrides))
        return cls("legacy", reg, enable_convert_to_expression)

    @classmethod
    def agreement(
        cls,
        overrides: Optional[Mapping[str, float]] = None,
        *,
        enable_convert_to_expression: bool = True,
    ) -> "ClassifierConfig":
        """Agreement / confidence-interval rule set (V3)."""
        reg = DEFAULT_AGREEMENT_THRESHOLDS
        if overrides:
            reg = reg.replace(dict(overrides))
        return cls("agreement", reg, enable_convert_to_expression)

    @property
    def required_keys(self) -> Tuple[str, ...]:
        return tuple(_DEFAULT_REGISTRIES[self.ruleset].keys())

    @property
    def overrides(self) -> Dict[str, Tuple[Optional[float], Optional[float]]]:
        """Keys whose value differs from the rule set's default registry."""
        return self.thresholds.diff(_DEFAULT_REGISTRIES[self.ruleset])

    def validate(self) -> None:
        """Check every key the rule set reads is present and numeric.

        Raises
        ------
        ConfigurationError
            On the first missing or non-numeric key.
        """
        for key in self.required_keys:
            value = self.thresholds.get(key, None)
            if not _is_number(value):
                logger.error(
                    "OverlapClassifier: missing or invalid %s threshold "
                    "%s (got %r)", self.ruleset, key, value)
                raise ConfigurationError(
                    f"{self.ruleset} rule set requires numeric "
                    f"threshold {key!r}")

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = self.thresholds.to_dict()
        out["ruleset"] = self.ruleset
        out["enable_convert_to_expression"] = self.enable_convert_to_expression
        return out


# ═══════════════════════════════════════════════════════════════════
# ConfigValidator
# ═══════════════════════════════════════════════════════════════════
#
# Keys are the dotted registry names.  A key that is absent from the
# validated dict is simply not checked.
# ═══════════════════════════════════════════════════════════════════

PROBABILITY_KEYS = (
    "merge.min_on_either_rate",
    "merge.min_gate_overlap_ratio",
    "subsumption.min_dominance",
    "nesting.conditional_threshold",
    "separation.min_gate_overlap_ratio",
    "expression.max_threat_upper",
    "near_miss.gate_overlap_ratio",
    "reliability.min_co_pass_ratio",
    "reliability.co_pass_weight",
    "reliability.global_weight",
    "agreement.min_activation_jaccard_for_merge",
    "agreement.symmetry_tolerance",
    "agreement.asymmetry_required",
    "agreement.min_conditional_prob_for_nesting",
    "agreement.min_conditional_prob_ci_lower_for_nesting",
    "agreement.min_gate_overlap_for_separation",
    "agreement.confidence_level",
    "agreement.min_co_pass_ratio_for_reliable",
    "agreement.jaccard_empty_set_value",
    "evaluator.confidence_level",
    "profile.low_volume_threshold",
    "profile.single_axis_focus_threshold",
    "candidate.jaccard_empty_set_value",
    "candidate.min_active_axis_overlap",
    "candidate.min_sign_agreement",
    "candidate.min_cosine_similarity",
)

CORRELATION_KEYS = (
    "merge.min_correlation",
    "merge.min_global_correlation",
    "subsumption.min_correlation",
    "subsumption.min_global_correlation",
    "separation.min_correlation",
    "near_miss.correlation_threshold",
    "agreement.min_correlation_for_separation",
)

POSITIVE_INTEGER_KEYS = (
    "evaluator.sample_count_per_pair",
    "evaluator.divergence_examples_k",
    "evaluator.min_co_pass_samples",
    "evaluator.min_pass_samples_for_conditional",
    "reliability.min_co_pass_samples",
    "agreement.min_samples_for_reliable_correlation",
)

POSITIVE_NUMBER_KEYS = (
    "merge.max_mean_abs_diff",
    "merge.max_global_mean_abs_diff",
    "subsumption.max_exclusive_rate",
    "evaluator.dominance_delta",
    "evaluator.intensity_eps",
    "agreement.max_mae_global_for_merge",
    "agreement.max_mae_co_pass_for_merge",
    "agreement.max_mae_delta_for_expression",
    "agreement.dead_gate_volume",
    "candidate.active_axis_epsilon",
    "candidate.soft_sign_threshold",
)

BOOLEAN_KEYS = ("enable_convert_to_expression",)

ENUM_KEYS: Dict[str, Tuple[str, ...]] = {
    "ruleset": RULESETS,
}

# (lesser, greater, operator, description)
ORDERING_CONSTRAINTS: Tuple[Tuple[str, str, str, str], ...] = (
    ("candidate.active_axis_epsilon", "candidate.soft_sign_threshold", "<",
     "active_axis_epsilon must be less than soft_sign_threshold"),
    ("subsumption.min_correlation", "merge.min_correlation", "<=",
     "subsumption.min_correlation must be <= merge.min_correlation"),
    ("subsumption.min_global_correlation", "merge.min_global_correlation", "<=",
     "subsumption.min_global_correlation must be <= "
     "merge.min_global_correlation"),
    ("near_miss.correlation_threshold", "merge.min_correlation", "<",
     "near_miss.correlation_threshold must be less than "
     "merge.min_correlation"),
    ("near_miss.gate_overlap_ratio", "merge.min_gate_overlap_ratio", "<",
     "near_miss.gate_overlap_ratio must be less than "
     "merge.min_gate_overlap_ratio"),
    ("separation.min_gate_overlap_ratio", "merge.min_gate_overlap_ratio", "<",
     "separation.min_gate_overlap_ratio must be less than "
     "merge.min_gate_overlap_ratio"),
    ("agreement.min_conditional_prob_ci_lower_for_nesting",
     "agreement.min_conditional_prob_for_nesting", "<",
     "min_conditional_prob_ci_lower_for_nesting must be less than "
     "min_conditional_prob_for_nesting"),
)

# (keys, expected_sum, tolerance, description)
WEIGHT_SUM_CONSTRAINTS: Tuple[Tuple[Tuple[str, ...], float, float, str], ...] = (
    (("reliability.co_pass_weight", "reliability.global_weight"), 1.0, 0.001,
     "Correlation weights must sum to 1.0"),
)


@dataclass(frozen=True)
class ConfigValidationResult:
    """Outcome of one validation layer (or of all layers combined)."""

    is_valid: bool
    errors: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def formatted_errors(self) -> str:
        return "; ".join(self.errors)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "formatted_errors": self.formatted_errors,
            "details": dict(self.details),
        }


class ConfigValidator:
    """Multi-layer validation of a flat configuration dict.

    Layer 1 (:meth:`validate`) checks value types and ranges.  Layer 2
    (:meth:`validate_threshold_dependencies`) checks ordering between
    related thresholds and weight sums, and emits soft warnings.
    """

    def validate(self, config: Any) -> ConfigValidationResult:
        """Basic type and range checks."""
        if not isinstance(config, Mapping):
            return ConfigValidationResult(
                False, ("Configuration must be a mapping",))

        errors: List[str] = []

        for key in PROBABILITY_KEYS:
            if key in config:
                value = config[key]
                if not _is_number(value):
                    errors.append(
                        f"{key} must be a number, got {type(value).__name__}")
                elif not 0 <= value <= 1:
                    errors.append(f"{key} must be in range [0, 1], got {value}")

        for key in CORRELATION_KEYS:
            if key in config:
                value = config[key]
                if not _is_number(value):
                    errors.append(
                        f"{key} must be a number, got {type(value).__name__}")
                elif not -1 <= value <= 1:
                    errors.append(
                        f"{key} must be in range [-1, 1], got {value}")

        for key in POSITIVE_INTEGER_KEYS:
            if key in config:
                value = config[key]
                if not _is_number(value) or float(value) != int(value):
                    errors.append(
                        f"{key} must be an integer, got {value!r}")
                elif value < 1:
                    errors.append(f"{key} must be >= 1, got {value}")

        for key in POSITIVE_NUMBER_KEYS:
            if key in config:
                value = config[key]
                if not _is_number(value):
                    errors.append(
                        f"{key} must be a number, got {type(value).__name__}")
                elif value <= 0:
                    errors.append(f"{key} must be > 0, got {value}")

        for key in BOOLEAN_KEYS:
            if key in config and not isinstance(config[key], bool):
                errors.append(
                    f"{key} must be a boolean, got "
                    f"{type(config[key]).__name__}")

        for key, allowed in ENUM_KEYS.items():
            if key in config and config[key] not in allowed:
                errors.append(
                    f"{key} must be one of [{', '.join(allowed)}], "
                    f"got {config[key]!r}")

        if "high_thresholds" in config:
            value = config["high_thresholds"]
            if not isinstance(value, (list, tuple)):
                errors.append(
                    f"high_thresholds must be a list, got "
                    f"{type(value).__name__}")
            else:
                for i, t in enumerate(value):
                    if not _is_number(t) or not 0 < t < 1:
                        errors.append(
                            f"high_thresholds[{i}] must be a number in "
                            f"range (0, 1), got {t!r}")

        if errors:
            logger.warning(
                "Prototype overlap configuration basic validation failed "
                "(%d errors)", len(errors))
        else:
            logger.debug("Prototype overlap configuration basic validation passed")
        return ConfigValidationResult(not errors, tuple(errors))

    def validate_threshold_dependencies(
        self, config: Any,
    ) -> ConfigValidationResult:
        """Ordering constraints, weight sums and soft warnings."""
        if not isinstance(config, Mapping):
            return ConfigValidationResult(
                False, ("Configuration must be a mapping",))

        errors: List[str] = []
        warnings: List[str] = []

        for lesser, greater, op, description in ORDERING_CONSTRAINTS:
            if lesser not in config or greater not in config:
                continue
            lo, hi = config[lesser], config[greater]
            if not (_is_number(lo) and _is_number(hi)):
                continue
            satisfied = lo <= hi if op == "<=" else lo < hi
            if not satisfied:
                errors.append(
                    f"{description}: {lesser}={lo} must be {op} "
                    f"{greater}={hi}")

        for keys, expected, tol, description in WEIGHT_SUM_CONSTRAINTS:
            if not all(k in config for k in keys):
                continue
            total = sum(float(config[k] or 0.0) for k in keys)
            if abs(total - expected) > tol:
                errors.append(
                    f"{description}: [{', '.join(keys)}] sum to "
                    f"{total:.4f}, expected {expected}")

        samples = config.get("evaluator.sample_count_per_pair")
        min_co = config.get("evaluator.min_co_pass_samples")
        if _is_number(samples) and _is_number(min_co) and min_co > samples * 0.5:
            warnings.append(
                f"evaluator.min_co_pass_samples ({min_co}) is > 50% of "
                f"evaluator.sample_count_per_pair ({samples}), co-pass "
                "metrics will rarely be reported")

        high = config.get("high_thresholds")
        if isinstance(high, (list, tuple)) and list(high) != sorted(high):
            warnings.append("high_thresholds should be in increasing order")

        for message in warnings:
            logger.warning("Prototype overlap configuration: %s", message)
        if errors:
            logger.warning(
                "Threshold dependency validation failed (%d errors)",
                len(errors))

        checked = len(ORDERING_CONSTRAINTS) + len(WEIGHT_SUM_CONSTRAINTS)
        return ConfigValidationResult(
            not errors, tuple(errors), tuple(warnings),
            {"constraints_checked": checked})

    def comprehensive(self, config: Any) -> ConfigValidationResult:
        """Run every layer; errors and warnings are concatenated."""
        start = time.perf_counter()
        basic = self.validate(config)
        deps = self.validate_threshold_dependencies(config)
        duration_ms = (time.perf_counter() - start) * 1000.0

        errors = basic.errors + deps.errors
        logger.debug(
            "Comprehensive validation completed in %.2fms "
            "(%d errors, %d warnings)",
            duration_ms, len(errors), len(deps.warnings))
        return ConfigValidationResult(
            not errors, errors, deps.warnings,
            {
                "layers": {"basic": basic, "dependencies": deps},
                "duration_ms": duration_ms,
            })

    def validate_or_raise(self, config: Any) -> None:
        """Raise :class:`ConfigurationError` if any layer fails."""
        result = self.comprehensive(config)
        if not result.is_valid:
            raise ConfigurationError(
                "Invalid prototype overlap configuration: "
                f"{result.formatted_errors}")
