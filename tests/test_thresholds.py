"""Tests for the ThresholdRegistry and the default registries.

Covers:
1. ThresholdRegistry — read, immutability, hashing, replace, diff
2. Default registries — structure, key prefixes, spot values
3. Integration — registry wiring into the classifier and calculators
"""

import numpy as np
import pytest

from prototype_overlap.thresholds import (
    DEFAULT_AGREEMENT_THRESHOLDS,
    DEFAULT_CANDIDATE_THRESHOLDS,
    DEFAULT_EVALUATOR_THRESHOLDS,
    DEFAULT_HIGH_THRESHOLDS,
    DEFAULT_LEGACY_THRESHOLDS,
    DEFAULT_PROFILE_THRESHOLDS,
    ThresholdRegistry,
)


# ═══════════════════════════════════════════════════════════════════
# 1. ThresholdRegistry core behaviour
# ═══════════════════════════════════════════════════════════════════

class TestThresholdRegistryRead:
    """Reading keys, contains, len, iter."""

    def test_getitem(self):
        reg = ThresholdRegistry({"merge.x": 0.5})
        assert reg["merge.x"] == 0.5

    def test_getitem_missing_raises(self):
        with pytest.raises(KeyError):
            _ = ThresholdRegistry({})["merge.x"]

    def test_get_with_default(self):
        reg = ThresholdRegistry({"merge.x": 0.5})
        assert reg.get("merge.y") == 0.0
        assert reg.get("merge.y", None) is None

    def test_len_iter_contains(self):
        reg = ThresholdRegistry({"a.x": 1.0, "b.y": 2.0})
        assert len(reg) == 2
        assert sorted(reg) == ["a.x", "b.y"]
        assert "a.x" in reg and "c.z" not in reg

    def test_to_dict_returns_copy(self):
        reg = ThresholdRegistry({"a.x": 1.0})
        d = reg.to_dict()
        d["a.x"] = 5.0
        assert reg["a.x"] == 1.0

    def test_repr_and_name(self):
        reg = ThresholdRegistry({"a.x": 1.0}, name="sweep-1")
        assert reg.name == "sweep-1"
        assert "1 keys" in repr(reg)
        assert ThresholdRegistry({}).name == "custom"


class TestThresholdRegistryImmutability:

    def test_setitem_raises(self):
        with pytest.raises(TypeError, match="immutable"):
            DEFAULT_LEGACY_THRESHOLDS["merge.min_correlation"] = 0.5

    def test_constructor_does_not_alias(self):
        data = {"a.x": 1.0}
        reg = ThresholdRegistry(data)
        data["a.x"] = 2.0
        assert reg["a.x"] == 1.0


class TestThresholdRegistryHashing:

    def test_equal_registries_hash_equal(self):
        copy = ThresholdRegistry(DEFAULT_LEGACY_THRESHOLDS.to_dict(), name="copy")
        assert copy == DEFAULT_LEGACY_THRESHOLDS
        assert hash(copy) == hash(DEFAULT_LEGACY_THRESHOLDS)

    def test_usable_as_dict_key(self):
        tuned = DEFAULT_LEGACY_THRESHOLDS.replace({"merge.min_correlation": 0.97})
        cache = {DEFAULT_LEGACY_THRESHOLDS: "default", tuned: "tuned"}
        assert cache[DEFAULT_LEGACY_THRESHOLDS.replace({})] == "default"
        assert len(cache) == 2


class TestThresholdRegistryReplace:

    def test_replace(self):
        new = DEFAULT_LEGACY_THRESHOLDS.replace({"merge.min_correlation": 0.97})
        assert new["merge.min_correlation"] == 0.97
        assert DEFAULT_LEGACY_THRESHOLDS["merge.min_correlation"] == 0.98
        assert new.name == "legacy+"

    def test_replace_custom_name(self):
        new = DEFAULT_LEGACY_THRESHOLDS.replace(
            {"merge.min_correlation": 0.97}, name="sweep-3")
        assert new.name == "sweep-3"

    def test_replace_unknown_key_raises(self):
        with pytest.raises(KeyError, match="Unknown threshold key"):
            DEFAULT_LEGACY_THRESHOLDS.replace({"merge.typo": 1.0})

    def test_replace_empty_is_equal(self):
        assert DEFAULT_AGREEMENT_THRESHOLDS.replace({}) == DEFAULT_AGREEMENT_THRESHOLDS


class TestThresholdRegistryDiff:

    def test_diff_no_change(self):
        assert DEFAULT_LEGACY_THRESHOLDS.diff(DEFAULT_LEGACY_THRESHOLDS) == {}

    def test_diff_one_changed(self):
        custom = DEFAULT_LEGACY_THRESHOLDS.replace({"merge.min_correlation": 0.97})
        assert custom.diff(DEFAULT_LEGACY_THRESHOLDS) == {
            "merge.min_correlation": (0.97, 0.98)}

    def test_diff_missing_keys(self):
        r1 = ThresholdRegistry({"a.x": 1.0})
        r2 = ThresholdRegistry({"a.x": 1.0, "a.y": 2.0})
        assert r1.diff(r2) == {"a.y": (None, 2.0)}
        assert r2.diff(r1) == {"a.y": (2.0, None)}

    def test_not_equal_to_plain_dict(self):
        reg = ThresholdRegistry({"a.x": 1.0})
        assert reg != {"a.x": 1.0}


# ═══════════════════════════════════════════════════════════════════
# 2. Default registries
# ═══════════════════════════════════════════════════════════════════

def _prefixes(reg):
    return {key.split(".", 1)[0] for key in reg}


class TestDefaultRegistries:

    def test_legacy_prefixes(self):
        assert _prefixes(DEFAULT_LEGACY_THRESHOLDS) == {
            "merge", "subsumption", "nesting", "separation",
            "expression", "near_miss", "reliability",
        }

    def test_single_prefix_registries(self):
        assert _prefixes(DEFAULT_AGREEMENT_THRESHOLDS) == {"agreement"}
        assert _prefixes(DEFAULT_EVALUATOR_THRESHOLDS) == {"evaluator"}
        assert _prefixes(DEFAULT_PROFILE_THRESHOLDS) == {"profile"}
        assert _prefixes(DEFAULT_CANDIDATE_THRESHOLDS) == {"candidate"}

    @pytest.mark.parametrize("reg", [
        DEFAULT_LEGACY_THRESHOLDS, DEFAULT_AGREEMENT_THRESHOLDS,
        DEFAULT_EVALUATOR_THRESHOLDS, DEFAULT_PROFILE_THRESHOLDS,
        DEFAULT_CANDIDATE_THRESHOLDS,
    ])
    def test_all_values_numeric(self, reg):
        for key, val in reg.to_dict().items():
            assert isinstance(val, (int, float)), key
            assert "." in key

    @pytest.mark.parametrize("reg,key,expected", [
        (DEFAULT_LEGACY_THRESHOLDS, "merge.min_on_either_rate", 0.05),
        (DEFAULT_LEGACY_THRESHOLDS, "merge.min_gate_overlap_ratio", 0.90),
        (DEFAULT_LEGACY_THRESHOLDS, "merge.min_correlation", 0.98),
        (DEFAULT_LEGACY_THRESHOLDS, "merge.max_mean_abs_diff", 0.03),
        (DEFAULT_LEGACY_THRESHOLDS, "subsumption.min_dominance", 0.95),
        (DEFAULT_LEGACY_THRESHOLDS, "nesting.conditional_threshold", 0.97),
        (DEFAULT_LEGACY_THRESHOLDS, "expression.max_threat_upper", 0.20),
        (DEFAULT_LEGACY_THRESHOLDS, "reliability.min_co_pass_samples", 500),
        (DEFAULT_AGREEMENT_THRESHOLDS, "agreement.dead_gate_volume", 0.01),
        (DEFAULT_AGREEMENT_THRESHOLDS, "agreement.confidence_level", 0.95),
        (DEFAULT_EVALUATOR_THRESHOLDS, "evaluator.sample_count_per_pair", 8000),
        (DEFAULT_EVALUATOR_THRESHOLDS, "evaluator.dominance_delta", 0.05),
        (DEFAULT_PROFILE_THRESHOLDS, "profile.low_volume_threshold", 0.05),
        (DEFAULT_CANDIDATE_THRESHOLDS, "candidate.active_axis_epsilon", 0.08),
    ])
    def test_default_values(self, reg, key, expected):
        assert reg[key] == pytest.approx(expected)

    def test_reliability_weights_sum_to_one(self):
        t = DEFAULT_LEGACY_THRESHOLDS
        assert t["reliability.co_pass_weight"] + t["reliability.global_weight"] == (
            pytest.approx(1.0))

    def test_high_thresholds(self):
        assert DEFAULT_HIGH_THRESHOLDS == (0.4, 0.6, 0.75)


# ═══════════════════════════════════════════════════════════════════
# 3. Integration — registry affects behaviour
# ═══════════════════════════════════════════════════════════════════

class TestRegistryIntegration:

    def test_sweep_pattern(self):
        registries = [
            DEFAULT_LEGACY_THRESHOLDS.replace(
                {"merge.min_correlation": float(v)}, name=f"sweep-{i}")
            for i, v in enumerate(np.linspace(0.95, 0.99, 5))
        ]
        for i in range(len(registries)):
            for j in range(i + 1, len(registries)):
                assert registries[i] != registries[j]

    def test_classifier_uses_registry(self):
        from prototype_overlap.classifier import OverlapClassifier
        from prototype_overlap.config import ClassifierConfig
        cfg = ClassifierConfig.legacy({"merge.min_correlation": 0.5})
        clf = OverlapClassifier(cfg)
        assert clf._t["merge.min_correlation"] == 0.5

    def test_profile_calculator_uses_registry(self):
        from prototype_overlap.profile import PrototypeProfileCalculator
        custom = DEFAULT_PROFILE_THRESHOLDS.replace(
            {"profile.low_volume_threshold": 0.5})
        calc = PrototypeProfileCalculator(custom)
        profile = calc.calculate({"weights": {"valence": 1.0}}, gate_volume=0.3)
        assert profile.is_expression_candidate

    def test_public_api_exports(self):
        import prototype_overlap
        assert prototype_overlap.ThresholdRegistry is ThresholdRegistry
        assert prototype_overlap.DEFAULT_LEGACY_THRESHOLDS is DEFAULT_LEGACY_THRESHOLDS
