"""prototype-overlap: redundancy analysis for rule-based emotion prototypes.

A prototype is a weighted linear scoring rule guarded by threshold gates
over normalized simulation axes.  This package decides whether two
prototypes are redundant by combining structural weight comparison,
Monte-Carlo behavioral sampling, Wilson-interval agreement statistics
and a priority-ordered classifier, and diagnoses individual gate
failures through a hierarchical clause-tree model.
"""
from .errors import (
    OverlapError, ModelValidationError, GateParseError,
    GateValidationError, ConfigurationError,
)

# Thresholds & configuration
from .thresholds import (
    ThresholdRegistry,
    DEFAULT_LEGACY_THRESHOLDS, DEFAULT_AGREEMENT_THRESHOLDS,
    DEFAULT_EVALUATOR_THRESHOLDS, DEFAULT_PROFILE_THRESHOLDS,
    DEFAULT_CANDIDATE_THRESHOLDS, DEFAULT_HIGH_THRESHOLDS,
)
from .config import (
    ClassifierConfig, ConfigValidator, ConfigValidationResult,
)

# Axis model & gates
from .axes import (
    MOOD_AXES, SEXUAL_AXES, AFFECT_TRAIT_AXES,
    normalize_mood_axes, normalize_sexual_axes, normalize_affect_traits,
)
from .gates import GateConstraint, GateValidation
from .intervals import AxisInterval, KnifeEdge
from .branch import AnalysisBranch
from .clause_node import ClauseStats, HierarchicalClauseNode

# Metrics
from .structural import compute_candidate_metrics, passes_candidate_filter
from .evaluator import (
    BehavioralMetrics, BehavioralOverlapEvaluator,
    GateOverlap, IntensityMetrics, PassRates,
)
from .agreement import (
    AgreementMetrics, AgreementMetricsCalculator, OutputVector,
    compute_output_vector,
)
from .profile import PrototypeProfile, PrototypeProfileCalculator

# Classification
from .result import (
    ClassificationEvidence, ClassificationResult,
    EffectiveCorrelation, NearMissResult,
)
from .classifier import OverlapClassifier

__version__ = "0.4.0"

__all__ = [
    # Errors
    "OverlapError", "ModelValidationError", "GateParseError",
    "GateValidationError", "ConfigurationError",
    # Thresholds & configuration
    "ThresholdRegistry",
    "DEFAULT_LEGACY_THRESHOLDS", "DEFAULT_AGREEMENT_THRESHOLDS",
    "DEFAULT_EVALUATOR_THRESHOLDS", "DEFAULT_PROFILE_THRESHOLDS",
    "DEFAULT_CANDIDATE_THRESHOLDS", "DEFAULT_HIGH_THRESHOLDS",
    "ClassifierConfig", "ConfigValidator", "ConfigValidationResult",
    # Axis model & gates
    "MOOD_AXES", "SEXUAL_AXES", "AFFECT_TRAIT_AXES",
    "normalize_mood_axes", "normalize_sexual_axes", "normalize_affect_traits",
    "GateConstraint", "GateValidation",
    "AxisInterval", "KnifeEdge",
    "AnalysisBranch",
    "ClauseStats", "HierarchicalClauseNode",
    # Metrics
    "compute_candidate_metrics", "passes_candidate_filter",
    "BehavioralMetrics", "BehavioralOverlapEvaluator",
    "GateOverlap", "IntensityMetrics", "PassRates",
    "AgreementMetrics", "AgreementMetricsCalculator", "OutputVector",
    "compute_output_vector",
    "PrototypeProfile", "PrototypeProfileCalculator",
    # Classification
    "ClassificationEvidence", "ClassificationResult",
    "EffectiveCorrelation", "NearMissResult",
    "OverlapClassifier",
]
