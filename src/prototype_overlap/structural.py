"""Structural (weight-vector) comparison of two prototypes.

Before spending a Monte-Carlo budget on a pair, the weight vectors are
compared directly:

* ``active_axis_overlap`` — Jaccard overlap of the axes each prototype
  actually uses (``|w| >= active_axis_epsilon``)
* ``sign_agreement`` — fraction of shared active axes pulling in the
  same direction; weights below ``soft_sign_threshold`` in magnitude are
  neutral and agree with anything
* ``weight_cosine_similarity`` — cosine over the union of axes, missing
  axes counted as 0

These three numbers are the ``candidate_metrics`` consumed by
:class:`~prototype_overlap.classifier.OverlapClassifier`.
"""

from __future__ import annotations

from typing import Dict, Mapping, Optional

import numpy as np
from scipy.spatial.distance import cosine

from .statistics import jaccard
from .thresholds import DEFAULT_CANDIDATE_THRESHOLDS, ThresholdRegistry

__all__ = [
    "compute_candidate_metrics",
    "passes_candidate_filter",
]


def _soft_sign(weight: float, soft_threshold: float) -> int:
    if abs(weight) < soft_threshold:
        return 0
    return 1 if weight > 0 else -1


def compute_candidate_metrics(
    weights_a: Mapping[str, float],
    weights_b: Mapping[str, float],
    thresholds: Optional[ThresholdRegistry] = None,
) -> Dict[str, float]:
    """Compare two weight vectors.

    Parameters
    ----------
    weights_a, weights_b : mapping
        ``{axis: weight}`` for each prototype.
    thresholds : ThresholdRegistry, optional
        Registry with the ``candidate.*`` keys.  Defaults to
        :data:`DEFAULT_CANDIDATE_THRESHOLDS`.

    Returns
    -------
    dict
        ``active_axis_overlap``, ``sign_agreement``,
        ``weight_cosine_similarity``.
    """
    reg = thresholds if thresholds is not None else DEFAULT_CANDIDATE_THRESHOLDS
    eps = reg["candidate.active_axis_epsilon"]
    soft = reg["candidate.soft_sign_threshold"]

    active_a = {k for k, w in weights_a.items() if abs(w) >= eps}
    active_b = {k for k, w in weights_b.items() if abs(w) >= eps}
    shared = active_a & active_b

    overlap = jaccard(
        len(shared), len(active_a | active_b),
        empty_value=reg["candidate.jaccard_empty_set_value"])

    if shared:
        agree = 0
        for axis in shared:
            sa = _soft_sign(weights_a[axis], soft)
            sb = _soft_sign(weights_b[axis], soft)
            if sa == 0 or sb == 0 or sa == sb:
                agree += 1
        sign_agreement = agree / len(shared)
    else:
        sign_agreement = 0.0

    axes = sorted(set(weights_a) | set(weights_b))
    va = np.array([weights_a.get(k, 0.0) for k in axes], dtype=float)
    vb = np.array([weights_b.get(k, 0.0) for k in axes], dtype=float)
    if va.size == 0 or not va.any() or not vb.any():
        cos_sim = 0.0
    else:
        cos_sim = float(np.clip(1.0 - cosine(va, vb), -1.0, 1.0))

    return {
        "active_axis_overlap": overlap,
        "sign_agreement": sign_agreement,
        "weight_cosine_similarity": cos_sim,
    }


def passes_candidate_filter(
    metrics: Mapping[str, float],
    thresholds: Optional[ThresholdRegistry] = None,
) -> bool:
    """True when all three structural metrics clear their minimums."""
    reg = thresholds if thresholds is not None else DEFAULT_CANDIDATE_THRESHOLDS
    return (
        metrics.get("active_axis_overlap", 0.0)
        >= reg["candidate.min_active_axis_overlap"]
        and metrics.get("sign_agreement", 0.0)
        >= reg["candidate.min_sign_agreement"]
        and metrics.get("weight_cosine_similarity", 0.0)
        >= reg["candidate.min_cosine_similarity"]
    )
