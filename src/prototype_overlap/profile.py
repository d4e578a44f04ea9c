"""Per-prototype shape descriptors.

A :class:`PrototypeProfile` summarizes one prototype independently of
any partner:

* ``gate_volume`` — fraction of a sampled context pool passing the
  prototype's gates
* ``weight_entropy`` — Shannon entropy (bits) of ``|w_i| / Σ|w_i|``
* ``weight_concentration`` — ``1 − H / log2(n)`` over the ``n`` nonzero
  weights; 1 for a single-axis rule, 0 for a perfectly even spread
* ``delta_from_nearest_center`` / ``nearest_cluster_id`` — Euclidean
  distance to the closest externally supplied cluster center
* ``is_expression_candidate`` — narrow (low volume) and focused (high
  concentration); such a rule reads better as a derived modifier than
  as a standalone emotion

The agreement rule set uses ``gate_volume`` for its "dead prototype"
check and ``is_expression_candidate`` for conversion.

Usage
-----
>>> calc = PrototypeProfileCalculator()
>>> profile = calc.calculate(proto, gate_volume=0.03)
>>> profile.is_expression_candidate
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping, Optional, Sequence

import numpy as np
from scipy.stats import entropy

from .collaborators import Prototype, PrototypeGateChecker
from .errors import ConfigurationError
from .thresholds import DEFAULT_PROFILE_THRESHOLDS, ThresholdRegistry

__all__ = [
    "PrototypeProfile",
    "PrototypeProfileCalculator",
    "weight_entropy",
    "weight_concentration",
]


@dataclass(frozen=True)
class PrototypeProfile:
    """Shape descriptors for a single prototype."""

    gate_volume: float
    weight_entropy: float
    weight_concentration: float
    delta_from_nearest_center: Optional[float] = None
    nearest_cluster_id: Optional[str] = None
    is_expression_candidate: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ═══════════════════════════════════════════════════════════════════
# Weight-distribution measures
# ═══════════════════════════════════════════════════════════════════

def _magnitudes(weights: Mapping[str, float]) -> np.ndarray:
    mags = np.abs(np.asarray(list(weights.values()), dtype=float))
    return mags[mags > 0]


def weight_entropy(weights: Mapping[str, float]) -> float:
    """Entropy in bits of the normalized weight magnitudes (0 if empty)."""
    mags = _magnitudes(weights)
    if mags.size == 0:
        return 0.0
    return float(entropy(mags / mags.sum(), base=2))


def weight_concentration(weights: Mapping[str, float]) -> float:
    """``1 − H / log2(n)`` in ``[0, 1]``.

    One nonzero weight gives 1.0; no nonzero weights give 0.0.
    """
    mags = _magnitudes(weights)
    if mags.size == 0:
        return 0.0
    if mags.size == 1:
        return 1.0
    h = float(entropy(mags / mags.sum(), base=2))
    return float(np.clip(1.0 - h / math.log2(mags.size), 0.0, 1.0))


# ═══════════════════════════════════════════════════════════════════
# PrototypeProfileCalculator
# ═══════════════════════════════════════════════════════════════════

_REQUIRED_KEYS = (
    "profile.low_volume_threshold",
    "profile.single_axis_focus_threshold",
)


class PrototypeProfileCalculator:
    """Build :class:`PrototypeProfile` records.

    Parameters
    ----------
    thresholds : ThresholdRegistry, optional
        ``profile.*`` keys.  Defaults to
        :data:`DEFAULT_PROFILE_THRESHOLDS`.
    """

    def __init__(self, thresholds: Optional[ThresholdRegistry] = None):
        reg = thresholds if thresholds is not None else DEFAULT_PROFILE_THRESHOLDS
        for key in _REQUIRED_KEYS:
            value = reg.get(key, None)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigurationError(
                    f"PrototypeProfileCalculator requires numeric "
                    f"threshold {key!r}")
        self.thresholds = reg

    @staticmethod
    def estimate_gate_volume(
        prototype: Prototype,
        contexts: Sequence[Mapping[str, Any]],
        gate_checker: PrototypeGateChecker,
    ) -> float:
        """Fraction of *contexts* on which all gates of *prototype* pass."""
        if not contexts:
            return 0.0
        passed = sum(
            1 for ctx in contexts
            if gate_checker.check_all_gates_pass(prototype, ctx))
        return passed / len(contexts)

    def calculate(
        self,
        prototype: Prototype,
        gate_volume: float,
        cluster_centers: Optional[Mapping[str, Mapping[str, float]]] = None,
    ) -> PrototypeProfile:
        """Profile one prototype.

        Parameters
        ----------
        prototype : Prototype
        gate_volume : float
            Pre-computed pass fraction (see :meth:`estimate_gate_volume`).
        cluster_centers : mapping, optional
            ``{cluster_id: {axis: weight}}`` from an external clustering
            step.  Without it the cluster fields stay ``None``.
        """
        weights = prototype.get("weights") or {}
        h = weight_entropy(weights)
        c = weight_concentration(weights)

        delta = cluster_id = None
        if cluster_centers:
            cluster_id, delta = _nearest_center(weights, cluster_centers)

        reg = self.thresholds
        candidate = (
            gate_volume < reg["profile.low_volume_threshold"]
            and c >= reg["profile.single_axis_focus_threshold"]
        )
        return PrototypeProfile(
            gate_volume=float(gate_volume),
            weight_entropy=h,
            weight_concentration=c,
            delta_from_nearest_center=delta,
            nearest_cluster_id=cluster_id,
            is_expression_candidate=bool(candidate),
        )

    def calculate_all(
        self,
        prototypes: Sequence[Prototype],
        contexts: Sequence[Mapping[str, Any]],
        gate_checker: PrototypeGateChecker,
        cluster_centers: Optional[Mapping[str, Mapping[str, float]]] = None,
    ) -> Dict[str, PrototypeProfile]:
        """Profile every prototype against one shared context pool.

        Keys are each prototype's ``id`` (falling back to its index).
        """
        profiles: Dict[str, PrototypeProfile] = {}
        for i, proto in enumerate(prototypes):
            volume = self.estimate_gate_volume(proto, contexts, gate_checker)
            key = str(proto.get("id", i))
            profiles[key] = self.calculate(proto, volume, cluster_centers)
        return profiles


def _nearest_center(
    weights: Mapping[str, float],
    centers: Mapping[str, Mapping[str, float]],
):
    best_id, best_dist = None, math.inf
    for cid, center in centers.items():
        axes = sorted(set(weights) | set(center))
        diff = np.array(
            [weights.get(a, 0.0) - center.get(a, 0.0) for a in axes],
            dtype=float)
        dist = float(np.linalg.norm(diff))
        if dist < best_dist:
            best_id, best_dist = cid, dist
    return best_id, best_dist
