"""Axis catalogue and raw → normalized conversions.

The simulation stores every axis on a 0..100 (or −100..100) authoring
scale; gates and intensity weights are written against the normalized
scale.  The three normalizers here must reproduce the runtime's
arithmetic exactly, otherwise diagnostics would evaluate gates against
different numbers than the live engine does.

=============  ===============  ==========================
Group          Raw range        Normalized range
=============  ===============  ==========================
mood           [-100, 100]      [-1, 1]  (no clamping)
sexual         [0, 100]         [0, 1]   (clamped)
affect trait   [0, 100]         [0, 1]   (clamped, default 0.5)
=============  ===============  ==========================

Usage
-----
>>> from prototype_overlap.axes import normalize_mood_axes
>>> normalize_mood_axes({"valence": 40, "threat": -20})
{'valence': 0.4, 'threat': -0.2}
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Tuple

from .statistics import clamp01, is_finite_number

__all__ = [
    "MOOD_AXES",
    "SEXUAL_AXES",
    "AFFECT_TRAIT_AXES",
    "AXIS_TYPE_RANGES",
    "DEFAULT_AFFECT_TRAIT_VALUE",
    "axis_type_for",
    "normalize_mood_axes",
    "normalize_sexual_axes",
    "normalize_affect_traits",
]


MOOD_AXES: Tuple[str, ...] = (
    "valence",
    "arousal",
    "agency_control",
    "threat",
    "engagement",
    "future_expectancy",
    "self_evaluation",
    "affiliation",
)

SEXUAL_AXES: Tuple[str, ...] = (
    "sex_excitation",
    "sex_inhibition",
    "baseline_libido",
    "sexual_arousal",
    "sexual_inhibition",
)

AFFECT_TRAIT_AXES: Tuple[str, ...] = (
    "affective_empathy",
    "cognitive_empathy",
    "harm_aversion",
    "self_control",
)

AXIS_TYPE_RANGES: Dict[str, Tuple[float, float]] = {
    "affect_trait": (0.0, 1.0),
    "mood": (-1.0, 1.0),
    "sexual": (0.0, 1.0),
    "intensity": (0.0, 1.0),
}

DEFAULT_AFFECT_TRAIT_VALUE: float = 50.0
"""Raw value assumed for a missing affect trait (→ 0.5 normalized)."""


def axis_type_for(axis: str) -> str:
    """Classify an axis name (or dotted path) into its axis type.

    Only the last path segment is looked at, so ``moodAxes.threat`` and
    ``threat`` are both ``"mood"``.  Unknown names fall back to
    ``"intensity"`` (emotion / prototype intensities live on [0, 1]).
    """
    name = axis.rsplit(".", 1)[-1]
    if name in AFFECT_TRAIT_AXES:
        return "affect_trait"
    if name in MOOD_AXES:
        return "mood"
    if name in SEXUAL_AXES:
        return "sexual"
    return "intensity"


# ═══════════════════════════════════════════════════════════════════
# Normalizers
# ═══════════════════════════════════════════════════════════════════

def normalize_mood_axes(raw: Optional[Mapping[str, Any]]) -> Dict[str, float]:
    """Divide every numeric mood value by 100.

    Non-numeric entries are dropped, exactly as the runtime skips them.
    Values outside [-100, 100] are *not* clamped.
    """
    out: Dict[str, float] = {}
    if not raw:
        return out
    for axis, value in raw.items():
        if is_finite_number(value):
            out[axis] = value / 100
    return out


def normalize_sexual_axes(
    raw: Optional[Mapping[str, Any]],
    sexual_arousal: Optional[float] = None,
) -> Dict[str, float]:
    """Normalize sexual state into ``[0, 1]``.

    Parameters
    ----------
    raw : mapping
        Raw sexual state, e.g. ``{"sex_excitation": 60,
        "sex_inhibition": 20, "baseline_libido": 10}``.
    sexual_arousal : float, optional
        Pre-computed arousal on the normalized scale.  When omitted it
        is derived as ``clamp01((excitation − inhibition + baseline) /
        100)`` with missing parts read as 0.

    Notes
    -----
    ``sexual_arousal`` is always present (0.0 for an empty state).
    ``baseline_libido`` only feeds the arousal formula and is not
    emitted.  ``sexual_inhibition`` is accepted as an alias for
    ``sex_inhibition`` and both outputs carry the same value, but the
    arousal formula reads ``sex_inhibition`` alone.  Small raw
    magnitudes are not rejected: a raw ``1`` becomes ``0.01``.
    """
    raw = raw or {}
    out: Dict[str, float] = {}

    if is_finite_number(sexual_arousal):
        out["sexual_arousal"] = clamp01(float(sexual_arousal))
    else:
        excitation, inhibition, baseline = (
            raw.get(axis) if is_finite_number(raw.get(axis)) else 0
            for axis in ("sex_excitation", "sex_inhibition", "baseline_libido"))
        out["sexual_arousal"] = clamp01(
            (excitation - inhibition + baseline) / 100)

    inhibition = raw.get("sex_inhibition")
    if not is_finite_number(inhibition):
        inhibition = raw.get("sexual_inhibition")
    if is_finite_number(inhibition):
        out["sex_inhibition"] = out["sexual_inhibition"] = clamp01(
            inhibition / 100)

    excitation = raw.get("sex_excitation")
    if is_finite_number(excitation):
        out["sex_excitation"] = clamp01(excitation / 100)
    return out


def normalize_affect_traits(
    raw: Optional[Mapping[str, Any]],
) -> Dict[str, float]:
    """Normalize every numeric trait given, then fill missing known traits.

    Traits outside :data:`AFFECT_TRAIT_AXES` are kept, since gates may
    read them.  Missing or non-numeric known traits become 0.5.
    """
    raw = raw or {}
    out: Dict[str, float] = {
        trait: clamp01(value / 100)
        for trait, value in raw.items()
        if is_finite_number(value)
    }
    for trait in AFFECT_TRAIT_AXES:
        out.setdefault(trait, DEFAULT_AFFECT_TRAIT_VALUE / 100)
    return out
