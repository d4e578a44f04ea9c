"""Axis intervals and knife-edge constraints.

An :class:`AxisInterval` is the feasible ``[min, max]`` range of one
axis after a set of gates has been applied.  When gates squeeze an
interval down to (almost) a single point the branch is technically
satisfiable but fragile; such intervals are recorded as
:class:`KnifeEdge` warnings.

Usage
-----
>>> from prototype_overlap.intervals import AxisInterval, KnifeEdge
>>> iv = AxisInterval.for_mood_axis().intersect(AxisInterval(0.1, 0.1))
>>> ke = KnifeEdge("agency_control", iv.min, iv.max,
...                contributing_prototypes=["flow", "interest"])
>>> ke.severity                 # 'critical'
>>> ke.to_warning_message()
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from .errors import ModelValidationError
from .statistics import is_finite_number

__all__ = [
    "AxisInterval",
    "KnifeEdge",
]


# ═══════════════════════════════════════════════════════════════════
# AxisInterval
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class AxisInterval:
    """Closed interval ``[min, max]`` on a normalized axis.

    ``min > max`` is allowed and means *empty*; that is how contradicting
    gates surface during feasibility analysis.
    """

    min: float
    max: float

    @classmethod
    def for_mood_axis(cls) -> "AxisInterval":
        return cls(-1.0, 1.0)

    @classmethod
    def for_sexual_axis(cls) -> "AxisInterval":
        return cls(0.0, 1.0)

    @classmethod
    def for_axis_type(cls, axis_type: str) -> "AxisInterval":
        """Full default range for an axis type (see :mod:`.axes`)."""
        if axis_type == "mood":
            return cls.for_mood_axis()
        return cls(0.0, 1.0)

    @property
    def is_empty(self) -> bool:
        return self.min > self.max

    @property
    def width(self) -> float:
        """``max − min``, or 0 when empty."""
        return max(0.0, self.max - self.min)

    def contains(self, value: float) -> bool:
        return self.min <= value <= self.max

    def intersect(self, other: "AxisInterval") -> "AxisInterval":
        return AxisInterval(max(self.min, other.min), min(self.max, other.max))

    def with_min(self, value: float) -> "AxisInterval":
        return AxisInterval(max(self.min, value), self.max)

    def with_max(self, value: float) -> "AxisInterval":
        return AxisInterval(self.min, min(self.max, value))

    def to_dict(self) -> Dict[str, float]:
        return {"min": self.min, "max": self.max}

    @classmethod
    def from_dict(cls, d: Dict[str, float]) -> "AxisInterval":
        return cls(float(d["min"]), float(d["max"]))

    def __str__(self) -> str:
        return f"[{self.min:.2f}, {self.max:.2f}]"


# ═══════════════════════════════════════════════════════════════════
# KnifeEdge
# ═══════════════════════════════════════════════════════════════════

_SEVERITY_ICONS = {
    "critical": "🔴",
    "warning": "🟡",
    "info": "🔵",
}


@dataclass(frozen=True)
class KnifeEdge:
    """A feasible but near-zero-width axis interval.

    Parameters
    ----------
    axis : str
        Axis name, e.g. ``"agency_control"``.
    min, max : float
        Normalized bounds (``max >= min``).
    contributing_prototypes : list[str]
        Prototypes whose gates produced the squeeze.
    contributing_gates : list[str]
        The gate strings responsible.

    Raises
    ------
    ModelValidationError
        On an empty axis, non-numeric bounds, ``max < min`` or
        non-list contributor collections.
    """

    axis: str
    min: float
    max: float
    contributing_prototypes: Tuple[str, ...] = field(default_factory=tuple)
    contributing_gates: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not isinstance(self.axis, str) or not self.axis:
            raise ModelValidationError(
                "KnifeEdge requires non-empty axis string")
        if not is_finite_number(self.min):
            raise ModelValidationError("KnifeEdge requires numeric min value")
        if not is_finite_number(self.max):
            raise ModelValidationError("KnifeEdge requires numeric max value")
        if self.max < self.min:
            raise ModelValidationError(
                f"KnifeEdge max ({self.max}) cannot be less than "
                f"min ({self.min})")
        if not isinstance(self.contributing_prototypes, (list, tuple)):
            raise ModelValidationError(
                "contributing_prototypes must be a list")
        if not isinstance(self.contributing_gates, (list, tuple)):
            raise ModelValidationError("contributing_gates must be a list")
        # freeze caller-supplied lists
        object.__setattr__(
            self, "contributing_prototypes",
            tuple(self.contributing_prototypes))
        object.__setattr__(
            self, "contributing_gates", tuple(self.contributing_gates))

    # ── geometry ────────────────────────────────────────────────

    @property
    def width(self) -> float:
        return self.max - self.min

    @property
    def is_point(self) -> bool:
        return self.width == 0

    def is_below_threshold(self, threshold: float = 0.02) -> bool:
        """True when the interval width is at most *threshold*."""
        return self.width <= threshold

    @property
    def severity(self) -> str:
        """``critical`` for a point, ``warning`` ≤ 0.01, else ``info``."""
        if self.width == 0:
            return "critical"
        if self.width <= 0.01:
            return "warning"
        return "info"

    # ── raw (authoring) scale ───────────────────────────────────

    @staticmethod
    def to_raw_scale(value: float) -> float:
        """Convert a normalized value to the 0..100 authoring scale."""
        return round(value * 100, 10)

    @property
    def raw_min(self) -> float:
        return self.to_raw_scale(self.min)

    @property
    def raw_max(self) -> float:
        return self.to_raw_scale(self.max)

    @property
    def raw_width(self) -> float:
        return self.to_raw_scale(self.width)

    # ── formatting ──────────────────────────────────────────────

    def format_interval(self) -> str:
        if self.is_point:
            return f"exactly {self.min:.2f}"
        return f"[{self.min:.2f}, {self.max:.2f}]"

    def format_raw_interval(self) -> str:
        if self.is_point:
            return f"{self.raw_min:g}"
        return f"[{self.raw_min:g}, {self.raw_max:g}]"

    def format_interval_dual_scale(self) -> str:
        """Normalized interval followed by its raw-scale equivalent."""
        if self.is_point:
            return f"exactly {self.min:.2f} (raw: {self.raw_min:g})"
        return f"{self.format_interval()} (raw: {self.format_raw_interval()})"

    def format_contributors(self) -> str:
        if not self.contributing_prototypes:
            return "unknown"
        return " ∧ ".join(self.contributing_prototypes)

    def to_warning_message(self) -> str:
        icon = _SEVERITY_ICONS[self.severity]
        if self.is_point:
            body = (
                f"{self.axis} must be exactly {self.min:.2f} "
                f"({self.raw_min:g} in game values)")
        else:
            body = (
                f"{self.axis} must be in {self.format_interval()} "
                f"({self.format_raw_interval()} in game values)")
        return (
            f"{icon} Knife-edge: {body}, width: {self.width:.3f}, "
            f"caused by: {self.format_contributors()}")

    def to_display_dict(self) -> Dict[str, Any]:
        """Flat dict for report tables."""
        return {
            "axis": self.axis,
            "interval": self.format_interval(),
            "interval_dual_scale": self.format_interval_dual_scale(),
            "width": f"{self.width:.3f}",
            "raw_width": self.raw_width,
            "min": self.min,
            "max": self.max,
            "raw_min": self.raw_min,
            "raw_max": self.raw_max,
            "cause": self.format_contributors(),
            "gates": list(self.contributing_gates),
            "severity": self.severity,
        }

    # ── serialisation ───────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "axis": self.axis,
            "min": self.min,
            "max": self.max,
            "contributing_prototypes": list(self.contributing_prototypes),
            "contributing_gates": list(self.contributing_gates),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "KnifeEdge":
        return cls(
            axis=d["axis"],
            min=d["min"],
            max=d["max"],
            contributing_prototypes=d.get("contributing_prototypes", []),
            contributing_gates=d.get("contributing_gates", []),
        )

    def __str__(self) -> str:
        return (
            f"KnifeEdge({self.axis}: {self.format_interval()}, "
            f"width={self.width:.3f})")
