"""Gate constraints — single ``axis OP value`` threshold conditions.

A prototype is guarded by an ordered list of gate strings such as
``"valence >= 0.35"`` or ``"moodAxes.threat <= 0.20"``.  This module
parses one gate into an immutable :class:`GateConstraint`, classifies
the gated axis, and checks that the threshold lies inside the axis'
normalized range.

Parse failures raise :class:`~prototype_overlap.errors.GateParseError`.
Out-of-range thresholds are *not* parse failures: they come back as a
:class:`GateValidation` with ``valid=False`` and a readable ``issue``,
unless the caller opts into ``throw_on_invalid``.

Usage
-----
>>> from prototype_overlap.gates import GateConstraint
>>> gate = GateConstraint.parse("self_control <= -0.10")
>>> gate.axis_type                          # 'affect_trait'
>>> gate.validate_value_range().issue
"affect_trait axis 'self_control' threshold -0.1 is below minimum 0 (...)"
"""

from __future__ import annotations

import operator as _op
import re
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

import numpy as np

from .axes import AXIS_TYPE_RANGES, axis_type_for
from .errors import GateParseError, GateValidationError
from .intervals import AxisInterval
from .statistics import is_finite_number

__all__ = [
    "GATE_OPERATORS",
    "GateConstraint",
    "GateValidation",
]


_GATE_RE = re.compile(
    r"^\s*(\w+(?:\.\w+)*)\s*(>=|<=|>|<|==)\s*(-?(?:\d+\.?\d*|\.\d+))\s*$"
)

GATE_OPERATORS: Dict[str, Callable[[float, float], bool]] = {
    ">=": _op.ge,
    "<=": _op.le,
    ">": _op.gt,
    "<": _op.lt,
    "==": _op.eq,
}


def _fmt(value: float) -> str:
    """Shortest faithful decimal for messages (``-0.1``, ``0``, ``1.5``)."""
    return np.format_float_positional(float(value), trim="-")


# ═══════════════════════════════════════════════════════════════════
# GateValidation
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class GateValidation:
    """Outcome of a range check: ``issue`` is ``None`` iff ``valid``."""

    valid: bool
    issue: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        return {"valid": self.valid, "issue": self.issue}


# ═══════════════════════════════════════════════════════════════════
# GateConstraint
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class GateConstraint:
    """One parsed gate condition.

    Parameters
    ----------
    variable_path : str
        Axis name or dotted path (the last segment names the axis).
    operator : str
        One of ``>=``, ``<=``, ``>``, ``<``, ``==``.
    threshold_value : float
        Threshold on the normalized scale.
    """

    variable_path: str
    operator: str
    threshold_value: float

    def __post_init__(self):
        if self.operator not in GATE_OPERATORS:
            raise GateParseError(
                f"Unsupported gate operator {self.operator!r}; "
                f"expected one of {sorted(GATE_OPERATORS)}")

    # ── construction ────────────────────────────────────────────

    @classmethod
    def parse(cls, text: str) -> "GateConstraint":
        """Parse ``"<path> <op> <number>"``.

        Raises
        ------
        GateParseError
            If *text* is not a string or does not match the gate grammar.
        """
        if not isinstance(text, str):
            raise GateParseError(
                f"Gate must be a string, got {type(text).__name__}")
        match = _GATE_RE.match(text)
        if match is None:
            raise GateParseError(f"Cannot parse gate: {text!r}")
        path, op, value = match.groups()
        return cls(path, op, float(value))

    @classmethod
    def parse_and_validate(
        cls,
        text: str,
        throw_on_invalid: bool = False,
    ) -> Tuple["GateConstraint", GateValidation]:
        """Parse *text* and check its threshold against the axis range.

        Raises
        ------
        GateParseError
            On malformed input (always).
        GateValidationError
            Only when *throw_on_invalid* is set and the range check fails.
        """
        gate = cls.parse(text)
        validation = gate.validate_value_range()
        if throw_on_invalid and not validation.valid:
            raise GateValidationError(
                f"Invalid gate {text!r}: {validation.issue}")
        return gate, validation

    # ── derived ─────────────────────────────────────────────────

    @property
    def axis_name(self) -> str:
        return self.variable_path.rsplit(".", 1)[-1]

    @property
    def axis_type(self) -> str:
        """``affect_trait``, ``mood``, ``sexual`` or ``intensity``."""
        return axis_type_for(self.variable_path)

    @property
    def valid_range(self) -> Tuple[float, float]:
        return AXIS_TYPE_RANGES.get(
            self.axis_type, AXIS_TYPE_RANGES["intensity"])

    def validate_value_range(self) -> GateValidation:
        lo, hi = self.valid_range
        value = self.threshold_value
        if lo <= value <= hi:
            return GateValidation(True, None)

        if value < lo:
            bound = f"is below minimum {_fmt(lo)}"
        else:
            bound = f"exceeds maximum {_fmt(hi)}"
        issue = (
            f"{self.axis_type} axis '{self.axis_name}' threshold "
            f"{_fmt(value)} {bound}"
        )
        if self.axis_type == "affect_trait":
            issue += (
                " (affect traits are normalized from [0..100] to [0..1])")
        return GateValidation(False, issue)

    # ── evaluation ──────────────────────────────────────────────

    def is_satisfied_by(self, value) -> bool:
        """Evaluate the gate for a normalized *value*.

        Non-numeric or ``NaN`` values never satisfy a gate; ``==`` is an
        exact float comparison.
        """
        if not is_finite_number(value):
            return False
        return GATE_OPERATORS[self.operator](value, self.threshold_value)

    def apply_to(self, interval: AxisInterval) -> AxisInterval:
        """Narrow *interval* to the region where this gate can hold.

        Strict and non-strict bounds narrow identically; a closed
        interval cannot represent an open endpoint.
        """
        t = self.threshold_value
        if self.operator in (">=", ">"):
            return interval.with_min(t)
        if self.operator in ("<=", "<"):
            return interval.with_max(t)
        return interval.with_min(t).with_max(t)

    # ── serialisation ───────────────────────────────────────────

    def to_dict(self) -> Dict[str, object]:
        return {
            "variable_path": self.variable_path,
            "operator": self.operator,
            "threshold_value": self.threshold_value,
            "axis_type": self.axis_type,
        }

    def __str__(self) -> str:
        return f"{self.variable_path} {self.operator} {_fmt(self.threshold_value)}"
