"""Collaborator protocols consumed by the evaluator.

The engine never simulates emotions itself.  Random state generation,
context building, gate checking, intensity computation and gate
implication analysis are supplied by the host application through
these narrow structural interfaces.  Any object with matching methods
satisfies a protocol; no inheritance is required.

All collaborators are treated as synchronous pure functions of their
inputs.

Prototype shape
---------------
A prototype is any mapping with::

    {"id": "joy",                       # optional, used in logs
     "weights": {"valence": 0.8, ...},  # axis → signed weight
     "gates": ["valence >= 0.35", ...]} # ordered gate strings
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Protocol, runtime_checkable

__all__ = [
    "Prototype",
    "RawState",
    "RandomStateGenerator",
    "ContextBuilder",
    "PrototypeGateChecker",
    "PrototypeIntensityCalculator",
    "GateConstraintExtractor",
    "GateImplicationEvaluator",
    "PARSE_STATUSES",
]


Prototype = Mapping[str, Any]
RawState = Mapping[str, Any]
"""``{"current": ..., "previous": ..., "affect_traits": ...}``"""

PARSE_STATUSES = ("complete", "partial", "failed")


@runtime_checkable
class RandomStateGenerator(Protocol):
    """Draws one raw simulation state per call."""

    def generate(self) -> RawState:
        """Return ``{"current", "previous", "affect_traits"}``."""
        ...


@runtime_checkable
class ContextBuilder(Protocol):
    """Turns raw state into the normalized context gates are checked on."""

    def build_context(
        self,
        current: Any,
        previous: Any,
        affect_traits: Any,
    ) -> Dict[str, Any]:
        ...


@runtime_checkable
class PrototypeGateChecker(Protocol):

    def check_all_gates_pass(
        self,
        prototype: Prototype,
        context: Mapping[str, Any],
    ) -> bool:
        """True when every gate of *prototype* holds in *context*."""
        ...


@runtime_checkable
class PrototypeIntensityCalculator(Protocol):

    def compute_intensity(
        self,
        prototype: Prototype,
        context: Mapping[str, Any],
    ) -> float:
        """Intensity in ``[0, 1]`` of *prototype* under *context*."""
        ...


@runtime_checkable
class GateConstraintExtractor(Protocol):
    """Static gate analysis for a single prototype."""

    def extract(self, prototype: Prototype) -> Mapping[str, Any]:
        """Return ``{"parse_status", "intervals", "unparsed_gates"}``.

        ``parse_status`` is one of :data:`PARSE_STATUSES`.
        """
        ...


@runtime_checkable
class GateImplicationEvaluator(Protocol):
    """Decides whether one prototype's gate region contains the other's."""

    def evaluate(
        self,
        intervals_a: Any,
        intervals_b: Any,
    ) -> Mapping[str, Any]:
        """Return the implication record.

        Keys: ``a_implies_b``, ``b_implies_a``, ``counter_example_axes``,
        ``evidence`` (list of ``{"axis", "interval_a", "interval_b"}``,
        intervals as ``{"lower", "upper"}``), ``relation`` and
        ``is_vacuous``.
        """
        ...
