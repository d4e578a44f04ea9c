"""Exception hierarchy for the overlap engine.

Only two things are allowed to raise during normal use: constructing a
malformed model object and parsing a malformed gate string.  Missing or
invalid configuration fails at construction time as well.  Everything
statistical degrades to ``NaN`` / ``None`` instead.

Every error subclasses :class:`ValueError` so existing callers that
catch ``ValueError`` keep working.
"""

from __future__ import annotations

__all__ = [
    "OverlapError",
    "ModelValidationError",
    "GateParseError",
    "GateValidationError",
    "ConfigurationError",
]


class OverlapError(Exception):
    """Base class for every error raised by :mod:`prototype_overlap`."""


class ModelValidationError(OverlapError, ValueError):
    """A value object was constructed with an invalid required field."""


class GateParseError(OverlapError, ValueError):
    """A gate string does not match ``<path> <op> <number>``."""


class GateValidationError(OverlapError, ValueError):
    """A gate parsed cleanly but its threshold is outside the axis range.

    Raised only when the caller opts in with ``throw_on_invalid=True``.
    """


class ConfigurationError(OverlapError, ValueError):
    """A required threshold is missing, non-numeric or out of range."""
