"""Exception hierarchy for hetdsge.

Every error raised by the registries, grid engine, index builder and
steady-state solver derives from :class:`HetDSGEError`, so callers can
catch the whole family at once.
"""

from __future__ import annotations


class HetDSGEError(Exception):
    """Base class for all hetdsge errors."""

    pass


class DuplicateNameError(HetDSGEError):
    """Raised when a parameter, steady state or setting key is registered twice."""

    pass


class UnknownParameterError(HetDSGEError, KeyError):
    """Raised when a parameter or steady-state lookup misses."""

    pass


class UnknownSettingError(HetDSGEError, KeyError):
    """Raised when a setting lookup misses in the selected map."""

    pass


class InvalidRangeError(HetDSGEError, ValueError):
    """Raised on malformed grid bounds, grid sizes or index ranges."""

    pass


class CircularSettingError(HetDSGEError):
    """Raised when derived settings depend on each other in a cycle."""

    pass


class IndexConsistencyError(HetDSGEError):
    """Raised when state/jump counts in settings disagree with the index map."""

    pass


class SteadyStateConvergenceError(HetDSGEError):
    """Raised when the steady-state solve fails to converge."""

    pass
