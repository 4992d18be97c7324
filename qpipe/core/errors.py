"""Exception types raised by qpipe."""

from __future__ import annotations


class QubitConsumedError(ValueError):
    """A qubit handle was used as an owned parent more than once."""


class StateConsumedError(RuntimeError):
    """A state was used after its amplitudes were exported."""


class OverlappingInitialIndicesError(ValueError):
    """Two initial-state entries declare the same qubit index."""


class IndexOutOfRangeError(ValueError):
    """An initial-state entry does not fit the declared register."""


class DuplicateMeasurementIdError(ValueError):
    """Two measurements in one run were issued under the same id."""


class GraphCycleError(ValueError):
    """The qubit dependency graph is not acyclic."""
