"""Core qpipe components: qubit graph, modifiers, operators, and initial states."""

from qpipe.core.qubits import Qubit, QubitGraph, Parent, ParentKind
from qpipe.core.modifiers import StateModifier, ModifierKind
from qpipe.core.operators import QubitOp, OpKind
from qpipe.core.initial_state import (
    InitialState,
    InitialStateKind,
    QubitInitialState,
    build_initial_vector,
)
from qpipe.core.errors import (
    QubitConsumedError,
    StateConsumedError,
    OverlappingInitialIndicesError,
    IndexOutOfRangeError,
    DuplicateMeasurementIdError,
    GraphCycleError,
)

__all__ = [
    # Qubit graph
    "Qubit",
    "QubitGraph",
    "Parent",
    "ParentKind",
    # Operations
    "StateModifier",
    "ModifierKind",
    "QubitOp",
    "OpKind",
    # Initial states
    "InitialState",
    "InitialStateKind",
    "QubitInitialState",
    "build_initial_vector",
    # Errors
    "QubitConsumedError",
    "StateConsumedError",
    "OverlappingInitialIndicesError",
    "IndexOutOfRangeError",
    "DuplicateMeasurementIdError",
    "GraphCycleError",
]
