"""
Pipeline executor.

Resolves the graph behind a terminal qubit, builds an initial state sized to
its frontier and folds the ordered operations over (state, results).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import partial, reduce
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple, Type

from qpipe.compiler.resolver import frontier_size, get_ops_and_frontier
from qpipe.core.errors import DuplicateMeasurementIdError
from qpipe.core.initial_state import QubitInitialState
from qpipe.core.modifiers import ModifierKind, StateModifier
from qpipe.core.qubits import Qubit
from qpipe.runtime.config import SimulatorConfig
from qpipe.runtime.state import LocalQuantumState, QuantumState

logger = logging.getLogger(__name__)


@dataclass
class MeasuredResults:
    """
    Measurement outcomes of one pipeline run.

    Attributes:
        results: measurement id -> (outcome sub-index, probability of that outcome)
    """
    results: Dict[int, Tuple[int, float]] = field(default_factory=dict)

    def record(self, measurement_id: int, result: Tuple[int, float], validate: bool = False) -> None:
        """Store a result; a repeated id overwrites unless ``validate``."""
        if measurement_id in self.results:
            if validate:
                raise DuplicateMeasurementIdError(
                    f"Measurement id {measurement_id} was recorded twice"
                )
            logger.debug("Measurement id %d overwritten", measurement_id)
        self.results[measurement_id] = result

    def outcome(self, measurement_id: int) -> int:
        return self.results[measurement_id][0]

    def probability(self, measurement_id: int) -> float:
        return self.results[measurement_id][1]

    def __getitem__(self, measurement_id: int) -> Tuple[int, float]:
        return self.results[measurement_id]

    def __contains__(self, measurement_id: int) -> bool:
        return measurement_id in self.results

    def __iter__(self) -> Iterator[int]:
        return iter(self.results)

    def __len__(self) -> int:
        return len(self.results)


StateBuilder = Callable[[List[Qubit]], QuantumState]


def fold_modify_state(
    acc: Tuple[QuantumState, MeasuredResults],
    modifier: StateModifier,
    validate: bool = False
) -> Tuple[QuantumState, MeasuredResults]:
    """Apply one modifier to the state, recording measurement results."""
    state, measured = acc
    if modifier.kind == ModifierKind.UNITARY:
        state.apply_op(modifier.op)
    elif modifier.kind == ModifierKind.MEASURE:
        result = state.measure(modifier.indices)
        measured.record(modifier.measurement_id, result, validate)
    else:
        raise ValueError(f"Unknown modifier kind: {modifier.kind}")
    logger.debug("Applied %r", modifier)
    return state, measured


def run_with_statebuilder(
    q: Qubit,
    state_builder: StateBuilder,
    config: Optional[SimulatorConfig] = None
) -> Tuple[QuantumState, MeasuredResults]:
    """
    Run the pipeline behind ``q`` on a state made by ``state_builder``.

    The builder receives the frontier qubits; every other entry point is
    this function with a particular builder.
    """
    config = config or SimulatorConfig()
    frontier, ops = get_ops_and_frontier(q, check=config.validate)
    state = state_builder(frontier)
    fold = partial(fold_modify_state, validate=config.validate)
    return reduce(fold, ops, (state, MeasuredResults()))


def run(
    q: Qubit,
    state_cls: Type[QuantumState] = LocalQuantumState,
    config: Optional[SimulatorConfig] = None
) -> Tuple[QuantumState, MeasuredResults]:
    """Run the pipeline from |0...0⟩ sized to the frontier."""
    return run_with_statebuilder(
        q,
        lambda frontier: state_cls.new(frontier_size(frontier), config),
        config,
    )


def run_with_init(
    q: Qubit,
    states: Sequence[QubitInitialState],
    state_cls: Type[QuantumState] = LocalQuantumState,
    config: Optional[SimulatorConfig] = None
) -> Tuple[QuantumState, MeasuredResults]:
    """Run the pipeline from the given subset initial states."""
    return run_with_statebuilder(
        q,
        lambda frontier: state_cls.from_initial_states(frontier_size(frontier), states, config),
        config,
    )


def run_local(
    q: Qubit,
    config: Optional[SimulatorConfig] = None
) -> Tuple[LocalQuantumState, MeasuredResults]:
    """:func:`run` using :class:`LocalQuantumState`."""
    return run(q, LocalQuantumState, config)


def run_local_with_init(
    q: Qubit,
    states: Sequence[QubitInitialState],
    config: Optional[SimulatorConfig] = None
) -> Tuple[LocalQuantumState, MeasuredResults]:
    """:func:`run_with_init` using :class:`LocalQuantumState`."""
    return run_with_init(q, states, LocalQuantumState, config)
