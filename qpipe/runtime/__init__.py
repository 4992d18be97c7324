"""Runtime components for qpipe execution."""

from qpipe.runtime.config import SimulatorConfig
from qpipe.runtime.state import QuantumState, LocalQuantumState
from qpipe.runtime.engine import (
    MeasuredResults,
    run,
    run_with_init,
    run_with_statebuilder,
    run_local,
    run_local_with_init,
)

__all__ = [
    "SimulatorConfig",
    "QuantumState",
    "LocalQuantumState",
    "MeasuredResults",
    "run",
    "run_with_init",
    "run_with_statebuilder",
    "run_local",
    "run_local_with_init",
]
