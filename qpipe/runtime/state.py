"""
Double-buffered state vector.

A state owns two equal-length buffers. Every mutation reads the current
buffer, writes the scratch buffer, then swaps the two references, so
amplitudes are never copied back.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional, Sequence, Tuple
import numpy as np

from qpipe.core.errors import StateConsumedError
from qpipe.core.initial_state import QubitInitialState, build_initial_vector
from qpipe.core.operators import QubitOp
from qpipe.runtime.config import SimulatorConfig
from qpipe.runtime.kernels import apply_kernel, measure_kernel
from qpipe.utils.bits import flip_bits_array
from qpipe.utils.parallel import fill_chunked

logger = logging.getLogger(__name__)


class QuantumState(ABC):
    """Abstract state that the pipeline folds operations into."""

    @classmethod
    @abstractmethod
    def new(cls, n: int, config: Optional[SimulatorConfig] = None) -> QuantumState:
        """Make a new state of ``n`` qubits in |0...0⟩."""
        pass

    @classmethod
    @abstractmethod
    def from_initial_states(
        cls,
        n: int,
        states: Sequence[QubitInitialState],
        config: Optional[SimulatorConfig] = None
    ) -> QuantumState:
        """Make a new state from initial states of qubit subsets."""
        pass

    @abstractmethod
    def apply_op(self, op: QubitOp) -> None:
        """Apply a unitary in place."""
        pass

    @abstractmethod
    def measure(self, indices: Sequence[int]) -> Tuple[int, float]:
        """Measure ``indices``; return (outcome, probability)."""
        pass

    @abstractmethod
    def get_state(self, natural_order: bool) -> np.ndarray:
        """
        Consume the state and return its amplitudes.

        With ``natural_order`` qubit 0 is the least significant address bit,
        otherwise it is the most significant.
        """
        pass


class LocalQuantumState(QuantumState):
    """
    State vector held in local memory, plus a scratch arena of equal size.

    Attributes:
        n: Number of qubits
        multithread: Whether bulk transforms fan out across threads
        config: Configuration the state was built with
    """

    def __init__(self, n: int, vector: np.ndarray, config: Optional[SimulatorConfig] = None):
        self.config = config or SimulatorConfig()
        # Private copy; the caller's array never becomes a working buffer
        vector = np.array(vector, dtype=np.complex128)
        if vector.shape != (1 << n,):
            raise ValueError(f"State of {n} qubits needs {1 << n} amplitudes, got {vector.shape}")
        self.n = n
        self._state = vector
        self._arena = self._state.copy()
        self.multithread = self.config.should_multithread(n)
        self._rng = self.config.make_rng()
        self._consumed = False
        logger.debug("New local state: n=%d, multithread=%s", n, self.multithread)

    @classmethod
    def new(cls, n: int, config: Optional[SimulatorConfig] = None) -> LocalQuantumState:
        return cls.from_initial_states(n, [], config)

    @classmethod
    def from_initial_states(
        cls,
        n: int,
        states: Sequence[QubitInitialState],
        config: Optional[SimulatorConfig] = None
    ) -> LocalQuantumState:
        config = config or SimulatorConfig()
        n, vector = build_initial_vector(n, states, validate=config.validate)
        return cls(n, vector, config)

    @property
    def state(self) -> np.ndarray:
        """The buffer holding the current amplitudes (read-only use)."""
        self._check_live()
        return self._state

    @property
    def arena(self) -> np.ndarray:
        """The scratch buffer the next mutation will write into."""
        self._check_live()
        return self._arena

    def _check_live(self) -> None:
        if self._consumed:
            raise StateConsumedError("State has already been exported")

    def _swap(self) -> None:
        self._state, self._arena = self._arena, self._state

    def apply_op(self, op: QubitOp) -> None:
        self._check_live()
        apply_kernel(
            self.n, op, self._state, self._arena, self.multithread,
            self.config.max_workers, self.config.chunk_size
        )
        self._swap()

    def measure(self, indices: Sequence[int]) -> Tuple[int, float]:
        self._check_live()
        result = measure_kernel(
            self.n, indices, self._state, self._arena, self._rng, self.multithread,
            self.config.max_workers, self.config.chunk_size
        )
        self._swap()
        return result

    def probabilities(self) -> np.ndarray:
        """Basis-state probabilities in internal order."""
        self._check_live()
        return np.abs(self._state) ** 2

    def get_state(self, natural_order: bool) -> np.ndarray:
        self._check_live()
        self._consumed = True
        if not natural_order:
            return self._state

        n = self.n
        state = self._state

        def fill(start, stop):
            return state[flip_bits_array(n, np.arange(start, stop))]

        fill_chunked(self._arena, fill, self.multithread, self.config.max_workers, self.config.chunk_size)
        return self._arena

    export = get_state

    def __repr__(self) -> str:
        status = "exported" if self._consumed else "live"
        return f"LocalQuantumState(n={self.n}, multithread={self.multithread}, {status})"
