"""
Dense circuit matrices by repeated simulation.

Runs the full pipeline once per basis input, so cost is exponential in the
number of qubits. Meant for checking small circuits.
"""

from __future__ import annotations

import logging
from typing import Optional, Union
import numpy as np
from scipy import sparse

from qpipe.core.initial_state import InitialState
from qpipe.core.qubits import Qubit
from qpipe.runtime.config import SimulatorConfig
from qpipe.runtime.engine import run_local_with_init
from qpipe.utils.bits import flip_bits, flip_bits_array

logger = logging.getLogger(__name__)


def make_circuit_matrix(
    n: int,
    q: Qubit,
    natural_order: bool = True,
    sparse_output: bool = False,
    config: Optional[SimulatorConfig] = None
) -> Union[np.ndarray, sparse.csr_matrix]:
    """
    Build the ``2**n x 2**n`` matrix of the circuit ending in ``q``.

    Column ``i`` is the output state for basis input ``i``. With
    ``natural_order`` qubit 0 is the least significant bit of both row and
    column indices (the convention Qiskit uses), otherwise it is the most
    significant (the simulator's internal order).

    Args:
        n: Total number of qubits of the circuit
        q: Terminal qubit handle
        natural_order: Index convention for rows and columns
        sparse_output: Return a ``scipy.sparse.csr_matrix``
        config: Simulator configuration for every run

    Returns:
        Circuit matrix
    """
    dim = 1 << n
    indices = list(range(n))
    matrix = np.zeros((dim, dim), dtype=np.complex128)

    if natural_order:
        rows = flip_bits_array(n, np.arange(dim))
    else:
        rows = np.arange(dim)

    for i in range(dim):
        indx = i if natural_order else flip_bits(n, i)
        state, _ = run_local_with_init(q, [(indices, InitialState.from_index(indx))], config)
        if state.n != n:
            raise ValueError(f"Circuit spans {state.n} qubits, expected {n}")
        matrix[:, i] = state.state[rows]
        if (i + 1) % 64 == 0:
            logger.debug("Circuit matrix: %d/%d columns", i + 1, dim)

    if sparse_output:
        return sparse.csr_matrix(matrix)
    return matrix
