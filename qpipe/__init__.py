"""
qpipe - quantum circuit simulation pipeline

Builds circuits as a lazily-evaluated qubit dependency graph and runs them
against a double-buffered complex state vector.
"""

from qpipe.core.qubits import QubitGraph
from qpipe.runtime.engine import run_local, run_local_with_init
from qpipe.utils.matrix import make_circuit_matrix

__version__ = "0.1.0"
__all__ = ["QubitGraph", "run_local", "run_local_with_init", "make_circuit_matrix"]
