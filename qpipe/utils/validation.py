"""
Validation utilities for qpipe.

Compares circuit matrices produced by the pipeline against Qiskit.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional
import numpy as np

from qpipe.core.qubits import Qubit
from qpipe.runtime.config import SimulatorConfig
from qpipe.utils.matrix import make_circuit_matrix


@dataclass
class ValidationResult:
    """Result of validating a qpipe circuit against Qiskit."""
    qpipe_matrix: np.ndarray
    exact_matrix: np.ndarray
    max_error: float
    passed: bool
    threshold: float
    details: Dict[str, Any]


def validate_against_qiskit(
    q: Qubit,
    circuit,
    threshold: float = 1e-9,
    config: Optional[SimulatorConfig] = None,
    verbose: bool = False
) -> ValidationResult:
    """
    Validate the circuit ending in ``q`` against a Qiskit circuit.

    Both sides use natural order (qubit 0 is the least significant bit), so
    the matrices compare entry by entry.

    Args:
        q: Terminal qubit handle of the qpipe circuit
        circuit: Equivalent qiskit.QuantumCircuit without measurements
        threshold: Maximum allowed absolute entry error
        config: Simulator configuration
        verbose: Print a one-line summary

    Returns:
        ValidationResult with both matrices
    """
    try:
        from qiskit.quantum_info import Operator
    except ImportError:
        raise ImportError("Qiskit is required for validation. "
                         "Install with: pip install qiskit")

    n = circuit.num_qubits
    qpipe_matrix = make_circuit_matrix(n, q, natural_order=True, config=config)
    exact_matrix = np.asarray(Operator(circuit).data, dtype=np.complex128)

    max_error = float(np.max(np.abs(qpipe_matrix - exact_matrix)))
    passed = max_error <= threshold

    if verbose:
        print(f"{n} qubits, max error {max_error:.3e}: {'PASSED' if passed else 'FAILED'}")

    return ValidationResult(
        qpipe_matrix=qpipe_matrix,
        exact_matrix=exact_matrix,
        max_error=max_error,
        passed=passed,
        threshold=threshold,
        details={
            "num_qubits": n,
            "circuit_depth": circuit.depth(),
            "graph_handles": q.graph.num_handles,
        }
    )
