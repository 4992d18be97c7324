"""
Bell and GHZ demos using qpipe.

Builds circuits as a lazy qubit graph, runs them through the pipeline and
checks the circuit matrix against Qiskit.
"""

import logging
import numpy as np

from qpipe.core.operators import HADAMARD, ry_matrix
from qpipe.core.qubits import QubitGraph
from qpipe.runtime.config import SimulatorConfig
from qpipe.runtime.engine import run_local
from qpipe.utils.matrix import make_circuit_matrix


def ghz(graph: QubitGraph, num_qubits: int):
    """Build a GHZ circuit and return its terminal handle."""
    qs = [graph.qubit() for _ in range(num_qubits)]
    qs[0] = graph.apply(qs[0], HADAMARD, name="h")
    for i in range(num_qubits - 1):
        qs[i], qs[i + 1] = graph.cnot(qs[i], qs[i + 1])
    return graph.merge(qs)


def demo_bell_sampling(shots: int = 20):
    """Sample a measured Bell pair repeatedly."""
    print("=" * 60)
    print("Bell pair sampling")
    print("=" * 60)

    counts = {}
    for shot in range(shots):
        graph = QubitGraph()
        m, mid = graph.measure(ghz(graph, 2))
        _, measured = run_local(m, SimulatorConfig(seed=shot))
        outcome = measured.outcome(mid)
        counts[outcome] = counts.get(outcome, 0) + 1

    for outcome in sorted(counts):
        print(f"  |{outcome:02b}>: {counts[outcome]}")


def demo_ghz_state(num_qubits: int = 4):
    """Print the non-zero amplitudes of a GHZ state."""
    print("\n" + "=" * 60)
    print(f"GHZ state on {num_qubits} qubits")
    print("=" * 60)

    graph = QubitGraph()
    state, _ = run_local(ghz(graph, num_qubits))
    vec = state.get_state(natural_order=True)
    for i in np.flatnonzero(np.abs(vec) > 1e-12):
        print(f"  |{i:0{num_qubits}b}>: {vec[i]:.4f}")


def demo_qiskit_check():
    """Compare a small circuit's matrix with Qiskit's Operator."""
    print("\n" + "=" * 60)
    print("Circuit matrix vs Qiskit")
    print("=" * 60)

    try:
        from qiskit import QuantumCircuit
        from qiskit.quantum_info import Operator
    except ImportError:
        print("  Qiskit not installed, skipping")
        return

    graph = QubitGraph()
    q0, q1 = graph.qubit(), graph.qubit()
    q0 = graph.apply(q0, ry_matrix(0.4))
    q0, q1 = graph.cnot(q0, q1)
    matrix = make_circuit_matrix(2, graph.merge([q0, q1]))

    qc = QuantumCircuit(2)
    qc.ry(0.4, 0)
    qc.cx(0, 1)
    error = np.max(np.abs(matrix - Operator(qc).data))
    print(f"  Max entry error: {error:.3e}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    demo_bell_sampling()
    demo_ghz_state()
    demo_qiskit_check()
