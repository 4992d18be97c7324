"""
Tests for qpipe resolution, runtime and circuit matrices.
"""

import pytest
import numpy as np


def bell_circuit(graph):
    from qpipe.core.operators import HADAMARD

    q0 = graph.qubit()
    q1 = graph.qubit()
    q0 = graph.apply(q0, HADAMARD, name="h")
    q0, q1 = graph.cnot(q0, q1)
    return graph.merge([q0, q1])


class TestResolver:
    """Tests for graph resolution."""

    def test_origin_has_no_operations(self):
        """An origin resolves to itself with nothing to run."""
        from qpipe.core.qubits import QubitGraph
        from qpipe.compiler.resolver import get_ops_and_frontier

        graph = QubitGraph()
        q = graph.qubit(2)
        frontier, ops = get_ops_and_frontier(q)

        assert frontier == [q]
        assert ops == []

    def test_chain_order(self):
        """Operations on one handle come out in application order."""
        from qpipe.core.qubits import QubitGraph
        from qpipe.core.operators import HADAMARD, PAULI_X, PAULI_Z
        from qpipe.compiler.resolver import get_ops_and_frontier

        graph = QubitGraph()
        q = graph.qubit()
        q = graph.apply(q, HADAMARD, name="h")
        q = graph.apply(q, PAULI_X, name="x")
        q = graph.apply(q, PAULI_Z, name="z")

        _, ops = get_ops_and_frontier(q)
        assert [op.name for op in ops] == ["h", "x", "z"]

    def test_diamond_runs_shared_ancestor_once(self):
        """A modifier behind a shared fan-out is emitted exactly once."""
        from qpipe.core.qubits import QubitGraph
        from qpipe.core.operators import HADAMARD, PAULI_X, QubitOp
        from qpipe.compiler.resolver import get_ops_and_frontier

        graph = QubitGraph()
        q = graph.qubit(2)
        q = graph.apply(q, QubitOp.from_matrix((0,), HADAMARD), name="h")
        a, b = graph.split(q, [0])
        a = graph.apply(a, PAULI_X, name="xa")
        b = graph.apply(b, PAULI_X, name="xb")
        m = graph.merge([a, b])

        frontier, ops = get_ops_and_frontier(m)
        names = [op.name for op in ops]

        assert len(frontier) == 1
        assert names.count("h") == 1
        assert names.count("xa") == 1
        assert names.count("xb") == 1
        assert names[0] == "h"

    def test_nested_sharing(self):
        """Repeated fan-out and merge still emits each operation once."""
        from qpipe.core.qubits import QubitGraph
        from qpipe.core.operators import PAULI_X
        from qpipe.compiler.resolver import get_ops_and_frontier

        graph = QubitGraph()
        q = graph.qubit(3)
        q = graph.apply(q, np.eye(8), name="root")
        parts = graph.split_all(q)
        parts = [graph.apply(p, PAULI_X, name=f"x{i}") for i, p in enumerate(parts)]
        m = graph.merge(parts)
        a, b = graph.split(m, [2])
        m = graph.merge([graph.apply(a, PAULI_X, name="last"), b])

        _, ops = get_ops_and_frontier(m)
        names = [op.name for op in ops]
        assert sorted(names) == sorted(["root", "x0", "x1", "x2", "last"])
        assert names[0] == "root"
        assert names[-1] == "last"

    def test_multiple_origins(self):
        """Independent origins all land in the frontier."""
        from qpipe.core.qubits import QubitGraph
        from qpipe.compiler.resolver import get_ops_and_frontier, frontier_size

        graph = QubitGraph()
        a = graph.qubit(1)
        b = graph.qubit(2)
        m = graph.merge([a, b])

        frontier, ops = get_ops_and_frontier(m)
        assert set(frontier) == {a, b}
        assert frontier_size(frontier) == 3
        assert ops == []

    def test_order_is_causal(self):
        """Resolver output respects every dependency."""
        from qpipe.core.qubits import QubitGraph
        from qpipe.compiler.resolver import get_ops_and_frontier
        from qpipe.compiler.dag import is_causal_order

        graph = QubitGraph()
        m = bell_circuit(graph)
        _, ops = get_ops_and_frontier(m)

        assert is_causal_order(m, ops)
        assert not is_causal_order(m, list(reversed(ops)))
        assert not is_causal_order(m, ops + ops[:1])

    def test_every_causal_order_gives_same_state(self):
        """Any dependency-respecting order of the operations gives the same state."""
        from itertools import permutations
        from functools import reduce
        from qpipe.core.qubits import QubitGraph
        from qpipe.core.operators import HADAMARD, rx_matrix
        from qpipe.compiler.resolver import get_ops_and_frontier
        from qpipe.compiler.dag import is_causal_order
        from qpipe.runtime.engine import MeasuredResults, fold_modify_state
        from qpipe.runtime.state import LocalQuantumState

        graph = QubitGraph()
        q0, q1, q2 = graph.qubit(), graph.qubit(), graph.qubit()
        q0 = graph.apply(q0, HADAMARD, name="h")
        q2 = graph.apply(q2, rx_matrix(0.9), name="rx")
        q0, q1 = graph.cnot(q0, q1)
        q1, q2 = graph.cnot(q1, q2)
        m = graph.merge([q0, q1, q2])

        _, resolved = get_ops_and_frontier(m)

        def final_state(ops):
            state = LocalQuantumState.new(3)
            state, _ = reduce(fold_modify_state, ops, (state, MeasuredResults()))
            return state.get_state(natural_order=False)

        expected = final_state(resolved)
        orders = [list(p) for p in permutations(resolved) if is_causal_order(m, list(p))]

        # rx may run before h, between h and the first cnot, or after it
        assert len(orders) == 3
        for order in orders:
            assert np.allclose(final_state(order), expected)

    def test_dependency_graph(self):
        """The networkx view mirrors the arena."""
        from qpipe.core.qubits import QubitGraph, ParentKind
        from qpipe.compiler.dag import build_dependency_graph, origins

        graph = QubitGraph()
        m = bell_circuit(graph)
        dag = build_dependency_graph(m)

        assert dag.number_of_nodes() == graph.num_handles
        kinds = {data["kind"] for _, _, data in dag.edges(data=True)}
        assert kinds == {ParentKind.OWNED, ParentKind.SHARED}
        assert [o.handle for o in origins(m)] == [0, 1]

    def test_check_rejects_cycle(self):
        """A cyclic arena is rejected before resolving."""
        from qpipe.core.qubits import QubitGraph, Parent
        from qpipe.core.operators import PAULI_X
        from qpipe.core.errors import GraphCycleError
        from qpipe.compiler.resolver import get_ops_and_frontier

        graph = QubitGraph()
        q = graph.qubit()
        r = graph.apply(q, PAULI_X)
        # Only reachable by editing the arena directly
        graph._parents[q.handle] = Parent.owned([r.handle])

        with pytest.raises(GraphCycleError):
            get_ops_and_frontier(r, check=True)


class TestLocalState:
    """Tests for the double-buffered state."""

    def test_new_state(self):
        """A fresh state is |0...0>."""
        from qpipe.runtime.state import LocalQuantumState

        state = LocalQuantumState.new(2)
        assert state.n == 2
        assert np.allclose(state.state, [1, 0, 0, 0])
        assert np.allclose(state.probabilities(), [1, 0, 0, 0])

    def test_buffer_swap(self):
        """Each mutation swaps the two buffers by reference."""
        from qpipe.runtime.state import LocalQuantumState
        from qpipe.core.operators import PAULI_I, QubitOp

        state = LocalQuantumState.new(2)
        identity = QubitOp.from_matrix((1,), PAULI_I)
        first, second = state.state, state.arena

        state.apply_op(identity)
        assert state.state is second
        assert state.arena is first
        assert np.allclose(state.state, first)

        state.apply_op(identity)
        assert state.state is first
        assert np.allclose(state.state, [1, 0, 0, 0])

        state.measure([])
        assert state.state is second

    def test_export_internal_order(self):
        """Internal order puts qubit 0 on the top address bit."""
        from qpipe.runtime.state import LocalQuantumState
        from qpipe.core.initial_state import InitialState

        state = LocalQuantumState.from_initial_states(3, [([0], InitialState.from_index(1))])
        vec = state.get_state(natural_order=False)
        assert np.isclose(vec[0b100], 1.0)

    def test_export_natural_order(self):
        """Natural order puts qubit 0 on the bottom address bit."""
        from qpipe.runtime.state import LocalQuantumState
        from qpipe.core.initial_state import InitialState

        state = LocalQuantumState.from_initial_states(3, [([0], InitialState.from_index(1))])
        vec = state.get_state(natural_order=True)
        assert np.isclose(vec[0b001], 1.0)

    @pytest.mark.parametrize("multithread", [False, True])
    def test_export_round_trip(self, multithread):
        """Natural and internal exports are bit reversals of each other."""
        from qpipe.runtime.state import LocalQuantumState
        from qpipe.runtime.config import SimulatorConfig
        from qpipe.utils.bits import flip_bits_array

        n = 4
        rng = np.random.default_rng(5)
        vec = rng.normal(size=1 << n) + 1j * rng.normal(size=1 << n)
        config = SimulatorConfig(multithread=multithread, max_workers=3, chunk_size=1)

        internal = LocalQuantumState(n, vec.copy(), config).export(natural_order=False)
        natural = LocalQuantumState(n, vec.copy(), config).export(natural_order=True)

        assert np.allclose(natural[flip_bits_array(n, np.arange(1 << n))], internal)

    def test_export_consumes_state(self):
        """An exported state cannot be used again."""
        from qpipe.runtime.state import LocalQuantumState
        from qpipe.core.errors import StateConsumedError
        from qpipe.core.operators import PAULI_X, QubitOp

        state = LocalQuantumState.new(1)
        state.get_state(natural_order=True)

        with pytest.raises(StateConsumedError):
            state.apply_op(QubitOp.from_matrix((0,), PAULI_X))
        with pytest.raises(StateConsumedError):
            state.get_state(natural_order=False)

    def test_threshold(self):
        """Threading follows the qubit threshold unless forced."""
        from qpipe.runtime.state import LocalQuantumState
        from qpipe.runtime.config import SimulatorConfig

        config = SimulatorConfig(parallel_threshold=2)
        assert not LocalQuantumState.new(2, config).multithread
        assert LocalQuantumState.new(3, config).multithread
        assert not LocalQuantumState.new(3, SimulatorConfig.single_threaded()).multithread
        assert LocalQuantumState.new(1, SimulatorConfig.multi_threaded()).multithread

    def test_wrong_vector_length(self):
        """A vector of the wrong length is rejected."""
        from qpipe.runtime.state import LocalQuantumState

        with pytest.raises(ValueError):
            LocalQuantumState(2, np.zeros(3))

    def test_caller_vector_not_used_as_buffer(self):
        """Mutations never write through to the array the state was built from."""
        from qpipe.runtime.state import LocalQuantumState
        from qpipe.core.operators import HADAMARD, PAULI_X, QubitOp

        vec = np.array([1, 0], dtype=np.complex128)
        state = LocalQuantumState(1, vec)
        state.apply_op(QubitOp.from_matrix((0,), PAULI_X))
        state.apply_op(QubitOp.from_matrix((0,), HADAMARD))

        assert np.allclose(vec, [1, 0])
        assert state.state is not vec
        assert np.allclose(state.get_state(natural_order=False), np.array([1, -1]) / np.sqrt(2))


class TestRuntime:
    """Tests for the pipeline executor."""

    def test_bell_state(self):
        """H then CNOT gives a Bell pair."""
        from qpipe.core.qubits import QubitGraph
        from qpipe.runtime.engine import run_local

        graph = QubitGraph()
        m = bell_circuit(graph)
        state, measured = run_local(m)

        assert len(measured) == 0
        vec = state.get_state(natural_order=False)
        assert np.allclose(vec, np.array([1, 0, 0, 1]) / np.sqrt(2))

    def test_ghz_state(self):
        """Chained CNOTs give a GHZ state."""
        from qpipe.core.qubits import QubitGraph
        from qpipe.core.operators import HADAMARD
        from qpipe.runtime.engine import run_local

        graph = QubitGraph()
        q0, q1, q2 = graph.qubit(), graph.qubit(), graph.qubit()
        q0 = graph.apply(q0, HADAMARD)
        q0, q1 = graph.cnot(q0, q1)
        q1, q2 = graph.cnot(q1, q2)
        m = graph.merge([q0, q1, q2])

        state, _ = run_local(m)
        vec = state.get_state(natural_order=True)
        expected = np.zeros(8)
        expected[0] = expected[7] = 1 / np.sqrt(2)
        assert np.allclose(vec, expected)

    def test_swap_circuit(self):
        """SWAP moves an excitation between qubits."""
        from qpipe.core.qubits import QubitGraph
        from qpipe.core.operators import PAULI_X
        from qpipe.runtime.engine import run_local

        graph = QubitGraph()
        a, b = graph.qubit(), graph.qubit()
        a = graph.apply(a, PAULI_X)
        a, b = graph.swap(a, b)
        state, _ = run_local(graph.merge([a, b]))

        assert np.allclose(state.get_state(natural_order=False), [0, 1, 0, 0])

    def test_measurement_recorded(self):
        """A deterministic measurement is recorded with probability 1."""
        from qpipe.core.qubits import QubitGraph
        from qpipe.core.operators import PAULI_X
        from qpipe.runtime.engine import run_local

        graph = QubitGraph()
        q = graph.qubit()
        q = graph.apply(q, PAULI_X)
        q, m = graph.measure(q)

        _, measured = run_local(q)
        assert measured[m] == (1, 1.0)
        assert measured.outcome(m) == 1
        assert np.isclose(measured.probability(m), 1.0)

    def test_bell_measurement_collapses(self):
        """Measuring a Bell pair collapses to a correlated outcome."""
        from qpipe.core.qubits import QubitGraph
        from qpipe.runtime.engine import run_local
        from qpipe.runtime.config import SimulatorConfig

        for seed in range(5):
            graph = QubitGraph()
            m = bell_circuit(graph)
            m, mid = graph.measure(m)
            state, measured = run_local(m, SimulatorConfig(seed=seed))

            outcome, probability = measured[mid]
            assert outcome in (0, 3)
            assert np.isclose(probability, 0.5)
            vec = state.get_state(natural_order=False)
            assert np.isclose(abs(vec[outcome]), 1.0)

    def test_measurement_id_overwritten(self):
        """A reused measurement id keeps the later result."""
        from qpipe.core.qubits import QubitGraph
        from qpipe.core.operators import PAULI_X
        from qpipe.runtime.engine import run_local

        graph = QubitGraph()
        q = graph.qubit()
        q = graph.apply(q, PAULI_X)
        q, _ = graph.measure(q, measurement_id=7)
        q = graph.apply(q, PAULI_X)
        q, _ = graph.measure(q, measurement_id=7)

        _, measured = run_local(q)
        assert len(measured) == 1
        assert measured[7] == (0, 1.0)

    def test_duplicate_id_rejected_when_validating(self):
        """Validation turns a reused measurement id into an error."""
        from qpipe.core.qubits import QubitGraph
        from qpipe.core.errors import DuplicateMeasurementIdError
        from qpipe.runtime.engine import run_local
        from qpipe.runtime.config import SimulatorConfig

        graph = QubitGraph()
        q = graph.qubit()
        q, _ = graph.measure(q, measurement_id=3)
        q, _ = graph.measure(q, measurement_id=3)

        with pytest.raises(DuplicateMeasurementIdError):
            run_local(q, SimulatorConfig(validate=True))

    def test_run_with_init(self):
        """Initial states and outcomes share the same bit order."""
        from qpipe.core.qubits import QubitGraph
        from qpipe.core.initial_state import InitialState
        from qpipe.runtime.engine import run_local_with_init

        graph = QubitGraph()
        q = graph.qubit(2)
        q, m = graph.measure(q)

        # Bit 0 of the initial index and of the outcome both belong to qubit 0
        _, measured = run_local_with_init(q, [([0, 1], InitialState.from_index(1))])
        assert measured[m] == (1, 1.0)

    def test_frontier_sizes_state(self):
        """The default state spans every frontier qubit."""
        from qpipe.core.qubits import QubitGraph
        from qpipe.runtime.engine import run_local

        graph = QubitGraph()
        m = graph.merge([graph.qubit(1), graph.qubit(2)])
        state, _ = run_local(m)
        assert state.n == 3

    def test_run_with_statebuilder(self):
        """A custom builder receives the frontier and supplies the state."""
        from qpipe.core.qubits import QubitGraph
        from qpipe.core.initial_state import InitialState
        from qpipe.core.operators import PAULI_X
        from qpipe.runtime.engine import run_with_statebuilder
        from qpipe.runtime.state import LocalQuantumState

        graph = QubitGraph()
        q = graph.qubit()
        q = graph.apply(q, PAULI_X)
        seen = []

        def builder(frontier):
            seen.extend(frontier)
            return LocalQuantumState.from_initial_states(
                1, [([0], InitialState.full_state([0, 1]))]
            )

        state, _ = run_with_statebuilder(q, builder)
        assert len(seen) == 1
        assert np.allclose(state.get_state(natural_order=False), [1, 0])

    def test_threaded_run_matches(self):
        """Forced threading gives the same state as a single thread."""
        from qpipe.core.qubits import QubitGraph
        from qpipe.core.operators import HADAMARD, rx_matrix, rz_matrix
        from qpipe.runtime.engine import run_local
        from qpipe.runtime.config import SimulatorConfig

        def circuit():
            graph = QubitGraph()
            qs = [graph.qubit() for _ in range(5)]
            for i, q in enumerate(qs):
                qs[i] = graph.apply(q, HADAMARD)
            for i in range(4):
                qs[i], qs[i + 1] = graph.cnot(qs[i], qs[i + 1])
                qs[i + 1] = graph.apply(qs[i + 1], rx_matrix(0.3 * (i + 1)))
            qs[0] = graph.apply(qs[0], rz_matrix(1.1))
            return graph.merge(qs)

        single, _ = run_local(circuit(), SimulatorConfig.single_threaded())
        threaded, _ = run_local(
            circuit(), SimulatorConfig.multi_threaded(max_workers=4, chunk_size=1)
        )
        assert threaded.multithread
        assert np.allclose(
            single.get_state(natural_order=True),
            threaded.get_state(natural_order=True)
        )


class TestCircuitMatrix:
    """Tests for the matrix extractor."""

    @pytest.mark.parametrize("n", [1, 2, 3])
    @pytest.mark.parametrize("natural_order", [True, False])
    def test_identity(self, n, natural_order):
        """An empty circuit has the identity matrix."""
        from qpipe.core.qubits import QubitGraph
        from qpipe.utils.matrix import make_circuit_matrix

        graph = QubitGraph()
        q = graph.qubit(n)
        matrix = make_circuit_matrix(n, q, natural_order=natural_order)

        assert matrix.shape == (1 << n, 1 << n)
        assert np.array_equal(matrix, np.eye(1 << n))

    def test_x_on_qubit_zero(self):
        """X on qubit 0 flips the bit each ordering assigns to it."""
        from qpipe.core.qubits import QubitGraph
        from qpipe.core.operators import PAULI_X, QubitOp
        from qpipe.utils.matrix import make_circuit_matrix

        def circuit():
            graph = QubitGraph()
            q = graph.qubit(2)
            return graph.apply(q, QubitOp.from_matrix((0,), PAULI_X))

        natural = make_circuit_matrix(2, circuit(), natural_order=True)
        internal = make_circuit_matrix(2, circuit(), natural_order=False)

        for i in range(4):
            assert np.isclose(natural[i ^ 0b01, i], 1.0)
            assert np.isclose(internal[i ^ 0b10, i], 1.0)

    def test_unitary(self):
        """A circuit matrix is unitary."""
        from qpipe.core.qubits import QubitGraph
        from qpipe.utils.matrix import make_circuit_matrix

        graph = QubitGraph()
        matrix = make_circuit_matrix(2, bell_circuit(graph))
        assert np.allclose(matrix.conj().T @ matrix, np.eye(4))

    def test_sparse_output(self):
        """Sparse output matches the dense matrix."""
        from qpipe.core.qubits import QubitGraph
        from qpipe.utils.matrix import make_circuit_matrix

        dense = make_circuit_matrix(2, bell_circuit(QubitGraph()))
        sparse = make_circuit_matrix(2, bell_circuit(QubitGraph()), sparse_output=True)
        assert sparse.nnz == 8
        assert np.allclose(sparse.toarray(), dense)

    def test_width_mismatch(self):
        """A wrong qubit count is rejected."""
        from qpipe.core.qubits import QubitGraph
        from qpipe.utils.matrix import make_circuit_matrix

        graph = QubitGraph()
        q = graph.qubit(2)
        with pytest.raises(ValueError):
            make_circuit_matrix(1, q)

    def test_against_qiskit(self):
        """Circuit matrices agree with qiskit's Operator."""
        pytest.importorskip("qiskit")
        from qiskit import QuantumCircuit
        from qpipe.core.qubits import QubitGraph
        from qpipe.core.operators import HADAMARD, ry_matrix
        from qpipe.utils.validation import validate_against_qiskit

        graph = QubitGraph()
        q0, q1, q2 = graph.qubit(), graph.qubit(), graph.qubit()
        q0 = graph.apply(q0, HADAMARD)
        q0, q1 = graph.cnot(q0, q1)
        q2 = graph.apply(q2, ry_matrix(0.7))
        q1, q2 = graph.cnot(q1, q2)
        m = graph.merge([q0, q1, q2])

        qc = QuantumCircuit(3)
        qc.h(0)
        qc.cx(0, 1)
        qc.ry(0.7, 2)
        qc.cx(1, 2)

        result = validate_against_qiskit(m, qc)
        assert result.passed, result.max_error


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
