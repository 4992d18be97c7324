"""
Qubit handle graph.

Every qubit handle is a node in a lazily-built dependency graph. Nothing is
simulated while the graph is built; the pipeline later walks the graph
backwards from a terminal handle to find the operations to run.

The graph is an arena: records are indexed by stable integer handles and
parents are stored as handles rather than references, so handles are
allocated in creation order and a child's handle is always larger than its
parents'.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple, Union
from enum import Enum

import numpy as np

from qpipe.core.errors import QubitConsumedError
from qpipe.core.modifiers import StateModifier
from qpipe.core.operators import QubitOp, PAULI_X


class ParentKind(Enum):
    """How a qubit relates to the qubit(s) it was made from."""
    OWNED = "owned"
    SHARED = "shared"


@dataclass(frozen=True)
class Parent:
    """
    Parent relation of a non-origin qubit.

    OWNED: the qubit is the result of ``modifier`` (possibly None, e.g. for a
    merge) applied to ``parents``.
    SHARED: the qubit aliases its single parent without an operation; several
    shared children may point at the same parent.
    """
    kind: ParentKind
    parents: Tuple[int, ...]
    modifier: Optional[StateModifier] = None

    @classmethod
    def owned(cls, parents: Sequence[int], modifier: Optional[StateModifier] = None) -> Parent:
        return cls(kind=ParentKind.OWNED, parents=tuple(parents), modifier=modifier)

    @classmethod
    def shared(cls, parent: int) -> Parent:
        return cls(kind=ParentKind.SHARED, parents=(parent,))


class Qubit:
    """
    Handle to a node of a :class:`QubitGraph`.

    Equality and hashing use the handle and the owning graph's identity,
    never the indices.
    """

    __slots__ = ("handle", "indices", "graph")

    def __init__(self, handle: int, indices: Tuple[int, ...], graph: QubitGraph):
        self.handle = handle
        self.indices = indices
        self.graph = graph

    @property
    def parent(self) -> Optional[Parent]:
        return self.graph.parent_of(self.handle)

    @property
    def n(self) -> int:
        """Number of absolute indices this handle denotes."""
        return len(self.indices)

    def __eq__(self, other):
        if not isinstance(other, Qubit):
            return False
        return self.graph is other.graph and self.handle == other.handle

    def __hash__(self):
        return hash((id(self.graph), self.handle))

    def __repr__(self) -> str:
        return f"Qubit(#{self.handle}, indices={list(self.indices)})"


MatrixLike = Union[np.ndarray, Sequence[Sequence[complex]]]


@dataclass
class QubitGraph:
    """
    Builder and arena for qubit handles.

    Usage:
        graph = QubitGraph()
        q = graph.qubit(2)
        q = graph.apply(q, QubitOp.from_matrix((0,), HADAMARD), name="h")
        q, m = graph.measure(q)
        state, measured = run_local(q)
    """
    _indices: List[Tuple[int, ...]] = field(default_factory=list)
    _parents: List[Optional[Parent]] = field(default_factory=list)
    _consumed: Set[int] = field(default_factory=set)
    _next_index: int = 0
    _next_measurement_id: int = 0

    @property
    def num_qubits(self) -> int:
        """Total number of absolute indices allocated so far."""
        return self._next_index

    @property
    def num_handles(self) -> int:
        return len(self._parents)

    def parent_of(self, handle: int) -> Optional[Parent]:
        return self._parents[handle]

    def indices_of(self, handle: int) -> Tuple[int, ...]:
        return self._indices[handle]

    def handle(self, handle: int) -> Qubit:
        """Rebuild the ``Qubit`` for an arena handle."""
        return Qubit(handle, self._indices[handle], self)

    def _new(self, indices: Sequence[int], parent: Optional[Parent]) -> Qubit:
        handle = len(self._parents)
        indices = tuple(indices)
        self._indices.append(indices)
        self._parents.append(parent)
        return Qubit(handle, indices, self)

    def _consume(self, qubits: Sequence[Qubit]) -> None:
        for q in qubits:
            if q.graph is not self:
                raise ValueError(f"{q!r} belongs to a different graph")
            if q.handle in self._consumed:
                raise QubitConsumedError(f"{q!r} has already been consumed")
        for q in qubits:
            self._consumed.add(q.handle)

    def qubit(self, n: int = 1) -> Qubit:
        """Register a fresh origin qubit spanning the next ``n`` indices."""
        if n < 1:
            raise ValueError(f"Qubit must span at least one index, got {n}")
        indices = range(self._next_index, self._next_index + n)
        self._next_index += n
        return self._new(indices, None)

    def apply(self, q: Qubit, op: Union[QubitOp, MatrixLike], name: Optional[str] = None) -> Qubit:
        """
        Apply a unitary to ``q``.

        ``op`` is either a :class:`QubitOp` over a subset of ``q.indices`` or
        a dense matrix acting on all of ``q.indices``.
        """
        if not isinstance(op, QubitOp):
            op = QubitOp.from_matrix(q.indices, op)
        stray = set(op.targets) - set(q.indices)
        if stray:
            raise ValueError(f"Operator touches indices {sorted(stray)} outside {q!r}")
        self._consume([q])
        modifier = StateModifier.new_unitary(name or "unitary", op)
        return self._new(q.indices, Parent.owned([q.handle], modifier))

    def merge(self, qubits: Sequence[Qubit]) -> Qubit:
        """Join several handles into one, indices concatenated in order."""
        if not qubits:
            raise ValueError("Cannot merge an empty list of qubits")
        self._consume(qubits)
        indices = [i for q in qubits for i in q.indices]
        return self._new(indices, Parent.owned([q.handle for q in qubits]))

    def split(self, q: Qubit, indices: Sequence[int]) -> Tuple[Qubit, Qubit]:
        """
        Split ``q`` into (selected, remaining) handles sharing ``q``.

        ``indices`` are absolute indices of ``q``; the selected handle keeps
        the given order, the remaining one keeps the order from ``q``.
        """
        selected = tuple(indices)
        missing = set(selected) - set(q.indices)
        if missing:
            raise ValueError(f"Indices {sorted(missing)} are not part of {q!r}")
        remaining = tuple(i for i in q.indices if i not in selected)
        if not selected or not remaining:
            raise ValueError("Split must leave both halves non-empty")
        self._consume([q])
        return (
            self._new(selected, Parent.shared(q.handle)),
            self._new(remaining, Parent.shared(q.handle)),
        )

    def split_all(self, q: Qubit) -> List[Qubit]:
        """Split ``q`` into one shared handle per index."""
        self._consume([q])
        return [self._new((i,), Parent.shared(q.handle)) for i in q.indices]

    def measure(
        self,
        q: Qubit,
        measurement_id: Optional[int] = None,
        name: Optional[str] = None
    ) -> Tuple[Qubit, int]:
        """
        Measure ``q`` in the computational basis.

        Returns the post-measurement handle and the id its result will be
        recorded under. Ids are auto-assigned when not given.
        """
        if measurement_id is None:
            measurement_id = self._next_measurement_id
        self._next_measurement_id = max(self._next_measurement_id, measurement_id + 1)
        self._consume([q])
        modifier = StateModifier.new_measurement(name or "measure", measurement_id, q.indices)
        return self._new(q.indices, Parent.owned([q.handle], modifier)), measurement_id

    def controlled(
        self,
        control: Qubit,
        target: Qubit,
        op: Union[QubitOp, MatrixLike],
        name: Optional[str] = None
    ) -> Tuple[Qubit, Qubit]:
        """Apply ``op`` to ``target`` conditioned on every bit of ``control``."""
        if not isinstance(op, QubitOp):
            op = QubitOp.from_matrix(target.indices, op)
        merged = self.merge([control, target])
        merged = self.apply(merged, QubitOp.control(control.indices, op), name=name or "controlled")
        return self.split(merged, control.indices)

    def cnot(self, control: Qubit, target: Qubit) -> Tuple[Qubit, Qubit]:
        return self.controlled(control, target, PAULI_X, name="cnot")

    def swap(self, a: Qubit, b: Qubit) -> Tuple[Qubit, Qubit]:
        """Exchange the states of two equal-width handles."""
        merged = self.merge([a, b])
        merged = self.apply(merged, QubitOp.swap(a.indices, b.indices), name="swap")
        return self.split(merged, a.indices)

    def depths(self) -> Dict[int, int]:
        """Longest path length from an origin, per handle."""
        depth: Dict[int, int] = {}
        for handle, parent in enumerate(self._parents):
            if parent is None:
                depth[handle] = 0
            else:
                depth[handle] = 1 + max(depth[p] for p in parent.parents)
        return depth

    def __repr__(self) -> str:
        return (f"QubitGraph(handles={self.num_handles}, "
                f"qubits={self.num_qubits}, consumed={len(self._consumed)})")
