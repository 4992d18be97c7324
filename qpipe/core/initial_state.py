"""
Initial states for subsets of qubits, and the builder that combines them
into a full state vector.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple
from enum import Enum

import numpy as np

from qpipe.core.errors import IndexOutOfRangeError, OverlappingInitialIndicesError
from qpipe.utils.bits import sub_to_full

logger = logging.getLogger(__name__)


class InitialStateKind(Enum):
    FULL_STATE = "full_state"
    INDEX = "index"


@dataclass(frozen=True, eq=False)
class InitialState:
    """
    Initial state of a subset of qubits.

    FULL_STATE holds an explicit amplitude vector over the ``2**k`` basis of
    the subset; INDEX holds a single classical basis index. In both cases
    bit ``j`` of the sub-index belongs to the ``j``-th declared qubit index.
    """
    kind: InitialStateKind
    vector: Optional[np.ndarray] = None
    index: int = 0

    @classmethod
    def full_state(cls, vector) -> InitialState:
        return cls(kind=InitialStateKind.FULL_STATE, vector=np.asarray(vector, dtype=np.complex128))

    @classmethod
    def from_index(cls, index: int) -> InitialState:
        return cls(kind=InitialStateKind.INDEX, index=int(index))

    @property
    def is_full_state(self) -> bool:
        return self.kind == InitialStateKind.FULL_STATE


# (absolute qubit indices, state of those qubits)
QubitInitialState = Tuple[Sequence[int], InitialState]


def widened_size(n: int, states: Sequence[QubitInitialState]) -> int:
    """Grow ``n`` so that every declared index fits."""
    max_index = max((i for indices, _ in states for i in indices), default=None)
    if max_index is None:
        return n
    return max(n, max_index + 1)


def check_initial_states(n: int, states: Sequence[QubitInitialState]) -> None:
    """
    Reject initial states that overlap or do not fit ``n`` qubits.

    Only called in validation mode; by default the builder trusts its input.
    """
    seen = set()
    for indices, state in states:
        overlap = seen & set(indices)
        if overlap:
            raise OverlappingInitialIndicesError(
                f"Indices {sorted(overlap)} are declared by more than one initial state"
            )
        seen.update(indices)

        out_of_range = [i for i in indices if i < 0 or i >= n]
        if out_of_range:
            raise IndexOutOfRangeError(f"Indices {out_of_range} do not fit {n} qubits")

        dim = 1 << len(indices)
        if state.is_full_state:
            if state.vector.shape != (dim,):
                raise IndexOutOfRangeError(
                    f"State over {len(indices)} qubits needs {dim} amplitudes, "
                    f"got {state.vector.shape}"
                )
        elif not 0 <= state.index < dim:
            raise IndexOutOfRangeError(
                f"Basis index {state.index} does not fit {len(indices)} qubits"
            )


def build_initial_vector(
    n: int,
    states: Sequence[QubitInitialState],
    validate: bool = False
) -> Tuple[int, np.ndarray]:
    """
    Build the full amplitude vector from subset initial states.

    The result is the tensor product of every declared sub-state, with any
    undeclared index left in |0⟩. Declared index sets are assumed pairwise
    disjoint; overlapping sets give an undefined mix unless ``validate``.

    Args:
        n: Requested number of qubits; widened if an entry needs more
        states: (indices, InitialState) entries
        validate: Raise on overlapping or out-of-range entries

    Returns:
        Tuple of (qubit count, vector of length 2**n)
    """
    if validate:
        check_initial_states(n, states)
    n = widened_size(n, states)

    cvec = np.zeros(1 << n, dtype=np.complex128)

    full_states: List[Tuple[Sequence[int], np.ndarray]] = [
        (indices, state.vector) for indices, state in states if state.is_full_state
    ]
    n_fullindices = sum(len(indices) for indices, _ in full_states)

    # Classical entries fix bits that every combination shares
    template = 0
    for indices, state in states:
        if not state.is_full_state:
            template = sub_to_full(n, indices, state.index, template)

    # One row per combination of full-state sub-indices
    combos = np.arange(1 << n_fullindices, dtype=np.int64)
    values = np.ones(combos.shape, dtype=np.complex128)
    delta_index = np.zeros(combos.shape, dtype=np.int64)
    sub_index_offset = 0
    for indices, vals in full_states:
        index_mask = (1 << len(indices)) - 1
        val_index_bits = (combos >> sub_index_offset) & index_mask
        values = values * vals[val_index_bits]
        for j, indx in enumerate(indices):
            delta_index += ((val_index_bits >> j) & 1) << (n - 1 - indx)
        sub_index_offset += len(indices)

    cvec[delta_index + template] = values

    logger.debug(
        "Built initial state: n=%d, entries=%d, full-state width=%d",
        n, len(states), n_fullindices
    )
    return n, cvec
