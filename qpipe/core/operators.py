"""
Operator specifications for unitary state modifiers.

A ``QubitOp`` describes *what* to apply and to which absolute qubit
indices; the numerical work is done by the kernels in
:mod:`qpipe.runtime.kernels`.
"""

from __future__ import annotations

import numpy as np
from dataclasses import dataclass, field
from typing import Optional, Tuple
from enum import Enum


# Common matrices
PAULI_I = np.array([[1, 0], [0, 1]], dtype=np.complex128)
PAULI_X = np.array([[0, 1], [1, 0]], dtype=np.complex128)
PAULI_Z = np.array([[1, 0], [0, -1]], dtype=np.complex128)
HADAMARD = np.array([[1, 1], [1, -1]], dtype=np.complex128) / np.sqrt(2)

CNOT = np.array([
    [1, 0, 0, 0],
    [0, 1, 0, 0],
    [0, 0, 0, 1],
    [0, 0, 1, 0]
], dtype=np.complex128)


def rx_matrix(theta: float) -> np.ndarray:
    """Rotation around X-axis: Rx(θ) = exp(-iθX/2)"""
    c, s = np.cos(theta / 2), np.sin(theta / 2)
    return np.array([[c, -1j * s], [-1j * s, c]], dtype=np.complex128)


def ry_matrix(theta: float) -> np.ndarray:
    """Rotation around Y-axis: Ry(θ) = exp(-iθY/2)"""
    c, s = np.cos(theta / 2), np.sin(theta / 2)
    return np.array([[c, -s], [s, c]], dtype=np.complex128)


def rz_matrix(theta: float) -> np.ndarray:
    """Rotation around Z-axis: Rz(θ) = exp(-iθZ/2)"""
    return np.array([
        [np.exp(-1j * theta / 2), 0],
        [0, np.exp(1j * theta / 2)]
    ], dtype=np.complex128)


class OpKind(Enum):
    """Classification of operator specs."""
    MATRIX = "matrix"
    CONTROL = "control"
    SWAP = "swap"


@dataclass(frozen=True, eq=False)
class QubitOp:
    """
    A unitary operator bound to absolute qubit indices.

    Attributes:
        kind: Which variant this is
        indices: Target indices (MATRIX, CONTROL's controls, SWAP's first half)
        matrix: Dense unitary for MATRIX; row index has ``indices[0]`` as its top bit
        inner: Operator applied when all controls are set (CONTROL only)
        other: Indices swapped with ``indices`` (SWAP only)
    """
    kind: OpKind
    indices: Tuple[int, ...]
    matrix: Optional[np.ndarray] = field(default=None, repr=False)
    inner: Optional[QubitOp] = None
    other: Tuple[int, ...] = field(default_factory=tuple)

    @classmethod
    def from_matrix(cls, indices, matrix) -> QubitOp:
        indices = tuple(int(i) for i in indices)
        matrix = np.asarray(matrix, dtype=np.complex128)
        dim = 1 << len(indices)
        if matrix.shape != (dim, dim):
            raise ValueError(
                f"Matrix for {len(indices)} qubits must be {dim}x{dim}, got {matrix.shape}"
            )
        return cls(kind=OpKind.MATRIX, indices=indices, matrix=matrix)

    @classmethod
    def control(cls, control_indices, op: QubitOp) -> QubitOp:
        control_indices = tuple(int(i) for i in control_indices)
        if set(control_indices) & set(op.targets):
            raise ValueError(f"Control indices {control_indices} overlap targets {op.targets}")
        return cls(kind=OpKind.CONTROL, indices=control_indices, inner=op)

    @classmethod
    def swap(cls, a_indices, b_indices) -> QubitOp:
        a_indices = tuple(int(i) for i in a_indices)
        b_indices = tuple(int(i) for i in b_indices)
        if len(a_indices) != len(b_indices):
            raise ValueError("Swap requires index lists of equal length")
        return cls(kind=OpKind.SWAP, indices=a_indices, other=b_indices)

    @property
    def targets(self) -> Tuple[int, ...]:
        """Every absolute index this operator reads or writes."""
        if self.kind == OpKind.CONTROL:
            return self.indices + self.inner.targets
        if self.kind == OpKind.SWAP:
            return self.indices + self.other
        return self.indices

    @property
    def num_qubits(self) -> int:
        return len(self.targets)

    def __repr__(self) -> str:
        if self.kind == OpKind.CONTROL:
            return f"C{self.indices}[{self.inner!r}]"
        if self.kind == OpKind.SWAP:
            return f"SWAP{self.indices}<->{self.other}"
        return f"Matrix@{self.indices}"
