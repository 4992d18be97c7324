"""
Bit-index helpers for state-vector addressing.

Internally absolute qubit index 0 is the most-significant bit of an
n-bit state address. Sub-indices (the index into a sub-state vector or a
classical value over a subset of qubits) store bit ``j`` for ``indices[j]``.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np


def get_bit(value: int, bit: int) -> int:
    """Return bit ``bit`` of ``value`` (0 or 1)."""
    return (value >> bit) & 1


def set_bit(value: int, bit: int, on: int) -> int:
    """Return ``value`` with bit ``bit`` set to ``on``."""
    if on:
        return value | (1 << bit)
    return value & ~(1 << bit)


def flip_bits(n: int, value: int) -> int:
    """
    Reverse the lowest ``n`` bits of ``value``.

    This maps between the internal ordering (qubit 0 is the top bit)
    and natural ordering (qubit 0 is the bottom bit). It is an involution.
    """
    result = 0
    for _ in range(n):
        result = (result << 1) | (value & 1)
        value >>= 1
    return result


def flip_bits_array(n: int, values: np.ndarray) -> np.ndarray:
    """Vectorized :func:`flip_bits` over an integer array."""
    values = np.asarray(values, dtype=np.int64)
    result = np.zeros_like(values)
    for _ in range(n):
        result = (result << 1) | (values & 1)
        values = values >> 1
    return result


def sub_to_full(n: int, indices: Sequence[int], sub_index: int, full_index: int = 0) -> int:
    """
    Scatter the bits of ``sub_index`` into ``full_index``.

    Bit ``j`` of ``sub_index`` lands on absolute qubit ``indices[j]``,
    i.e. bit ``n - 1 - indices[j]`` of the full address.
    """
    for j, indx in enumerate(indices):
        full_index = set_bit(full_index, n - 1 - indx, get_bit(sub_index, j))
    return full_index


def full_to_sub(n: int, indices: Sequence[int], full_index: int) -> int:
    """Inverse of :func:`sub_to_full`: gather the bits of ``indices``."""
    sub_index = 0
    for j, indx in enumerate(indices):
        sub_index = set_bit(sub_index, j, get_bit(full_index, n - 1 - indx))
    return sub_index
