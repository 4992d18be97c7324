"""
Bit-level kernels for unitary application and projective measurement.

Both kernels read a full source buffer and write the full result into a
separate destination buffer; the caller owns the buffer swap.
"""

from __future__ import annotations

from typing import Optional, Sequence, Tuple
import numpy as np

from qpipe.core.operators import OpKind, QubitOp
from qpipe.utils.parallel import fill_chunked


def _sub_indices(n: int, indices: Sequence[int], start: int, stop: int) -> np.ndarray:
    """Sub-index over ``indices`` for every full address in [start, stop)."""
    full = np.arange(start, stop, dtype=np.int64)
    sub = np.zeros_like(full)
    for j, indx in enumerate(indices):
        sub |= ((full >> (n - 1 - indx)) & 1) << j
    return sub


def _controls_set(n: int, controls: Sequence[int], start: int, stop: int) -> np.ndarray:
    full = np.arange(start, stop, dtype=np.int64)
    mask = np.ones(full.shape, dtype=bool)
    for indx in controls:
        mask &= ((full >> (n - 1 - indx)) & 1).astype(bool)
    return mask


def _transform(n: int, op: QubitOp, vec: np.ndarray) -> np.ndarray:
    """
    Return ``op`` applied to ``vec`` as an ``n``-axis tensor.

    The result may be a strided view, of ``vec`` itself for SWAP, so it must
    be copied out rather than written to.
    """
    psi = vec.reshape((2,) * n)

    if op.kind == OpKind.MATRIX:
        k = len(op.indices)
        u = op.matrix.reshape((2,) * (2 * k))
        out = np.tensordot(u, psi, axes=(list(range(k, 2 * k)), list(op.indices)))
        return np.moveaxis(out, list(range(k)), list(op.indices))

    if op.kind == OpKind.SWAP:
        perm = list(range(n))
        for a, b in zip(op.indices, op.other):
            perm[a], perm[b] = b, a
        return psi.transpose(perm)

    if op.kind == OpKind.CONTROL:
        inner = _transform(n, op.inner, vec)
        mask = _controls_set(n, op.indices, 0, len(vec)).reshape((2,) * n)
        return np.where(mask, inner, psi)

    raise ValueError(f"Unknown operator kind: {op.kind}")


def apply_kernel(
    n: int,
    op: QubitOp,
    src: np.ndarray,
    dst: np.ndarray,
    multithread: bool = False,
    max_workers: Optional[int] = None,
    min_chunk: int = 1 << 12
) -> None:
    """
    Write ``op`` applied to ``src`` into ``dst``.

    ``src`` is never modified. Single-threaded, the transformed tensor is
    copied straight into ``dst`` with no flat intermediate. Threaded, the
    transform itself still runs once on the calling thread; only the merge
    into ``dst`` is split across workers.
    """
    if not multithread:
        dst_tensor = dst.reshape((2,) * n)
        if op.kind == OpKind.CONTROL:
            np.copyto(dst_tensor, _transform(n, op.inner, src))
            np.copyto(dst, src, where=~_controls_set(n, op.indices, 0, len(src)))
        else:
            np.copyto(dst_tensor, _transform(n, op, src))
        return

    if op.kind == OpKind.CONTROL:
        # Only the controlled subspace changes; merge chunk by chunk
        inner = np.ascontiguousarray(_transform(n, op.inner, src)).reshape(-1)

        def fill(start, stop):
            mask = _controls_set(n, op.indices, start, stop)
            return np.where(mask, inner[start:stop], src[start:stop])
    else:
        out = np.ascontiguousarray(_transform(n, op, src)).reshape(-1)

        def fill(start, stop):
            return out[start:stop]

    fill_chunked(dst, fill, multithread, max_workers, min_chunk)


def measure_probabilities(n: int, indices: Sequence[int], src: np.ndarray) -> np.ndarray:
    """Outcome distribution over the sub-index of ``indices``."""
    sub = _sub_indices(n, indices, 0, len(src))
    probs = np.bincount(sub, weights=np.abs(src) ** 2, minlength=1 << len(indices))
    total = probs.sum()
    if total <= 0:
        raise ValueError("Cannot measure a state with zero norm")
    return probs / total


def measure_kernel(
    n: int,
    indices: Sequence[int],
    src: np.ndarray,
    dst: np.ndarray,
    rng: np.random.Generator,
    multithread: bool = False,
    max_workers: Optional[int] = None,
    min_chunk: int = 1 << 12
) -> Tuple[int, float]:
    """
    Projectively measure ``indices`` and write the collapsed state into ``dst``.

    Returns:
        Tuple of (outcome sub-index, probability of that outcome).
        An empty ``indices`` list copies the state and returns (0, 1.0).
    """
    if len(indices) == 0:
        fill_chunked(dst, lambda start, stop: src[start:stop], multithread, max_workers, min_chunk)
        return 0, 1.0

    probs = measure_probabilities(n, indices, src)
    outcome = int(rng.choice(len(probs), p=probs))
    probability = float(probs[outcome])
    scale = 1.0 / np.sqrt(probability)

    def fill(start, stop):
        keep = _sub_indices(n, indices, start, stop) == outcome
        return np.where(keep, src[start:stop] * scale, 0)

    fill_chunked(dst, fill, multithread, max_workers, min_chunk)
    return outcome, probability
