"""
Graph resolution for the simulation pipeline.

Walks a qubit graph backwards from a terminal handle and produces the set of
origin qubits it depends on plus every operation on the way, in an order
where each operation comes after everything it depends on.
"""

from __future__ import annotations

import heapq
import logging
from collections import deque
from typing import Deque, List, Set, Tuple

from qpipe.core.modifiers import StateModifier
from qpipe.core.qubits import ParentKind, Qubit

logger = logging.getLogger(__name__)


def get_ops_and_frontier(q: Qubit, check: bool = False) -> Tuple[List[Qubit], List[StateModifier]]:
    """
    Resolve the graph behind ``q``.

    Pops handles from a max-heap keyed by handle (newest first). Origins go to
    the frontier; an owned parent relation pushes its parents and puts its
    modifier at the *front* of the queue, so deeper dependencies run first;
    a shared parent is pushed only if it is not already pending, so a shared
    ancestor is expanded once no matter how many children alias it.

    Args:
        q: Terminal qubit handle
        check: Verify the reachable graph is acyclic before walking it

    Returns:
        Tuple of (frontier origin qubits, ordered modifiers)
    """
    graph = q.graph
    if check:
        from qpipe.compiler.dag import check_acyclic
        check_acyclic(q)

    heap: List[int] = [-q.handle]
    pending: Set[int] = {q.handle}
    frontier: List[Qubit] = []
    fn_queue: Deque[StateModifier] = deque()

    while heap:
        handle = -heapq.heappop(heap)
        pending.discard(handle)
        parent = graph.parent_of(handle)

        if parent is None:
            frontier.append(graph.handle(handle))
        elif parent.kind == ParentKind.OWNED:
            if parent.modifier is not None:
                fn_queue.appendleft(parent.modifier)
            for p in parent.parents:
                heapq.heappush(heap, -p)
                pending.add(p)
        elif parent.kind == ParentKind.SHARED:
            p = parent.parents[0]
            if p not in pending:
                heapq.heappush(heap, -p)
                pending.add(p)
        else:
            raise ValueError(f"Unknown parent kind: {parent.kind}")

    logger.debug(
        "Resolved %r: %d frontier qubits, %d operations",
        q, len(frontier), len(fn_queue)
    )
    return frontier, list(fn_queue)


def frontier_size(frontier: List[Qubit]) -> int:
    """Total number of qubits spanned by a frontier."""
    return sum(len(f.indices) for f in frontier)
